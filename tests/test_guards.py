from __future__ import annotations

from typing import List

import anyio
import pytest

from dashboard.api_client import APIError, LoginCredentials
from dashboard.auth import AuthSessionManager
from dashboard.guards import (
    RedirectIfAuthenticated,
    RequireAuthenticated,
    logout_and_redirect,
)
from dashboard.models import AuthResponse
from dashboard.storage import MemoryKeyValueStore, SessionStore

from fakes import FakeAPIClient, make_user


USER = make_user(1, "George", "Bluth")


def _manager(*, logged_in: bool = False, client: FakeAPIClient | None = None) -> AuthSessionManager:
    backend = MemoryKeyValueStore()
    store = SessionStore(backend)
    if logged_in:
        store.set_token("tok1")
        store.set_user(USER)
    return AuthSessionManager(client or FakeAPIClient(), store)  # type: ignore[arg-type]


def test_require_authenticated_waits_while_loading() -> None:
    manager = _manager()
    visited: List[str] = []

    guard = RequireAuthenticated(manager, visited.append)

    assert visited == []
    assert guard.status.is_loading is True
    assert guard.status.is_ready is False


def test_require_authenticated_redirects_once_when_logged_out() -> None:
    manager = _manager()
    visited: List[str] = []
    guard = RequireAuthenticated(manager, visited.append)

    manager.initialize()
    manager.logout()
    manager.logout()

    assert visited == ["/auth/login"]
    assert guard.status.is_ready is False


def test_require_authenticated_uses_custom_redirect_path() -> None:
    manager = _manager()
    manager.initialize()
    visited: List[str] = []

    RequireAuthenticated(manager, visited.append, redirect_path="/custom-login")

    assert visited == ["/custom-login"]


def test_require_authenticated_is_ready_with_session() -> None:
    manager = _manager(logged_in=True)
    manager.initialize()
    visited: List[str] = []

    guard = RequireAuthenticated(manager, visited.append)

    assert visited == []
    assert guard.status.is_ready is True
    assert guard.status.user == USER


def test_require_authenticated_redirects_after_logout() -> None:
    manager = _manager(logged_in=True)
    manager.initialize()
    visited: List[str] = []
    RequireAuthenticated(manager, visited.append)

    manager.logout()

    assert visited == ["/auth/login"]


def test_redirect_after_each_failed_login_attempt() -> None:
    client = FakeAPIClient()
    client.errors["login"] = APIError("user not found")
    manager = _manager(client=client)
    manager.initialize()
    visited: List[str] = []
    RequireAuthenticated(manager, visited.append)

    with pytest.raises(APIError):
        anyio.run(manager.login, LoginCredentials(USER.email, "wrong-password"))

    assert visited == ["/auth/login", "/auth/login"]


def test_closed_guard_stops_navigating() -> None:
    manager = _manager(logged_in=True)
    manager.initialize()
    visited: List[str] = []
    guard = RequireAuthenticated(manager, visited.append)

    guard.close()
    manager.logout()

    assert visited == []


def test_redirect_if_authenticated_sends_user_to_dashboard() -> None:
    manager = _manager(logged_in=True)
    manager.initialize()
    visited: List[str] = []

    RedirectIfAuthenticated(manager, visited.append)

    assert visited == ["/dashboard"]


def test_redirect_if_authenticated_ignores_anonymous_visitors() -> None:
    manager = _manager()
    manager.initialize()
    visited: List[str] = []

    guard = RedirectIfAuthenticated(manager, visited.append)

    assert visited == []
    assert guard.status.is_authenticated is False


def test_redirect_if_authenticated_fires_after_login() -> None:
    client = FakeAPIClient()
    client.login_response = AuthResponse(token="QpwL5tke4Pnpja7X4", user=USER)
    manager = _manager(client=client)
    manager.initialize()
    visited: List[str] = []
    RedirectIfAuthenticated(manager, visited.append, redirect_path="/home")

    anyio.run(manager.login, LoginCredentials(USER.email, "cityslicka"))

    assert visited == ["/home"]


def test_logout_and_redirect() -> None:
    manager = _manager(logged_in=True)
    manager.initialize()
    visited: List[str] = []

    logout_and_redirect(manager, visited.append)

    assert manager.is_authenticated is False
    assert visited == ["/auth/login"]
