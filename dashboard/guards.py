"""Route guards derived from the authentication session state."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from .auth import AuthSessionManager
from .models import User

Navigate = Callable[[str], None]

LOGIN_PATH = "/auth/login"
DASHBOARD_PATH = "/dashboard"


@dataclass(frozen=True)
class GuardStatus:
    is_loading: bool
    is_authenticated: bool
    user: Optional[User]

    @property
    def is_ready(self) -> bool:
        return not self.is_loading and self.is_authenticated


class _SessionGuard:
    """Navigate once each time the session enters the guarded condition.

    The guard reacts to state transitions published by the session manager,
    so repeated notifications in the same condition never navigate twice.
    """

    def __init__(self, manager: AuthSessionManager, navigate: Navigate, redirect_path: str) -> None:
        self._manager = manager
        self._navigate = navigate
        self.redirect_path = redirect_path
        self._triggered = False
        self._unsubscribe = manager.subscribe(self._on_change)
        self._on_change(manager)

    def _should_redirect(self, manager: AuthSessionManager) -> bool:
        raise NotImplementedError

    def _on_change(self, manager: AuthSessionManager) -> None:
        if self._should_redirect(manager):
            if not self._triggered:
                self._triggered = True
                self._navigate(self.redirect_path)
        else:
            self._triggered = False

    @property
    def status(self) -> GuardStatus:
        return GuardStatus(
            is_loading=self._manager.is_loading,
            is_authenticated=self._manager.is_authenticated,
            user=self._manager.user,
        )

    def close(self) -> None:
        self._unsubscribe()


class RequireAuthenticated(_SessionGuard):
    """Send unauthenticated visitors to the login page."""

    def __init__(
        self,
        manager: AuthSessionManager,
        navigate: Navigate,
        redirect_path: str = LOGIN_PATH,
    ) -> None:
        super().__init__(manager, navigate, redirect_path)

    def _should_redirect(self, manager: AuthSessionManager) -> bool:
        return not manager.is_loading and not manager.is_authenticated


class RedirectIfAuthenticated(_SessionGuard):
    """Send visitors who already have a session to the dashboard."""

    def __init__(
        self,
        manager: AuthSessionManager,
        navigate: Navigate,
        redirect_path: str = DASHBOARD_PATH,
    ) -> None:
        super().__init__(manager, navigate, redirect_path)

    def _should_redirect(self, manager: AuthSessionManager) -> bool:
        return not manager.is_loading and manager.is_authenticated


def logout_and_redirect(
    manager: AuthSessionManager,
    navigate: Navigate,
    redirect_path: str = LOGIN_PATH,
) -> None:
    manager.logout()
    navigate(redirect_path)


__all__ = [
    "DASHBOARD_PATH",
    "GuardStatus",
    "LOGIN_PATH",
    "Navigate",
    "RedirectIfAuthenticated",
    "RequireAuthenticated",
    "logout_and_redirect",
]
