"""Client-side authentication session handling."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from .api_client import APIClient, APIError, LoginCredentials, RegisterCredentials
from .models import AuthResponse, User
from .storage import SessionStore

logger = logging.getLogger("dashboard.auth")

Listener = Callable[["AuthSessionManager"], None]


class AuthState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


class AuthSessionManager:
    """Own the logged-in user and token for the lifetime of the client.

    The manager is the only writer of the persisted session keys. Any failure
    while loading, logging in or registering leaves it fully logged out.
    """

    def __init__(self, client: APIClient, store: SessionStore) -> None:
        self._client = client
        self._store = store
        self._user: Optional[User] = None
        self._token: Optional[str] = None
        self._is_loading = True
        self._initialized = False
        self._listeners: List[Listener] = []

    @property
    def user(self) -> Optional[User]:
        return self._user

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def is_authenticated(self) -> bool:
        return bool(self._user and self._token)

    @property
    def state(self) -> AuthState:
        if not self._initialized:
            return AuthState.UNINITIALIZED
        if self._is_loading:
            return AuthState.LOADING
        if self.is_authenticated:
            return AuthState.AUTHENTICATED
        return AuthState.UNAUTHENTICATED

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for state changes and return an unsubscribe callback."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def _set_loading(self, value: bool) -> None:
        self._is_loading = value
        self._notify()

    def initialize(self) -> None:
        """Restore a persisted session without touching the network."""

        if self._initialized:
            return
        self._initialized = True
        self._set_loading(True)
        try:
            stored_token = self._store.get_token()
            stored_user = self._store.get_user()
            if stored_token and stored_user:
                self._token = stored_token
                self._user = stored_user
        except Exception:
            logger.exception("Error initializing auth session; clearing stored credentials")
            self._token = None
            self._user = None
            self._store.clear_auth()
        finally:
            self._set_loading(False)

    async def login(self, credentials: LoginCredentials) -> None:
        await self._authenticate(
            self._client.login,
            credentials,
            action="Login",
            invalid_message="Invalid login response",
        )

    async def register(self, credentials: RegisterCredentials) -> None:
        await self._authenticate(
            self._client.register,
            credentials,
            action="Registration",
            invalid_message="Invalid registration response",
        )

    async def _authenticate(
        self,
        call: Callable[..., Awaitable[AuthResponse]],
        credentials: object,
        *,
        action: str,
        invalid_message: str,
    ) -> None:
        self._initialized = True
        self._set_loading(True)
        try:
            response = await call(credentials)
            if not (response.token and response.user):
                raise APIError(invalid_message)
            self._token = response.token
            self._user = response.user
            self._store.set_token(response.token)
            self._store.set_user(response.user)
            logger.info("%s succeeded for user %s", action, response.user.id)
        except Exception as exc:
            logger.warning("%s error: %s", action, exc)
            self.logout()
            raise
        finally:
            self._set_loading(False)

    def logout(self) -> None:
        self._user = None
        self._token = None
        self._store.clear_auth()
        self._notify()


__all__ = ["AuthSessionManager", "AuthState", "Listener"]
