"""Async HTTP client for the dashboard proxy endpoints."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote

import httpx

from .config import DEFAULT_REQUEST_TIMEOUT
from .models import USERS_PER_PAGE, AuthResponse, User, UsersPage

AUTH_BASE = "/api/auth"
USERS_BASE = "/api/users"


class APIError(Exception):
    """Raised for every failure talking to the dashboard API."""

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.cause = cause

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class LoginCredentials:
    email: str
    password: str


@dataclass(frozen=True)
class RegisterCredentials:
    email: str
    password: str
    first_name: str
    last_name: str


def _normalize_base_url(base_url: str) -> str:
    cleaned = (base_url or "").strip()
    if not cleaned:
        raise ValueError("API base URL must not be empty")
    return cleaned.rstrip("/")


def _extract_error_message(payload: object, default: str) -> str:
    if isinstance(payload, dict):
        for key in ("error", "message", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return default


class APIClient:
    """Talk to the authentication and user endpoints of the proxy.

    Errors are normalised into :class:`APIError` and never recovered here;
    callers decide what to do with them.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = _normalize_base_url(base_url)
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def __aenter__(self) -> "APIClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Mapping[str, Any]] = None,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.HTTPError as exc:
            raise APIError(f"Failed to contact dashboard API: {exc}", cause=exc) from exc

        if not response.is_success:
            try:
                payload = response.json()
            except ValueError:
                payload = {}
            message = _extract_error_message(
                payload, f"HTTP error! status: {response.status_code}"
            )
            raise APIError(message, status=response.status_code)

        try:
            return response.json()
        except ValueError as exc:
            raise APIError(
                "Dashboard API returned an invalid response",
                status=response.status_code,
                cause=exc,
            ) from exc

    async def _request_object(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        data = await self._request(method, path, **kwargs)
        if not isinstance(data, dict):
            raise APIError("Dashboard API returned an unexpected response payload")
        return data

    @staticmethod
    def _parse_user(data: Mapping[str, Any]) -> User:
        try:
            return User.from_dict(data)
        except ValueError as exc:
            raise APIError(f"Dashboard API returned an invalid user record: {exc}", cause=exc) from exc

    # Authentication

    async def login(self, credentials: LoginCredentials) -> AuthResponse:
        """Exchange credentials for a token, then look up the full user record."""

        data = await self._request_object(
            "POST",
            f"{AUTH_BASE}/login",
            json={"email": credentials.email, "password": credentials.password},
        )
        user = await self.get_user_by_email(credentials.email)
        token = data.get("token")
        return AuthResponse(token=str(token) if token else None, user=user)

    async def register(self, credentials: RegisterCredentials) -> AuthResponse:
        """Register an account.

        The endpoint only answers with ``id`` and ``token``, so the user
        record is assembled from the submitted fields.
        """

        data = await self._request_object(
            "POST",
            f"{AUTH_BASE}/register",
            json={
                "email": credentials.email,
                "password": credentials.password,
                "first_name": credentials.first_name,
                "last_name": credentials.last_name,
            },
        )
        user: Optional[User] = None
        if data.get("id") is not None:
            user = self._parse_user(
                {
                    "id": data["id"],
                    "email": credentials.email,
                    "first_name": credentials.first_name,
                    "last_name": credentials.last_name,
                    "avatar": "",
                }
            )
        token = data.get("token")
        return AuthResponse(token=str(token) if token else None, user=user)

    async def get_user_by_email(self, email: str) -> User:
        data = await self._request_object("GET", f"{AUTH_BASE}/user/{quote(email, safe='')}")
        return self._parse_user(data)

    # Users

    async def get_users(self, page: int = 1, per_page: int = USERS_PER_PAGE) -> UsersPage:
        data = await self._request_object(
            "GET", USERS_BASE, params={"page": page, "per_page": per_page}
        )
        try:
            return UsersPage.from_dict(data)
        except ValueError as exc:
            raise APIError(f"Dashboard API returned an invalid user listing: {exc}", cause=exc) from exc

    async def create_user(self, data: Mapping[str, Any]) -> User:
        """Create a user; the server may only echo back the submitted fields."""

        created = await self._request_object("POST", USERS_BASE, json=dict(data))
        return self._parse_user(created)

    async def update_user(self, user_id: int, data: Mapping[str, Any]) -> User:
        updated = await self._request_object("PUT", f"{USERS_BASE}/{user_id}", json=dict(data))
        return self._parse_user({"id": user_id, **updated})

    async def delete_user(self, user_id: int) -> Dict[str, bool]:
        data = await self._request_object("DELETE", f"{USERS_BASE}/{user_id}")
        return {"success": bool(data.get("success"))}


__all__ = [
    "APIClient",
    "APIError",
    "AUTH_BASE",
    "LoginCredentials",
    "RegisterCredentials",
    "USERS_BASE",
]
