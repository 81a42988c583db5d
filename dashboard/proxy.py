"""FastAPI service that forwards dashboard requests to the external user API."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from .config import ProxySettings, load_proxy_settings

logger = logging.getLogger("dashboard.proxy")

INTERNAL_ERROR_BODY = {"error": "Internal server error"}


def _error_response(response: httpx.Response, default: str) -> JSONResponse:
    try:
        payload = response.json()
    except ValueError:
        payload = {}
    message = payload.get("error") if isinstance(payload, dict) else None
    if not isinstance(message, str) or not message.strip():
        message = default
    return JSONResponse({"error": message}, status_code=response.status_code)


def _relay(response: httpx.Response, default_error: str) -> JSONResponse:
    if not response.is_success:
        return _error_response(response, default_error)
    return JSONResponse(response.json(), status_code=response.status_code)


async def _guarded(description: str, call: Callable[[], Awaitable[JSONResponse]]) -> JSONResponse:
    try:
        return await call()
    except Exception:
        logger.exception("%s API error", description)
        return JSONResponse(INTERNAL_ERROR_BODY, status_code=500)


def create_app(
    settings: Optional[ProxySettings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Create the proxy application.

    Raises :class:`RuntimeError` when the external API location or secret key
    is not configured.
    """

    if settings is None:
        settings = load_proxy_settings()

    upstream = httpx.AsyncClient(
        base_url=settings.base_url,
        headers={"Content-Type": "application/json", "x-api-key": settings.api_key},
        timeout=settings.timeout,
        transport=transport,
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            await upstream.aclose()

    app = FastAPI(
        title="User Dashboard Proxy",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=list(settings.trusted_proxies))
    app.state.settings = settings
    app.state.upstream = upstream

    logger.info("Proxying dashboard requests to %s", settings.base_url)

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/auth/login")
    async def login(request: Request) -> JSONResponse:
        async def _call() -> JSONResponse:
            body = await request.json()
            response = await upstream.post("/login", json=body)
            return _relay(response, "Login failed")

        return await _guarded("Login", _call)

    @app.post("/api/auth/register")
    async def register(request: Request) -> JSONResponse:
        async def _call() -> JSONResponse:
            body = await request.json()
            response = await upstream.post("/register", json=body)
            return _relay(response, "Registration failed")

        return await _guarded("Register", _call)

    @app.get("/api/auth/user/{email}")
    async def user_by_email(email: str) -> JSONResponse:
        async def _call() -> JSONResponse:
            if not email.strip():
                return JSONResponse({"error": "Email is required"}, status_code=400)

            page = 1
            while True:
                response = await upstream.get("/users", params={"page": page})
                if not response.is_success:
                    return _error_response(response, "Failed to fetch users")
                listing: Dict[str, Any] = response.json()
                for candidate in listing.get("data") or []:
                    if candidate.get("email") == email:
                        return JSONResponse(candidate)
                total_pages = int(listing.get("total_pages") or 1)
                if page >= total_pages:
                    break
                page += 1

            return JSONResponse({"error": "User not found"}, status_code=404)

        return await _guarded("User lookup", _call)

    @app.get("/api/users")
    async def list_users(page: str = "1", per_page: str = "6") -> JSONResponse:
        async def _call() -> JSONResponse:
            response = await upstream.get("/users", params={"page": page, "per_page": per_page})
            return _relay(response, "Failed to fetch users")

        return await _guarded("Users", _call)

    @app.post("/api/users")
    async def create_user(request: Request) -> JSONResponse:
        async def _call() -> JSONResponse:
            body = await request.json()
            response = await upstream.post("/users", json=body)
            return _relay(response, "Failed to create user")

        return await _guarded("Create user", _call)

    @app.put("/api/users/{user_id}")
    async def update_user(user_id: str, request: Request) -> JSONResponse:
        async def _call() -> JSONResponse:
            body = await request.json()
            response = await upstream.put(f"/users/{user_id}", json=body)
            return _relay(response, "Failed to update user")

        return await _guarded("Update user", _call)

    @app.delete("/api/users/{user_id}")
    async def delete_user(user_id: str) -> JSONResponse:
        async def _call() -> JSONResponse:
            response = await upstream.delete(f"/users/{user_id}")
            if not response.is_success:
                return _error_response(response, "Failed to delete user")
            return JSONResponse({"success": True})

        return await _guarded("Delete user", _call)

    return app


__all__ = ["create_app"]
