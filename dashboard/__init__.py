"""Client-side session and user management for the user dashboard."""

from __future__ import annotations

from typing import Any

from .models import Pagination, User, UsersPage
from .storage import SessionStore, open_session_store


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the request-forwarding proxy application."""

    from .proxy import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "Pagination",
    "SessionStore",
    "User",
    "UsersPage",
    "create_app",
    "open_session_store",
]
