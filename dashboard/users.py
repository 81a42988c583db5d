"""Paginated state for the remote user collection."""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote_plus

from .api_client import APIClient, APIError
from .models import USERS_PER_PAGE, Pagination, User

logger = logging.getLogger("dashboard.users")

AVATAR_URL_TEMPLATE = "https://ui-avatars.com/api/?name={name}&background=3b82f6&color=fff"

_EDITABLE_FIELDS = ("email", "first_name", "last_name", "avatar")


def build_avatar_url(first_name: str, last_name: str) -> str:
    name = f"{quote_plus(first_name or '')}+{quote_plus(last_name or '')}"
    return AVATAR_URL_TEMPLATE.format(name=name)


class UserListManager:
    """Keep one page of users in sync with the remote collection.

    Read failures are recorded in :attr:`error`; writes raise and leave the local
    list untouched. Creates and updates patch the list locally without
    re-fetching, so ``pagination.total`` and ``pagination.total_pages`` stay
    as they were until the next :meth:`fetch`.
    """

    def __init__(self, client: APIClient, *, initial_page: int = 1) -> None:
        self._client = client
        self._initial_page = initial_page
        self.users: List[User] = []
        self.pagination = Pagination(page=initial_page, per_page=USERS_PER_PAGE)
        self.is_loading = True
        self.error: Optional[str] = None
        self._last_temporary_id = 0

    async def activate(self) -> None:
        await self.fetch(self._initial_page)

    async def fetch(self, page: int = 1) -> None:
        self.is_loading = True
        self.error = None
        try:
            response = await self._client.get_users(page, USERS_PER_PAGE)
        except APIError as exc:
            self.error = str(exc) or "Failed to fetch users"
            logger.warning("Fetching users page %s failed: %s", page, self.error)
        else:
            self.users = list(response.data)
            self.pagination = response.pagination()
        finally:
            self.is_loading = False

    def _next_temporary_id(self) -> int:
        candidate = int(time.time() * 1000)
        if candidate <= self._last_temporary_id:
            candidate = self._last_temporary_id + 1
        self._last_temporary_id = candidate
        return candidate

    async def create(self, data: Mapping[str, Any]) -> User:
        created = await self._client.create_user(data)

        record: Dict[str, Any] = dict(data)
        for key, value in created.to_dict().items():
            if key != "id" and value:
                record[key] = value
        record["id"] = self._next_temporary_id()
        record["avatar"] = build_avatar_url(
            str(record.get("first_name") or ""), str(record.get("last_name") or "")
        )
        user = User.from_dict(record)

        self.users = [user, *self.users[: USERS_PER_PAGE - 1]]
        return user

    async def update(self, user_id: int, data: Mapping[str, Any]) -> User:
        updated = await self._client.update_user(user_id, data)

        changes = {key: data[key] for key in _EDITABLE_FIELDS if key in data}
        patched: List[User] = []
        for user in self.users:
            if user.id == user_id:
                patch = dict(changes)
                if data.get("first_name") or data.get("last_name"):
                    patch["avatar"] = build_avatar_url(
                        str(data.get("first_name") or user.first_name),
                        str(data.get("last_name") or user.last_name),
                    )
                user = replace(user, **patch)
            patched.append(user)
        self.users = patched
        return updated

    async def delete(self, user_id: int) -> None:
        await self._client.delete_user(user_id)
        self.users = [user for user in self.users if user.id != user_id]

    async def go_to_page(self, page: int) -> None:
        if 1 <= page <= self.pagination.total_pages:
            await self.fetch(page)


__all__ = ["AVATAR_URL_TEMPLATE", "UserListManager", "build_avatar_url"]
