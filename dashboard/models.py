"""Domain models shared by the dashboard client and proxy."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional

USERS_PER_PAGE = 6


@dataclass(frozen=True)
class User:
    """Identity record for an account held by the external API."""

    id: int
    email: str
    first_name: str
    last_name: str
    avatar: Optional[str] = None

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "User":
        """Create a :class:`User` from a JSON object, ignoring unknown keys."""
        if not isinstance(data, Mapping):
            raise ValueError("User record must be a JSON object")
        try:
            user_id = int(data.get("id") or 0)
        except (TypeError, ValueError) as exc:
            raise ValueError("User record has an invalid id") from exc
        avatar = data.get("avatar")
        return User(
            id=user_id,
            email=str(data.get("email") or ""),
            first_name=str(data.get("first_name") or ""),
            last_name=str(data.get("last_name") or ""),
            avatar=str(avatar) if avatar is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        if payload["avatar"] is None:
            payload.pop("avatar")
        return payload

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class AuthResponse:
    token: Optional[str]
    user: Optional[User]


@dataclass
class Pagination:
    page: int = 1
    per_page: int = USERS_PER_PAGE
    total: int = 0
    total_pages: int = 0


@dataclass(frozen=True)
class UsersPage:
    """One page of the remote user collection."""

    page: int
    per_page: int
    total: int
    total_pages: int
    data: List[User] = field(default_factory=list)

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "UsersPage":
        if not isinstance(data, Mapping):
            raise ValueError("User listing must be a JSON object")
        items = data.get("data") or []
        if not isinstance(items, list):
            raise ValueError("User listing 'data' must be a list")
        for item in items:
            if isinstance(item, Mapping) and item.get("id") in (None, ""):
                raise ValueError("User listing contains a record without an id")
        try:
            return UsersPage(
                page=int(data["page"]),
                per_page=int(data["per_page"]),
                total=int(data["total"]),
                total_pages=int(data["total_pages"]),
                data=[User.from_dict(item) for item in items],
            )
        except (KeyError, TypeError) as exc:
            raise ValueError("User listing is missing pagination fields") from exc

    def pagination(self) -> Pagination:
        return Pagination(
            page=self.page,
            per_page=self.per_page,
            total=self.total,
            total_pages=self.total_pages,
        )


__all__ = ["AuthResponse", "Pagination", "USERS_PER_PAGE", "User", "UsersPage"]
