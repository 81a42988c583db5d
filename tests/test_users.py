from __future__ import annotations

from dataclasses import replace

import anyio
import pytest

import dashboard.users as users_module
from dashboard.api_client import APIError
from dashboard.models import Pagination, User, UsersPage
from dashboard.users import UserListManager, build_avatar_url

from fakes import FakeAPIClient, make_user


U1 = make_user(1, "George", "Bluth")


def _page(page: int, users, *, total: int = 12, total_pages: int = 2) -> UsersPage:
    return UsersPage(page=page, per_page=6, total=total, total_pages=total_pages, data=list(users))


def _activated(client: FakeAPIClient, initial_page: int = 1) -> UserListManager:
    manager = UserListManager(client, initial_page=initial_page)  # type: ignore[arg-type]
    anyio.run(manager.activate)
    return manager


def test_manager_is_loading_before_activation() -> None:
    manager = UserListManager(FakeAPIClient())  # type: ignore[arg-type]

    assert manager.is_loading is True
    assert manager.users == []
    assert manager.error is None
    assert manager.pagination == Pagination(page=1, per_page=6, total=0, total_pages=0)


def test_activation_loads_first_page() -> None:
    client = FakeAPIClient()
    client.pages[1] = _page(1, [U1])

    manager = _activated(client)

    assert manager.users == [U1]
    assert manager.pagination == Pagination(page=1, per_page=6, total=12, total_pages=2)
    assert manager.is_loading is False
    assert client.calls_to("get_users") == [(1, 6)]


def test_activation_uses_initial_page() -> None:
    client = FakeAPIClient()
    client.pages[2] = _page(2, [make_user(7)])

    manager = _activated(client, initial_page=2)

    assert manager.pagination.page == 2
    assert client.calls_to("get_users") == [(2, 6)]


def test_fetch_failure_sets_error_and_keeps_users() -> None:
    client = FakeAPIClient()
    client.errors["get_users"] = APIError("Failed to fetch users")

    manager = _activated(client)

    assert manager.error == "Failed to fetch users"
    assert manager.users == []
    assert manager.is_loading is False


def test_failed_refetch_preserves_existing_list() -> None:
    client = FakeAPIClient()
    client.pages[1] = _page(1, [U1])
    manager = _activated(client)

    client.errors["get_users"] = APIError("Service unavailable", status=503)
    anyio.run(manager.fetch, 1)

    assert manager.error == "Service unavailable"
    assert manager.users == [U1]

    del client.errors["get_users"]
    anyio.run(manager.fetch, 1)
    assert manager.error is None


def test_go_to_page_fetches_requested_page() -> None:
    client = FakeAPIClient()
    client.pages[1] = _page(1, [U1])
    client.pages[2] = _page(2, [make_user(7)])
    manager = _activated(client)

    anyio.run(manager.go_to_page, 2)

    assert client.calls_to("get_users") == [(1, 6), (2, 6)]
    assert manager.pagination.page == 2
    assert [user.id for user in manager.users] == [7]


@pytest.mark.parametrize("page", [0, -1, 3, 99])
def test_go_to_page_out_of_range_is_a_no_op(page: int) -> None:
    client = FakeAPIClient()
    client.pages[1] = _page(1, [U1])
    manager = _activated(client)

    anyio.run(manager.go_to_page, page)

    assert client.calls_to("get_users") == [(1, 6)]
    assert manager.pagination.page == 1


def test_go_to_page_before_any_fetch_is_a_no_op() -> None:
    client = FakeAPIClient()
    manager = UserListManager(client)  # type: ignore[arg-type]

    anyio.run(manager.go_to_page, 1)

    assert client.calls == []


def test_create_prepends_synthesized_record() -> None:
    client = FakeAPIClient()
    client.pages[1] = _page(1, [])
    client.created = User(id=0, email="jane@example.com", first_name="Jane", last_name="Smith")
    manager = _activated(client)

    data = {"email": "jane@example.com", "first_name": "Jane", "last_name": "Smith", "job": "Developer"}
    created = anyio.run(manager.create, data)

    assert created.email == "jane@example.com"
    assert created.first_name == "Jane"
    assert created.id > 0
    assert created.avatar == build_avatar_url("Jane", "Smith")
    assert manager.users == [created]
    assert client.calls_to("create_user") == [(data,)]


def test_create_caps_list_and_leaves_totals_stale() -> None:
    client = FakeAPIClient()
    existing = [make_user(index) for index in range(1, 7)]
    client.pages[1] = _page(1, existing)
    manager = _activated(client)

    created = anyio.run(
        manager.create, {"email": "new@example.com", "first_name": "New", "last_name": "Person"}
    )

    assert len(manager.users) == 6
    assert manager.users[0] == created
    assert manager.users[1:] == existing[:5]
    # Local creates are not reconciled with the server totals.
    assert manager.pagination.total == 12
    assert manager.pagination.total_pages == 2


def test_temporary_ids_are_monotonic(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(users_module.time, "time", lambda: 1_700_000_000.0)
    client = FakeAPIClient()
    client.pages[1] = _page(1, [])
    manager = _activated(client)

    first = anyio.run(manager.create, {"email": "a@example.com", "first_name": "A", "last_name": "One"})
    second = anyio.run(manager.create, {"email": "b@example.com", "first_name": "B", "last_name": "Two"})

    assert first.id == 1_700_000_000_000
    assert second.id == 1_700_000_000_001


def test_create_failure_leaves_list_untouched() -> None:
    client = FakeAPIClient()
    client.pages[1] = _page(1, [U1])
    client.errors["create_user"] = APIError("Failed to create user", status=400)
    manager = _activated(client)

    with pytest.raises(APIError, match="Failed to create user"):
        anyio.run(manager.create, {"email": "x@example.com", "first_name": "X", "last_name": "Y"})

    assert manager.users == [U1]


def test_update_patches_matching_user_in_place() -> None:
    client = FakeAPIClient()
    other = make_user(2, "Janet", "Weaver")
    client.pages[1] = _page(1, [U1, other])
    manager = _activated(client)

    anyio.run(manager.update, 1, {"first_name": "Johnny", "last_name": "Doe"})

    assert [user.id for user in manager.users] == [1, 2]
    assert manager.users[0] == replace(
        U1, first_name="Johnny", last_name="Doe", avatar=build_avatar_url("Johnny", "Doe")
    )
    assert manager.users[1] == other
    assert client.calls_to("update_user") == [(1, {"first_name": "Johnny", "last_name": "Doe"})]


def test_update_without_name_change_keeps_avatar() -> None:
    client = FakeAPIClient()
    client.pages[1] = _page(1, [U1])
    manager = _activated(client)

    anyio.run(manager.update, 1, {"email": "george@bluth.example"})

    assert manager.users[0].email == "george@bluth.example"
    assert manager.users[0].avatar == U1.avatar


def test_update_with_blank_first_name_keeps_stored_name_in_avatar() -> None:
    client = FakeAPIClient()
    client.pages[1] = _page(1, [U1])
    manager = _activated(client)

    anyio.run(manager.update, 1, {"first_name": "", "last_name": "Doe"})

    assert manager.users[0].last_name == "Doe"
    assert manager.users[0].avatar == build_avatar_url("George", "Doe")
    assert "name=George+Doe" in (manager.users[0].avatar or "")


def test_update_failure_leaves_list_untouched() -> None:
    client = FakeAPIClient()
    client.pages[1] = _page(1, [U1])
    client.errors["update_user"] = APIError("Failed to update user")
    manager = _activated(client)

    with pytest.raises(APIError):
        anyio.run(manager.update, 1, {"first_name": "Johnny"})

    assert manager.users == [U1]


def test_delete_removes_only_matching_user() -> None:
    client = FakeAPIClient()
    users = [make_user(index) for index in (1, 2, 3)]
    client.pages[1] = _page(1, users)
    manager = _activated(client)

    anyio.run(manager.delete, 2)

    assert manager.users == [users[0], users[2]]
    assert client.calls_to("delete_user") == [(2,)]


def test_delete_failure_leaves_list_untouched() -> None:
    client = FakeAPIClient()
    client.pages[1] = _page(1, [U1])
    client.errors["delete_user"] = APIError("Failed to delete user")
    manager = _activated(client)

    with pytest.raises(APIError):
        anyio.run(manager.delete, 1)

    assert manager.users == [U1]


def test_avatar_url_encodes_names() -> None:
    assert build_avatar_url("Mary Ann", "O'Neil") == (
        "https://ui-avatars.com/api/?name=Mary+Ann+O%27Neil&background=3b82f6&color=fff"
    )


class _DelayedUpdateClient(FakeAPIClient):
    """Answers each update after a per-email delay."""

    def __init__(self, delays) -> None:
        super().__init__()
        self.delays = delays

    async def update_user(self, user_id, data):
        await anyio.sleep(self.delays.get(data.get("email"), 0))
        return await super().update_user(user_id, data)


def test_concurrent_updates_to_different_users_both_land() -> None:
    other = make_user(2, "Janet", "Weaver")
    client = _DelayedUpdateClient({"george@bluth.example": 0.05})
    client.pages[1] = _page(1, [U1, other])
    manager = _activated(client)

    async def _both() -> None:
        async with anyio.create_task_group() as group:
            group.start_soon(manager.update, 1, {"email": "george@bluth.example"})
            group.start_soon(manager.update, 2, {"email": "janet@weaver.example"})

    anyio.run(_both)

    assert [user.email for user in manager.users] == ["george@bluth.example", "janet@weaver.example"]


def test_concurrent_updates_to_same_user_last_response_wins() -> None:
    client = _DelayedUpdateClient({"slow@bluth.example": 0.05})
    client.pages[1] = _page(1, [U1])
    manager = _activated(client)

    async def _both() -> None:
        async with anyio.create_task_group() as group:
            group.start_soon(manager.update, 1, {"email": "slow@bluth.example"})
            group.start_soon(manager.update, 1, {"email": "fast@bluth.example"})

    anyio.run(_both)

    assert len(client.calls_to("update_user")) == 2
    assert manager.users[0].email == "slow@bluth.example"
