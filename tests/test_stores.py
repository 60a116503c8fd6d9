"""Tests for the resource stores and their cache reconciliation."""

from __future__ import annotations

import pytest

from conftest import body_of
from iam_console.cancellation import CancelToken
from iam_console.models import Permission, Role
from iam_console.stores import (
    GroupStore,
    ModuleStore,
    PermissionStore,
    Phase,
    RoleStore,
    UserStore,
)
from iam_console.stores.base import BaseStore


@pytest.fixture
def roles(client):
    return RoleStore(client)


@pytest.fixture
def groups(client):
    return GroupStore(client)


async def _seed(store, backend, path, items):
    backend.on("GET", path, json=items)
    result = await store.fetch_all()
    assert result.ok
    backend.routes.pop(("GET", path))


# ---------------------------------------------------------------------------
# fetch / create / update / delete
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_fetch_all_replaces_items(roles, backend):
    backend.on(
        "GET", "/api/roles",
        json={"roles": [{"id": 1, "name": "Admin", "permissions": []}]},
    )

    result = await roles.fetch_all()

    assert result.ok
    assert [r.name for r in roles.items] == ["Admin"]
    s = roles.state
    assert s.phase is Phase.fulfilled
    assert s.success and not s.error and not s.loading
    assert s.message == ""


@pytest.mark.asyncio
async def test_fetch_failure_keeps_cached_items(roles, backend):
    await _seed(roles, backend, "/api/roles", [{"id": 1, "name": "Admin"}])
    backend.on("GET", "/api/roles", status=500, json={"message": "Database down"})

    result = await roles.fetch_all()

    assert not result.ok
    assert result.message == "Database down"
    assert roles.state.error
    assert roles.state.message == "Database down"
    assert roles.state.phase is Phase.rejected
    assert [r.id for r in roles.items] == [1]


@pytest.mark.asyncio
async def test_shape_mismatch_rejects(roles, backend):
    backend.on("GET", "/api/roles", json={"data": []})

    result = await roles.fetch_all()

    assert result.status is Phase.rejected
    assert roles.items == []


@pytest.mark.asyncio
async def test_success_clears_previous_error(roles, backend):
    backend.on("GET", "/api/roles", status=500, json={"message": "boom"})
    backend.on("GET", "/api/roles", json=[])

    await roles.fetch_all()
    assert roles.state.error
    await roles.fetch_all()

    assert not roles.state.error
    assert roles.state.message == ""


@pytest.mark.asyncio
async def test_create_appends_server_entity(groups, backend):
    await _seed(groups, backend, "/api/groups", [{"id": 1, "name": "A"}, {"id": 2, "name": "B"}])
    backend.on("POST", "/api/groups", status=201, json={"group": {"id": 3, "name": "Ops"}})

    result = await groups.create({"name": "Ops"})

    assert result.ok
    assert result.value.id == 3
    assert [g.id for g in groups.items] == [1, 2, 3]
    assert body_of(backend.calls("POST", "/api/groups")[0]) == {"name": "Ops"}


@pytest.mark.asyncio
async def test_create_rejected_leaves_cache(groups, backend):
    await _seed(groups, backend, "/api/groups", [{"id": 1, "name": "A"}])
    backend.on("POST", "/api/groups", status=400, json={"message": "Name taken"})

    result = await groups.create({"name": "A"})

    assert result.message == "Name taken"
    assert [g.id for g in groups.items] == [1]


@pytest.mark.asyncio
async def test_update_replaces_in_place(roles, backend):
    await _seed(
        roles, backend, "/api/roles",
        [{"id": 1, "name": "A"}, {"id": 2, "name": "B"}, {"id": 3, "name": "C"}],
    )
    backend.on("PUT", "/api/roles/2", json={"id": 2, "name": "Bee"})

    result = await roles.update(Role(id=2, name="Bee"))

    assert result.ok
    assert [r.name for r in roles.items] == ["A", "Bee", "C"]


@pytest.mark.asyncio
async def test_update_with_message_only_body_uses_sent_entity(roles, backend):
    await _seed(roles, backend, "/api/roles", [{"id": 1, "name": "A"}])
    backend.on("PUT", "/api/roles/1", json={"message": "Role updated"})

    result = await roles.update(Role(id=1, name="Renamed"))

    assert result.ok
    assert roles.get(1).name == "Renamed"


@pytest.mark.asyncio
async def test_delete_removes_entity(client, backend):
    users = UserStore(client)
    await _seed(users, backend, "/api/users", [{"id": 1, "username": "a"}, {"id": 2, "username": "b"}])
    backend.on("DELETE", "/api/users/1", json={"message": "Deleted"})

    result = await users.delete(1)

    assert result.ok
    assert [u.id for u in users.items] == [2]


@pytest.mark.asyncio
async def test_delete_of_unknown_id_is_a_noop_on_cache(client, backend):
    users = UserStore(client)
    await _seed(users, backend, "/api/users", [{"id": 1, "username": "a"}])
    backend.on("DELETE", "/api/users/99", status=204)

    result = await users.delete(99)

    assert result.ok
    assert [u.id for u in users.items] == [1]


@pytest.mark.asyncio
async def test_cancelled_operation_does_not_touch_cache(roles, backend):
    await _seed(roles, backend, "/api/roles", [{"id": 1, "name": "A"}])
    backend.on("GET", "/api/roles", json=[])
    token = CancelToken()
    token.cancel()

    result = await roles.fetch_all(token)

    assert result.status is Phase.cancelled
    assert roles.state.phase is Phase.cancelled
    assert [r.id for r in roles.items] == [1]


@pytest.mark.asyncio
async def test_subscribers_see_pending_then_fulfilled(roles, backend):
    backend.on("GET", "/api/roles", json=[])
    phases = []
    unsubscribe = roles.subscribe(lambda s: phases.append(s.phase))

    await roles.fetch_all()
    unsubscribe()
    await roles.fetch_all()

    assert phases == [Phase.pending, Phase.fulfilled]


def test_reset_returns_to_idle_and_keeps_items(roles):
    roles.fail_locally("boom")
    roles.state.items = [Role(id=1, name="A")]

    roles.reset()

    assert roles.state.phase is Phase.idle
    assert not roles.state.error
    assert roles.state.message == ""
    assert len(roles.items) == 1


# ---------------------------------------------------------------------------
# relationship edges
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_assign_users_single_call_and_idempotent_patch(groups, backend):
    await _seed(groups, backend, "/api/groups", [{"id": 5, "name": "Ops", "users": [{"id": 1}]}])
    backend.on("POST", "/api/groups/5/users", json={"message": "Users added"})

    result = await groups.assign_users(5, [1, 2])

    assert result.ok
    assert body_of(backend.calls("POST", "/api/groups/5/users")[0]) == {"userIds": [1, 2]}
    assert [u.id for u in groups.get(5).users] == [1, 2]


@pytest.mark.asyncio
async def test_remove_user_absent_is_noop(groups, backend):
    await _seed(groups, backend, "/api/groups", [{"id": 5, "name": "Ops", "users": [{"id": 1}]}])
    backend.on("DELETE", "/api/groups/5/users/7", json={"message": "Removed"})

    result = await groups.remove_user(5, 7)

    assert result.ok
    assert [u.id for u in groups.get(5).users] == [1]


@pytest.mark.asyncio
async def test_remove_user_present(groups, backend):
    await _seed(
        groups, backend, "/api/groups",
        [{"id": 5, "name": "Ops", "users": [{"id": 1}, {"id": 2}]}],
    )
    backend.on("DELETE", "/api/groups/5/users/1", status=204)

    await groups.remove_user(5, 1)

    assert [u.id for u in groups.get(5).users] == [2]


@pytest.mark.asyncio
async def test_assign_and_remove_role_on_group(groups, backend):
    await _seed(groups, backend, "/api/groups", [{"id": 5, "name": "Ops"}])
    backend.on("POST", "/api/groups/5/roles", json={"message": "ok"})
    backend.on("DELETE", "/api/groups/5/roles/3", json={"message": "ok"})

    await groups.assign_role(5, 3)
    assert body_of(backend.calls("POST", "/api/groups/5/roles")[0]) == {"roleId": 3}
    assert [r.id for r in groups.get(5).roles] == [3]

    await groups.remove_role(5, 3)
    assert groups.get(5).roles == []


@pytest.mark.asyncio
async def test_failed_association_does_not_patch(groups, backend):
    await _seed(groups, backend, "/api/groups", [{"id": 5, "name": "Ops"}])
    backend.on("POST", "/api/groups/5/roles", status=404, json={"message": "Role not found"})

    result = await groups.assign_role(5, 3)

    assert result.message == "Role not found"
    assert groups.get(5).roles == []


@pytest.mark.asyncio
async def test_assign_permission_to_role(roles, backend):
    await _seed(
        roles, backend, "/api/roles",
        [{"id": 2, "name": "Editor", "permissions": [{"id": 4, "action": "read"}]}],
    )
    backend.on("POST", "/api/roles/2/permissions", json={"message": "ok"})

    await roles.assign_permission(2, 5)
    await roles.assign_permission(2, 5)

    assert len(backend.calls("POST", "/api/roles/2/permissions")) == 2
    assert body_of(backend.requests[-1]) == {"permissionId": 5}
    assert [p.id for p in roles.get(2).permissions] == [4, 5]


@pytest.mark.asyncio
async def test_remove_permission_from_role(roles, backend):
    await _seed(roles, backend, "/api/roles", [{"id": 2, "name": "Editor", "permissions": [{"id": 4}]}])
    backend.on("DELETE", "/api/roles/2/permissions/4", json={"message": "ok"})

    await roles.remove_permission(2, 4)

    assert roles.get(2).permissions == []


@pytest.mark.asyncio
async def test_edge_on_uncached_owner_is_ignored(groups, backend):
    backend.on("POST", "/api/groups/9/users", json={"message": "ok"})

    result = await groups.assign_users(9, [1])

    assert result.ok
    assert groups.items == []


# ---------------------------------------------------------------------------
# permissions and modules
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_permission_create_validates_before_sending(client, backend):
    permissions = PermissionStore(client)

    result = await permissions.create({"module_id": 1, "action": "fly"})

    assert result.status is Phase.rejected
    assert result.message.startswith("Invalid permission")
    assert backend.requests == []


@pytest.mark.asyncio
async def test_permission_create_sends_module_and_action(client, backend):
    permissions = PermissionStore(client)
    backend.on("POST", "/api/permissions", json={"id": 8, "module_id": 1, "action": "read"})

    result = await permissions.create({"module_id": 1, "action": "read"})

    assert result.ok
    assert body_of(backend.requests[0]) == {"action": "read", "module_id": 1}


@pytest.mark.asyncio
async def test_permission_module_and_action_are_immutable(client, backend):
    permissions = PermissionStore(client)
    await _seed(permissions, backend, "/api/permissions", [{"id": 8, "module_id": 1, "action": "read"}])

    result = await permissions.update(Permission(id=8, module_id=1, action="delete"))

    assert result.status is Phase.rejected
    assert "cannot be changed" in result.message
    assert backend.calls("PUT", "/api/permissions/8") == []


@pytest.mark.asyncio
async def test_module_name_lookup(client, backend):
    modules = ModuleStore(client)
    await _seed(modules, backend, "/api/modules", [{"id": 1, "name": "Users"}])

    assert modules.name_of(1) == "Users"
    assert modules.name_of(2) == "Unknown"
    assert modules.name_of(None) == "Unknown"


def test_base_store_requires_state(client):
    with pytest.raises(TypeError):
        BaseStore(client)
