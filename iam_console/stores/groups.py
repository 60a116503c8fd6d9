"""Cache of /api/groups plus user and role membership edges."""

from __future__ import annotations

from iam_console.cancellation import CancelToken
from iam_console.models import Group, Role, User
from iam_console.stores.base import OperationResult, ResourceStore
from iam_console.transport.schemas import ResourceSchema


class GroupStore(ResourceStore[Group]):
    name = "groups"
    schema = ResourceSchema(Group, "group", "groups")
    path = "/api/groups"

    async def assign_users(
        self, group_id: int, user_ids: list[int], cancel: CancelToken | None = None
    ) -> OperationResult[list[int]]:
        """POST /api/groups/:id/users with ``{"userIds": [...]}``."""
        return await self._relation_call(
            "assign_users",
            "POST",
            f"{self.path}/{group_id}/users",
            group_id,
            "users",
            list(user_ids),
            lambda i: User(id=i),
            add=True,
            json={"userIds": list(user_ids)},
            cancel=cancel,
        )

    async def remove_user(
        self, group_id: int, user_id: int, cancel: CancelToken | None = None
    ) -> OperationResult[list[int]]:
        return await self._relation_call(
            "remove_user",
            "DELETE",
            f"{self.path}/{group_id}/users/{user_id}",
            group_id,
            "users",
            [user_id],
            lambda i: User(id=i),
            add=False,
            cancel=cancel,
        )

    async def assign_role(
        self, group_id: int, role_id: int, cancel: CancelToken | None = None
    ) -> OperationResult[list[int]]:
        """POST /api/groups/:id/roles with ``{"roleId": N}``."""
        return await self._relation_call(
            "assign_role",
            "POST",
            f"{self.path}/{group_id}/roles",
            group_id,
            "roles",
            [role_id],
            lambda i: Role(id=i),
            add=True,
            json={"roleId": role_id},
            cancel=cancel,
        )

    async def remove_role(
        self, group_id: int, role_id: int, cancel: CancelToken | None = None
    ) -> OperationResult[list[int]]:
        return await self._relation_call(
            "remove_role",
            "DELETE",
            f"{self.path}/{group_id}/roles/{role_id}",
            group_id,
            "roles",
            [role_id],
            lambda i: Role(id=i),
            add=False,
            cancel=cancel,
        )
