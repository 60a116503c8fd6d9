"""Cache of /api/roles plus role -> permission edges."""

from __future__ import annotations

from iam_console.cancellation import CancelToken
from iam_console.models import Permission, Role
from iam_console.stores.base import OperationResult, ResourceStore
from iam_console.transport.schemas import ResourceSchema


class RoleStore(ResourceStore[Role]):
    name = "roles"
    schema = ResourceSchema(Role, "role", "roles")
    path = "/api/roles"

    async def assign_permission(
        self, role_id: int, permission_id: int, cancel: CancelToken | None = None
    ) -> OperationResult[list[int]]:
        """POST /api/roles/:id/permissions with ``{"permissionId": N}``."""
        return await self._relation_call(
            "assign_permission",
            "POST",
            f"{self.path}/{role_id}/permissions",
            role_id,
            "permissions",
            [permission_id],
            lambda i: Permission(id=i),
            add=True,
            json={"permissionId": permission_id},
            cancel=cancel,
        )

    async def remove_permission(
        self, role_id: int, permission_id: int, cancel: CancelToken | None = None
    ) -> OperationResult[list[int]]:
        return await self._relation_call(
            "remove_permission",
            "DELETE",
            f"{self.path}/{role_id}/permissions/{permission_id}",
            role_id,
            "permissions",
            [permission_id],
            lambda i: Permission(id=i),
            add=False,
            cancel=cancel,
        )
