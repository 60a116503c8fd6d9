"""Cache of /api/permissions."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ValidationError

from iam_console.cancellation import CancelToken
from iam_console.models import Permission, PermissionCreate
from iam_console.stores.base import OperationResult, ResourceStore
from iam_console.transport.schemas import ResourceSchema


class PermissionStore(ResourceStore[Permission]):
    """A permission's (module, action) pair is fixed once created."""

    name = "permissions"
    schema = ResourceSchema(Permission, "permission", "permissions")
    path = "/api/permissions"

    async def create(
        self, draft: BaseModel | dict[str, Any], cancel: CancelToken | None = None
    ) -> OperationResult[Permission]:
        if isinstance(draft, dict):
            try:
                draft = PermissionCreate.model_validate(draft)
            except ValidationError as e:
                return self.fail_locally(f"Invalid permission: {e.errors()[0]['msg']}")
        return await super().create(draft, cancel)

    async def update(
        self, entity: Permission, cancel: CancelToken | None = None
    ) -> OperationResult[Permission]:
        cached = self.get(entity.id)
        if cached is not None and (
            cached.module_id != entity.module_id or cached.action != entity.action
        ):
            return self.fail_locally(
                "A permission's module and action cannot be changed after creation."
            )
        return await super().update(entity, cancel)
