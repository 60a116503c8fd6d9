"""Headless page controllers: one per entity, gated by the principal's permissions."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from iam_console.cancellation import CancelToken
from iam_console.gate import PermissionDeniedNotice, check_permission, has_permission
from iam_console.models import Entity, Group, Module, Permission, PermissionGrant, Role, User
from iam_console.stores.base import OperationResult, ResourceStore
from iam_console.stores.groups import GroupStore
from iam_console.stores.modules import ModuleStore
from iam_console.stores.permissions import PermissionStore
from iam_console.stores.roles import RoleStore
from iam_console.stores.users import UserStore

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Entity)

PermissionSource = Callable[[], list[PermissionGrant]]

PageOutcome = OperationResult[Any] | PermissionDeniedNotice


def _as_dict(data: BaseModel | dict[str, Any]) -> dict[str, Any]:
    if isinstance(data, BaseModel):
        return data.model_dump(exclude_unset=True)
    return dict(data)


class EntityPage(Generic[E]):
    """List/create/update/delete screen for one resource.

    Every mutation is checked against the principal's permissions first;
    denials come back as a PermissionDeniedNotice and nothing is sent.
    """

    module: ClassVar[str]

    def __init__(
        self,
        store: ResourceStore[E],
        permissions: PermissionSource,
        refetch_after_mutation: bool = True,
    ) -> None:
        self.store = store
        self._permissions = permissions
        self.refetch_after_mutation = refetch_after_mutation
        self._cancel = CancelToken()

    @property
    def items(self) -> list[E]:
        return self.store.items

    def can(self, action: str) -> bool:
        return has_permission(self._permissions(), self.module, action)

    def guard(self, action: str, what: str | None = None) -> PermissionDeniedNotice | None:
        notice = check_permission(self._permissions(), self.module, action, what)
        if notice is not None:
            logger.info("Denied locally: %s %s", action, self.module)
        return notice

    def _token(self) -> CancelToken:
        if self._cancel.cancelled:
            self._cancel = CancelToken()
        return self._cancel

    async def mount(self) -> OperationResult[list[E]]:
        return await self.store.fetch_all(self._token())

    def unmount(self) -> None:
        """Abort in-flight requests and clear request flags."""
        self._cancel.cancel("view closed")
        self.store.reset()

    async def refresh(self) -> OperationResult[list[E]]:
        return await self.store.fetch_all(self._token())

    async def _after_mutation(self, result: OperationResult[Any]) -> OperationResult[Any]:
        if result.ok and self.refetch_after_mutation:
            await self.store.fetch_all(self._token())
        return result

    def _merge(self, current: E, data: BaseModel | dict[str, Any]) -> E:
        merged = {**current.model_dump(), **_as_dict(data)}
        merged["id"] = current.id
        return type(current).model_validate(merged)

    async def save(
        self, data: BaseModel | dict[str, Any], current: E | None = None
    ) -> PageOutcome:
        """Create when ``current`` is None, otherwise update it with ``data``."""
        action = "update" if current is not None else "create"
        notice = self.guard(action)
        if notice is not None:
            return notice

        if current is None:
            result = await self.store.create(data, self._token())
        else:
            try:
                entity = self._merge(current, data)
            except ValidationError as e:
                return self.store.fail_locally(f"Invalid {self.module.lower()} data: {e}")
            result = await self.store.update(entity, self._token())
        return await self._after_mutation(result)

    async def delete(self, entity_id: int) -> PageOutcome:
        notice = self.guard("delete")
        if notice is not None:
            return notice
        result = await self.store.delete(entity_id, self._token())
        return await self._after_mutation(result)


class UsersPage(EntityPage[User]):
    module = "Users"

    def __init__(self, store: UserStore, permissions: PermissionSource, **kwargs: Any) -> None:
        super().__init__(store, permissions, **kwargs)


class GroupsPage(EntityPage[Group]):
    module = "Groups"

    def __init__(self, store: GroupStore, permissions: PermissionSource, **kwargs: Any) -> None:
        super().__init__(store, permissions, **kwargs)


class RolesPage(EntityPage[Role]):
    module = "Roles"

    def __init__(self, store: RoleStore, permissions: PermissionSource, **kwargs: Any) -> None:
        super().__init__(store, permissions, **kwargs)


class ModulesPage(EntityPage[Module]):
    module = "Modules"

    def __init__(self, store: ModuleStore, permissions: PermissionSource, **kwargs: Any) -> None:
        super().__init__(store, permissions, **kwargs)


class PermissionsPage(EntityPage[Permission]):
    """Also loads modules so permissions can be shown by module name."""

    module = "Permissions"

    def __init__(
        self,
        store: PermissionStore,
        modules: ModuleStore,
        permissions: PermissionSource,
        **kwargs: Any,
    ) -> None:
        super().__init__(store, permissions, **kwargs)
        self.modules = modules

    async def mount(self) -> OperationResult[list[Permission]]:
        token = self._token()
        await self.modules.fetch_all(token)
        return await self.store.fetch_all(token)

    def unmount(self) -> None:
        super().unmount()
        self.modules.reset()

    def module_name(self, permission: Permission) -> str:
        return permission.module_name or self.modules.name_of(permission.module_id)
