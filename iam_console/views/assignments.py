"""Relationship-assignment flows (user/role -> group, permission -> role, role -> group).

Each flow reads two stores, offers the complement of what is already
assigned, and issues one association call per confirmed action. Selection
and the success banner are transient and reset on close.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, ClassVar

from iam_console.cancellation import CancelToken
from iam_console.gate import PermissionDeniedNotice, check_permission
from iam_console.models import Entity, Group, Permission, Role
from iam_console.stores.base import OperationResult, Phase, ResourceStore
from iam_console.stores.groups import GroupStore
from iam_console.stores.permissions import PermissionStore
from iam_console.stores.roles import RoleStore
from iam_console.stores.users import UserStore
from iam_console.views.pages import PageOutcome, PermissionSource

Clock = Callable[[], float]


@dataclass(frozen=True)
class Banner:
    text: str
    expires_at: float


class AssignmentFlow(ABC):
    """Shared selection/banner/gating logic.

    Subclasses describe which store owns the edge and how to call it.
    """

    module: ClassVar[str]
    what: ClassVar[str]
    success_text: ClassVar[str] = "Assigned successfully"

    def __init__(
        self,
        owners: ResourceStore[Any],
        candidates: ResourceStore[Any],
        permissions: PermissionSource,
        banner_seconds: float = 2.0,
        refetch_after_mutation: bool = True,
        clock: Clock = time.monotonic,
    ) -> None:
        self.owners = owners
        self.candidates = candidates
        self._permissions = permissions
        self.banner_seconds = banner_seconds
        self.refetch_after_mutation = refetch_after_mutation
        self._clock = clock
        self._cancel = CancelToken()
        self.is_open = False
        self.owner_id: int | None = None
        self.selected: list[int] = []
        self._banner: Banner | None = None

    # -- lifecycle -----------------------------------------------------------

    def guard(self) -> PermissionDeniedNotice | None:
        return check_permission(self._permissions(), self.module, "update", self.what)

    async def open(self, owner_id: int | None = None) -> PermissionDeniedNotice | None:
        notice = self.guard()
        if notice is not None:
            return notice
        if self._cancel.cancelled:
            self._cancel = CancelToken()
        self.is_open = True
        self.owner_id = owner_id
        await asyncio.gather(
            self.owners.fetch_all(self._cancel),
            self.candidates.fetch_all(self._cancel),
        )
        return None

    def close(self) -> None:
        self._cancel.cancel("assignment closed")
        self.is_open = False
        self.owner_id = None
        self.selected = []
        self._banner = None

    # -- selection -----------------------------------------------------------

    def select_owner(self, owner_id: int) -> None:
        self.owner_id = owner_id
        self.selected = []

    def select(self, candidate_id: int) -> None:
        if candidate_id not in self.selected:
            self.selected.append(candidate_id)

    def deselect(self, candidate_id: int) -> None:
        self.selected = [i for i in self.selected if i != candidate_id]

    @property
    def owner(self) -> Entity | None:
        return self.owners.get(self.owner_id) if self.owner_id is not None else None

    @abstractmethod
    def assigned_ids(self) -> set[int]:
        ...

    @property
    def assigned(self) -> list[Entity]:
        ids = self.assigned_ids()
        return [c for c in self.candidates.items if c.id in ids]

    @property
    def available(self) -> list[Entity]:
        ids = self.assigned_ids()
        return [c for c in self.candidates.items if c.id not in ids]

    @property
    def banner(self) -> str | None:
        if self._banner is None or self._clock() >= self._banner.expires_at:
            return None
        return self._banner.text

    # -- mutations -----------------------------------------------------------

    @abstractmethod
    async def _assign(self, owner_id: int, ids: list[int]) -> OperationResult[Any]:
        ...

    @abstractmethod
    async def _remove(self, owner_id: int, candidate_id: int) -> OperationResult[Any]:
        ...

    async def _resync(self) -> None:
        if self.refetch_after_mutation:
            await asyncio.gather(
                self.owners.fetch_all(self._cancel),
                self.candidates.fetch_all(self._cancel),
            )

    async def assign(self) -> PageOutcome | None:
        """Assign every selected candidate to the current owner.

        Returns None when nothing is selected.
        """
        notice = self.guard()
        if notice is not None:
            return notice
        if self.owner_id is None or not self.selected:
            return None
        result = await self._assign(self.owner_id, list(self.selected))
        if result.ok:
            self.selected = []
            self._banner = Banner(self.success_text, self._clock() + self.banner_seconds)
            await self._resync()
        return result

    async def remove(self, candidate_id: int) -> PageOutcome | None:
        notice = self.guard()
        if notice is not None:
            return notice
        if self.owner_id is None:
            return None
        result = await self._remove(self.owner_id, candidate_id)
        if result.ok:
            await self._resync()
        return result


class GroupUserAssignment(AssignmentFlow):
    """Add/remove users in a group. All selected users go in one call."""

    module = "Groups"
    what = "assign users"
    success_text = "Users added to group successfully"

    def __init__(
        self, groups: GroupStore, users: UserStore, permissions: PermissionSource, **kwargs: Any
    ) -> None:
        super().__init__(groups, users, permissions, **kwargs)
        self.groups = groups

    def assigned_ids(self) -> set[int]:
        group: Group | None = self.owner  # type: ignore[assignment]
        return {u.id for u in group.users} if group else set()

    async def _assign(self, owner_id: int, ids: list[int]) -> OperationResult[Any]:
        return await self.groups.assign_users(owner_id, ids, self._cancel)

    async def _remove(self, owner_id: int, candidate_id: int) -> OperationResult[Any]:
        return await self.groups.remove_user(owner_id, candidate_id, self._cancel)


class _OneCallPerEdge(AssignmentFlow):
    """Flows whose endpoint takes a single related id per request."""

    @abstractmethod
    async def _assign_one(self, owner_id: int, candidate_id: int) -> OperationResult[Any]:
        ...

    async def _assign(self, owner_id: int, ids: list[int]) -> OperationResult[Any]:
        assigned: list[int] = []
        for candidate_id in ids:
            result = await self._assign_one(owner_id, candidate_id)
            if not result.ok:
                return result
            assigned.append(candidate_id)
        return OperationResult(Phase.fulfilled, value=assigned)


class GroupRoleAssignment(_OneCallPerEdge):
    module = "Groups"
    what = "assign roles"
    success_text = "Role assigned to group successfully"

    def __init__(
        self, groups: GroupStore, roles: RoleStore, permissions: PermissionSource, **kwargs: Any
    ) -> None:
        super().__init__(groups, roles, permissions, **kwargs)
        self.groups = groups

    def assigned_ids(self) -> set[int]:
        group: Group | None = self.owner  # type: ignore[assignment]
        return {r.id for r in group.roles} if group else set()

    async def _assign_one(self, owner_id: int, candidate_id: int) -> OperationResult[Any]:
        return await self.groups.assign_role(owner_id, candidate_id, self._cancel)

    async def _remove(self, owner_id: int, candidate_id: int) -> OperationResult[Any]:
        return await self.groups.remove_role(owner_id, candidate_id, self._cancel)


class RolePermissionAssignment(_OneCallPerEdge):
    module = "Permissions"
    what = "assign permissions"
    success_text = "Permission assigned to role successfully"

    def __init__(
        self,
        roles: RoleStore,
        permissions_store: PermissionStore,
        permissions: PermissionSource,
        **kwargs: Any,
    ) -> None:
        super().__init__(roles, permissions_store, permissions, **kwargs)
        self.roles = roles

    def assigned_ids(self) -> set[int]:
        role: Role | None = self.owner  # type: ignore[assignment]
        return {p.id for p in role.permissions} if role else set()

    @property
    def assigned(self) -> list[Permission]:
        # Stubs from an optimistic patch are not in the permission list yet.
        role: Role | None = self.owner  # type: ignore[assignment]
        if role is None:
            return []
        known = {p.id: p for p in self.candidates.items}
        return [known.get(p.id, p) for p in role.permissions]

    async def _assign_one(self, owner_id: int, candidate_id: int) -> OperationResult[Any]:
        return await self.roles.assign_permission(owner_id, candidate_id, self._cancel)

    async def _remove(self, owner_id: int, candidate_id: int) -> OperationResult[Any]:
        return await self.roles.remove_permission(owner_id, candidate_id, self._cancel)


class RoleGroupAssignment(_OneCallPerEdge):
    """Put the current role into one or more groups.

    The edge lives on the group, so the candidate store is also the one
    patched.
    """

    module = "Roles"
    what = "assign groups"
    success_text = "Role assigned to group successfully"

    def __init__(
        self, roles: RoleStore, groups: GroupStore, permissions: PermissionSource, **kwargs: Any
    ) -> None:
        super().__init__(roles, groups, permissions, **kwargs)
        self.groups = groups

    def assigned_ids(self) -> set[int]:
        if self.owner_id is None:
            return set()
        return {
            g.id for g in self.groups.items if any(r.id == self.owner_id for r in g.roles)
        }

    async def _assign_one(self, owner_id: int, candidate_id: int) -> OperationResult[Any]:
        return await self.groups.assign_role(candidate_id, owner_id, self._cancel)

    async def _remove(self, owner_id: int, candidate_id: int) -> OperationResult[Any]:
        return await self.groups.remove_role(candidate_id, owner_id, self._cancel)
