"""Wires config, session storage, transport, stores and views together."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx

from iam_console.config.models import ConsoleConfig, SessionConfig
from iam_console.interfaces.session import SessionStorage
from iam_console.models import PermissionGrant
from iam_console.navigation import ConsoleNavigator
from iam_console.session import FileSessionStorage, MemorySessionStorage
from iam_console.stores import (
    AuthStore,
    GroupStore,
    ModuleStore,
    PermissionStore,
    RoleStore,
    UserStore,
)
from iam_console.transport.client import ApiClient
from iam_console.views import (
    Dashboard,
    GroupRoleAssignment,
    GroupsPage,
    GroupUserAssignment,
    ModulesPage,
    PermissionsPage,
    RoleGroupAssignment,
    RolePermissionAssignment,
    RolesPage,
    UsersPage,
)


def create_session_storage(config: SessionConfig) -> SessionStorage:
    if config.backend == "memory":
        return MemorySessionStorage()
    return FileSessionStorage(config.path)


class Console:
    """One console instance: a single client, one store per entity, view factories.

    The session storage is injected everywhere it is read; nothing reads a
    global slot.
    """

    def __init__(
        self,
        config: ConsoleConfig | None = None,
        session: SessionStorage | None = None,
        on_redirect: Callable[[str], None] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or ConsoleConfig()
        self.session = session if session is not None else create_session_storage(self.config.session)
        self._on_redirect = on_redirect
        self.navigator = ConsoleNavigator(on_redirect=self._handle_redirect)
        self.client = ApiClient(
            self.session,
            self.navigator,
            base_url=self.config.api.base_url,
            timeout=self.config.api.timeout,
            user_agent=self.config.api.user_agent,
            transport=transport,
        )
        self.auth = AuthStore(self.client, self.session)
        self.users = UserStore(self.client)
        self.groups = GroupStore(self.client)
        self.roles = RoleStore(self.client)
        self.modules = ModuleStore(self.client)
        self.permissions = PermissionStore(self.client)

    def _handle_redirect(self, route: str) -> None:
        self.auth.sync()
        if self._on_redirect is not None:
            self._on_redirect(route)

    async def __aenter__(self) -> Console:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    def principal_permissions(self) -> list[PermissionGrant]:
        return self.auth.effective_permissions

    def _page_kwargs(self) -> dict[str, Any]:
        return {"refetch_after_mutation": self.config.console.refetch_after_mutation}

    def _flow_kwargs(self) -> dict[str, Any]:
        return {
            **self._page_kwargs(),
            "banner_seconds": self.config.console.banner_seconds,
        }

    # -- pages -----------------------------------------------------------------

    def dashboard(self) -> Dashboard:
        return Dashboard(self.client, self.auth, self.modules)

    def users_page(self) -> UsersPage:
        return UsersPage(self.users, self.principal_permissions, **self._page_kwargs())

    def groups_page(self) -> GroupsPage:
        return GroupsPage(self.groups, self.principal_permissions, **self._page_kwargs())

    def roles_page(self) -> RolesPage:
        return RolesPage(self.roles, self.principal_permissions, **self._page_kwargs())

    def modules_page(self) -> ModulesPage:
        return ModulesPage(self.modules, self.principal_permissions, **self._page_kwargs())

    def permissions_page(self) -> PermissionsPage:
        return PermissionsPage(
            self.permissions, self.modules, self.principal_permissions, **self._page_kwargs()
        )

    # -- assignment flows --------------------------------------------------------

    def group_users(self) -> GroupUserAssignment:
        return GroupUserAssignment(
            self.groups, self.users, self.principal_permissions, **self._flow_kwargs()
        )

    def group_roles(self) -> GroupRoleAssignment:
        return GroupRoleAssignment(
            self.groups, self.roles, self.principal_permissions, **self._flow_kwargs()
        )

    def role_permissions(self) -> RolePermissionAssignment:
        return RolePermissionAssignment(
            self.roles, self.permissions, self.principal_permissions, **self._flow_kwargs()
        )

    def role_groups(self) -> RoleGroupAssignment:
        return RoleGroupAssignment(
            self.roles, self.groups, self.principal_permissions, **self._flow_kwargs()
        )
