"""Landing view: the principal's permissions grouped by module, plus simulation."""

from __future__ import annotations

import asyncio

from iam_console.cancellation import CancelToken
from iam_console.models import PermissionGrant, SimulationRequest, SimulationResult, User
from iam_console.simulation import simulate_action
from iam_console.stores.auth import AuthStore
from iam_console.stores.base import OperationResult
from iam_console.stores.modules import ModuleStore
from iam_console.transport.client import ApiClient


class Dashboard:
    def __init__(self, client: ApiClient, auth: AuthStore, modules: ModuleStore) -> None:
        self._client = client
        self.auth = auth
        self.modules = modules
        self._cancel = CancelToken()
        self.simulation: SimulationResult | None = None
        self.simulating = False

    @property
    def user(self) -> User | None:
        return self.auth.user

    async def mount(self) -> OperationResult[list[PermissionGrant]]:
        """Refresh the principal's permissions and the module list together."""
        if self._cancel.cancelled:
            self._cancel = CancelToken()
        permissions, _ = await asyncio.gather(
            self.auth.load_permissions(self._cancel),
            self.modules.fetch_all(self._cancel),
        )
        return permissions

    def unmount(self) -> None:
        self._cancel.cancel("view closed")
        self.simulation = None

    def permissions_by_module(self) -> dict[str, list[str]]:
        """Module name -> actions, in first-seen order."""
        grouped: dict[str, list[str]] = {}
        for grant in self.auth.effective_permissions:
            actions = grouped.setdefault(grant.module, [])
            if grant.action not in actions:
                actions.append(grant.action)
        return grouped

    async def simulate(self, module: str | int, action: str) -> SimulationResult:
        if self._cancel.cancelled:
            self._cancel = CancelToken()
        self.simulating = True
        try:
            self.simulation = await simulate_action(
                self._client,
                SimulationRequest(module=module, action=action),
                self._cancel,
            )
        finally:
            self.simulating = False
        return self.simulation
