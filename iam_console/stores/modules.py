"""Cache of /api/modules."""

from __future__ import annotations

from iam_console.models import Module
from iam_console.stores.base import ResourceStore
from iam_console.transport.schemas import ResourceSchema


class ModuleStore(ResourceStore[Module]):
    name = "modules"
    schema = ResourceSchema(Module, "module", "modules")
    path = "/api/modules"

    def name_of(self, module_id: int | None) -> str:
        module = self.get(module_id) if module_id is not None else None
        return module.name if module else "Unknown"
