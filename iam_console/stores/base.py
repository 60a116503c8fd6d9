"""Generic client-side cache of one backend resource collection."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel

from iam_console.cancellation import CancelToken, OperationCancelled
from iam_console.models import Entity
from iam_console.transport.client import ApiClient
from iam_console.transport.errors import ApiError, ResponseShapeError
from iam_console.transport.schemas import ResourceSchema

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Entity)
T = TypeVar("T")


class Phase(str, Enum):
    """Lifecycle of the most recent operation on a store."""

    idle = "idle"
    pending = "pending"
    fulfilled = "fulfilled"
    rejected = "rejected"
    cancelled = "cancelled"


@dataclass
class StoreState(Generic[E]):
    items: list[E] = field(default_factory=list)
    loading: bool = False
    error: bool = False
    success: bool = False
    message: str = ""
    phase: Phase = Phase.idle


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Outcome of one store operation. Store operations never raise ApiError."""

    status: Phase
    value: T | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status is Phase.fulfilled


Listener = Callable[[StoreState[Any]], None]


class BaseStore(ABC):
    """Request lifecycle bookkeeping shared by resource stores and the auth store."""

    name: ClassVar[str] = "store"

    def __init__(self, client: ApiClient) -> None:
        self._client = client
        self._listeners: list[Listener] = []

    @property
    @abstractmethod
    def state(self) -> Any:
        ...

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change callback; returns an unsubscribe function."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.state)

    def reset(self) -> None:
        """Return to idle. Cached data is kept."""
        s = self.state
        s.loading = False
        s.error = False
        s.success = False
        s.message = ""
        s.phase = Phase.idle
        self._notify()

    def fail_locally(self, message: str) -> OperationResult[Any]:
        s = self.state
        s.loading = False
        s.error = True
        s.success = False
        s.message = message
        s.phase = Phase.rejected
        self._notify()
        return OperationResult(Phase.rejected, message=message)

    async def _run(
        self,
        op: str,
        call: Callable[[], Awaitable[T]],
        reconcile: Callable[[T], None],
        cancel: CancelToken | None = None,
    ) -> OperationResult[T]:
        """pending -> fulfilled | rejected | cancelled, converting errors to state."""
        s = self.state
        s.loading = True
        s.phase = Phase.pending
        self._notify()

        try:
            if cancel is not None:
                cancel.raise_if_cancelled()
            value = await call()
            if cancel is not None:
                cancel.raise_if_cancelled()
        except OperationCancelled as e:
            logger.debug("%s/%s cancelled", self.name, op)
            s.loading = False
            s.phase = Phase.cancelled
            self._notify()
            return OperationResult(Phase.cancelled, message=str(e))
        except ResponseShapeError as e:
            logger.warning("%s/%s unexpected response: %s", self.name, op, e.message)
            return self.fail_locally(e.message)
        except ApiError as e:
            logger.info("%s/%s rejected: %s", self.name, op, e.message)
            return self.fail_locally(e.message)

        reconcile(value)
        s.loading = False
        s.error = False
        s.success = True
        s.message = ""
        s.phase = Phase.fulfilled
        self._notify()
        return OperationResult(Phase.fulfilled, value=value)


def _payload(data: BaseModel | dict[str, Any]) -> dict[str, Any]:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", exclude_none=True)
    return dict(data)


class ResourceStore(BaseStore, Generic[E]):
    """Mirror of ``GET {path}`` kept in sync by fetch/create/update/delete.

    Subclasses set ``schema`` and ``path``.
    """

    schema: ClassVar[ResourceSchema[Any]]
    path: ClassVar[str]

    def __init__(self, client: ApiClient) -> None:
        super().__init__(client)
        self._state: StoreState[E] = StoreState()

    @property
    def state(self) -> StoreState[E]:
        return self._state

    @property
    def items(self) -> list[E]:
        return self._state.items

    def get(self, entity_id: int) -> E | None:
        return next((e for e in self._state.items if e.id == entity_id), None)

    # -- reconciliation ------------------------------------------------------

    def _replace_all(self, items: list[E]) -> None:
        self._state.items = list(items)

    def _append(self, entity: E) -> None:
        items = [e for e in self._state.items if e.id != entity.id]
        items.append(entity)
        self._state.items = items

    def _replace(self, entity: E) -> None:
        self._state.items = [entity if e.id == entity.id else e for e in self._state.items]

    def _remove(self, entity_id: int) -> None:
        self._state.items = [e for e in self._state.items if e.id != entity_id]

    def _patch_relation(
        self,
        owner_id: int,
        attr: str,
        related_id: int,
        stub: Callable[[int], Entity],
        add: bool,
    ) -> None:
        """Add-if-absent or remove-if-present on an embedded relation array."""
        owner = self.get(owner_id)
        if owner is None:
            return
        current: list[Entity] = list(getattr(owner, attr))
        present = any(r.id == related_id for r in current)
        if add and not present:
            current.append(stub(related_id))
        elif not add and present:
            current = [r for r in current if r.id != related_id]
        else:
            return
        self._replace(owner.model_copy(update={attr: current}))

    # -- operations ----------------------------------------------------------

    async def fetch_all(self, cancel: CancelToken | None = None) -> OperationResult[list[E]]:
        async def call() -> list[E]:
            body = await self._client.get(self.path, cancel=cancel)
            return self.schema.parse_list(body)

        return await self._run("fetch_all", call, self._replace_all, cancel)

    async def create(
        self, draft: BaseModel | dict[str, Any], cancel: CancelToken | None = None
    ) -> OperationResult[E]:
        async def call() -> E:
            body = await self._client.post(self.path, json=_payload(draft), cancel=cancel)
            return self.schema.parse_entity(body)

        return await self._run("create", call, self._append, cancel)

    async def update(self, entity: E, cancel: CancelToken | None = None) -> OperationResult[E]:
        async def call() -> E:
            body = await self._client.put(
                f"{self.path}/{entity.id}", json=_payload(entity), cancel=cancel
            )
            # Some endpoints answer PUT with a bare message.
            if isinstance(body, dict) and ("id" in body or self.schema.singular in body):
                return self.schema.parse_entity(body)
            return entity

        return await self._run("update", call, self._replace, cancel)

    async def delete(self, entity_id: int, cancel: CancelToken | None = None) -> OperationResult[int]:
        async def call() -> int:
            await self._client.delete(f"{self.path}/{entity_id}", cancel=cancel)
            return entity_id

        return await self._run("delete", call, self._remove, cancel)

    async def _relation_call(
        self,
        op: str,
        method: str,
        path: str,
        owner_id: int,
        attr: str,
        related_ids: list[int],
        stub: Callable[[int], Entity],
        add: bool,
        json: Any = None,
        cancel: CancelToken | None = None,
    ) -> OperationResult[list[int]]:
        async def call() -> list[int]:
            await self._client.send(method, path, json=json, cancel=cancel)
            return related_ids

        def reconcile(ids: list[int]) -> None:
            for related_id in ids:
                self._patch_relation(owner_id, attr, related_id, stub, add)

        return await self._run(op, call, reconcile, cancel)
