"""Session storage interface."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from iam_console.models import AuthSession, PermissionGrant


@runtime_checkable
class SessionStorage(Protocol):
    """Durable slot holding the current session and the cached permission list.

    Read when stores are constructed and on every outgoing request; written
    only on login, register, permission refresh and logout.
    """

    def get_token(self) -> str | None: ...

    def load_session(self) -> AuthSession | None: ...

    def save_session(self, session: AuthSession, raw: dict[str, Any] | None = None) -> None: ...

    def load_permissions(self) -> list[PermissionGrant]: ...

    def save_permissions(self, permissions: list[PermissionGrant]) -> None: ...

    def clear(self) -> None: ...
