"""Client-side authorization gate.

Advisory only: it decides whether to offer or attempt an action. The backend
re-checks every request.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from iam_console.models import PermissionGrant

# Module name -> plural noun used in denial notices.
_NOUNS: dict[str, str] = {
    "Users": "users",
    "Groups": "groups",
    "Roles": "roles",
    "Modules": "modules",
    "Permissions": "permissions",
}


@dataclass(frozen=True)
class PermissionDeniedNotice:
    """A local short-circuit: the action was dropped before any request."""

    module: str
    action: str
    message: str


def _fields(entry: PermissionGrant | Mapping[str, Any]) -> tuple[Any, Any]:
    if isinstance(entry, Mapping):
        return entry.get("module"), entry.get("action")
    return entry.module, entry.action


def has_permission(
    permissions: Iterable[PermissionGrant | Mapping[str, Any]],
    module: str,
    action: str,
) -> bool:
    """True iff some entry equals (module, action) exactly."""
    return any(_fields(p) == (module, action) for p in permissions)


def denial_message(module: str, action: str) -> str:
    noun = _NOUNS.get(module, module.lower())
    return f"You don't have permission to {action} {noun}."


def check_permission(
    permissions: Iterable[PermissionGrant | Mapping[str, Any]],
    module: str,
    action: str,
    what: str | None = None,
) -> PermissionDeniedNotice | None:
    """Return None when allowed, otherwise the notice to show the operator.

    ``what`` overrides the object of the sentence, e.g. "assign users".
    """
    if has_permission(permissions, module, action):
        return None
    if what is not None:
        message = f"You don't have permission to {what}."
    else:
        message = denial_message(module, action)
    return PermissionDeniedNotice(module=module, action=action, message=message)
