"""Client-side caches mirroring backend collections."""

from iam_console.stores.auth import AuthState, AuthStore
from iam_console.stores.base import OperationResult, Phase, ResourceStore, StoreState
from iam_console.stores.groups import GroupStore
from iam_console.stores.modules import ModuleStore
from iam_console.stores.permissions import PermissionStore
from iam_console.stores.roles import RoleStore
from iam_console.stores.users import UserStore

__all__ = [
    "AuthState",
    "AuthStore",
    "GroupStore",
    "ModuleStore",
    "OperationResult",
    "PermissionStore",
    "Phase",
    "ResourceStore",
    "RoleStore",
    "StoreState",
    "UserStore",
]
