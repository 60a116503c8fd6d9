"""IAM Console - admin client for users, groups, roles, modules and permissions."""

from iam_console.config import ConsoleConfig, load_config
from iam_console.console import Console
from iam_console.gate import PermissionDeniedNotice, check_permission, has_permission
from iam_console.session import FileSessionStorage, MemorySessionStorage
from iam_console.transport import ApiClient

__version__ = "0.1.0"

__all__ = [
    "ApiClient",
    "Console",
    "ConsoleConfig",
    "FileSessionStorage",
    "MemorySessionStorage",
    "PermissionDeniedNotice",
    "check_permission",
    "has_permission",
    "load_config",
]
