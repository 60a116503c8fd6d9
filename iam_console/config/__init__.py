from .loader import load_config
from .models import (
    ApiSettings,
    ConsoleConfig,
    ConsoleSettings,
    SessionConfig,
)

__all__ = [
    "ApiSettings",
    "ConsoleConfig",
    "ConsoleSettings",
    "SessionConfig",
    "load_config",
]
