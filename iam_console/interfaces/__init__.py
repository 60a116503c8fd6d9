"""Seams injected into the transport client and stores."""

from iam_console.interfaces.navigation import LOGIN_ROUTE, Navigator
from iam_console.interfaces.session import SessionStorage

__all__ = [
    "LOGIN_ROUTE",
    "Navigator",
    "SessionStorage",
]
