"""Navigation interface used for forced redirects."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

LOGIN_ROUTE = "/login"


@runtime_checkable
class Navigator(Protocol):
    """Moves the front end to another route."""

    current_route: str

    def redirect_to_login(self) -> None: ...
