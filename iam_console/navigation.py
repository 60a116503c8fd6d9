"""Route tracking for the console front ends."""

from __future__ import annotations

import logging
from collections.abc import Callable

from iam_console.interfaces.navigation import LOGIN_ROUTE

logger = logging.getLogger(__name__)


class ConsoleNavigator:
    """Navigator that records the current route and notifies a callback.

    The CLI has no real routing; it uses the callback to tell the operator
    to log in again.
    """

    def __init__(
        self,
        initial_route: str = "/",
        on_redirect: Callable[[str], None] | None = None,
    ) -> None:
        self.current_route = initial_route
        self.history: list[str] = [initial_route]
        self._on_redirect = on_redirect

    def navigate(self, route: str) -> None:
        self.current_route = route
        self.history.append(route)

    def redirect_to_login(self) -> None:
        logger.warning("Session invalid or expired, redirecting to %s", LOGIN_ROUTE)
        self.navigate(LOGIN_ROUTE)
        if self._on_redirect is not None:
            self._on_redirect(LOGIN_ROUTE)
