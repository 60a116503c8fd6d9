"""Error taxonomy for calls to the IAM backend."""

from __future__ import annotations

from typing import Any


class ApiError(Exception):
    """Base for every failure surfaced by the transport client."""

    def __init__(
        self, message: str, status_code: int | None = None, body: Any = None
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class TransportError(ApiError):
    """The request never produced an HTTP response (DNS, refused, reset, timeout)."""


class HttpStatusError(ApiError):
    """The backend answered with a non-2xx status."""


class AuthenticationExpired(HttpStatusError):
    """401: the bearer credential is missing, invalid or expired."""


class ResponseShapeError(ApiError):
    """The response body did not match the endpoint's schema."""


def message_from_body(body: Any, status_code: int, text: str = "") -> str:
    """Prefer the server's ``message`` field, falling back to a generic string."""
    if isinstance(body, dict):
        message = body.get("message") or body.get("error") or body.get("detail")
        if isinstance(message, str) and message:
            return message
    snippet = text.strip()[:200]
    return f"HTTP {status_code}: {snippet}" if snippet else f"HTTP {status_code}"
