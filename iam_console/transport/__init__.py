"""HTTP transport for the IAM backend."""

from iam_console.transport.client import ApiClient
from iam_console.transport.errors import (
    ApiError,
    AuthenticationExpired,
    HttpStatusError,
    ResponseShapeError,
    TransportError,
)
from iam_console.transport.schemas import ResourceSchema

__all__ = [
    "ApiClient",
    "ApiError",
    "AuthenticationExpired",
    "HttpStatusError",
    "ResourceSchema",
    "ResponseShapeError",
    "TransportError",
]
