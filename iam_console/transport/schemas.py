"""Per-endpoint response normalization.

The backend answers list endpoints either with a bare JSON array or with an
envelope keyed by the plural resource name, and entity endpoints either with
the bare object or an envelope keyed by the singular. Anything else is a
shape mismatch.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from iam_console.transport.errors import ResponseShapeError

M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class ResourceSchema(Generic[M]):
    model: type[M]
    singular: str
    plural: str

    def parse_list(self, body: Any) -> list[M]:
        items = body
        if isinstance(body, dict):
            if self.plural not in body:
                raise ResponseShapeError(
                    f"Expected a list or {{{self.plural!r}: [...]}}, got keys {sorted(body)}",
                    body=body,
                )
            items = body[self.plural]
        if not isinstance(items, list):
            raise ResponseShapeError(
                f"Expected a list of {self.plural}, got {type(items).__name__}",
                body=body,
            )
        try:
            return [self.model.model_validate(item) for item in items]
        except ValidationError as e:
            raise ResponseShapeError(f"Invalid {self.singular} in response: {e}", body=body) from e

    def parse_entity(self, body: Any) -> M:
        payload = body
        if isinstance(body, dict) and isinstance(body.get(self.singular), dict):
            payload = body[self.singular]
        if not isinstance(payload, dict):
            raise ResponseShapeError(
                f"Expected a {self.singular} object, got {type(payload).__name__}",
                body=body,
            )
        try:
            return self.model.model_validate(payload)
        except ValidationError as e:
            raise ResponseShapeError(f"Invalid {self.singular} in response: {e}", body=body) from e


def parse_grants(body: Any) -> list[dict[str, Any]]:
    """Extract the principal's ``permissions`` array from /me/permissions."""
    items = body.get("permissions") if isinstance(body, dict) else body
    if not isinstance(items, list):
        raise ResponseShapeError("Expected {'permissions': [...]}", body=body)
    return items
