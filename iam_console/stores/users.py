"""Cache of /api/users."""

from __future__ import annotations

from iam_console.models import User
from iam_console.stores.base import ResourceStore
from iam_console.transport.schemas import ResourceSchema


class UserStore(ResourceStore[User]):
    name = "users"
    schema = ResourceSchema(User, "user", "users")
    path = "/api/users"
