"""Pydantic models for IAM entities cached by the console."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Action = Literal["create", "read", "update", "delete"]

ACTIONS: tuple[str, ...] = ("create", "read", "update", "delete")


class Entity(BaseModel):
    """Base for server-owned records. Ids are assigned by the backend."""

    id: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


class User(Entity):
    username: str = ""
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    # Only ever populated on the logged-in principal.
    token: str | None = Field(default=None, exclude=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class UserCreate(BaseModel):
    username: str = Field(min_length=1)
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)
    first_name: str = ""
    last_name: str = ""


class UserLogin(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class Module(Entity):
    name: str = ""


class ModuleCreate(BaseModel):
    name: str = Field(min_length=1)


class Permission(Entity):
    """A (module, action) pair as a first-class entity.

    ``module`` is only present when the backend expands the reference.
    """

    action: Action | None = None
    module_id: int | None = None
    module: Module | None = None

    @property
    def module_name(self) -> str | None:
        return self.module.name if self.module else None


class PermissionCreate(BaseModel):
    action: Action
    module_id: int


class Role(Entity):
    name: str = ""
    permissions: list[Permission] = Field(default_factory=list)
    groups: list[Group] = Field(default_factory=list)


class RoleCreate(BaseModel):
    name: str = Field(min_length=1)


class Group(Entity):
    name: str = ""
    users: list[User] = Field(default_factory=list)
    roles: list[Role] = Field(default_factory=list)


class GroupCreate(BaseModel):
    name: str = Field(min_length=1)


class PermissionGrant(BaseModel):
    """One entry of the principal's flattened permission list."""

    model_config = ConfigDict(frozen=True)

    module: str
    action: str


class AuthSession(BaseModel):
    """The logged-in principal and its bearer credential."""

    user: User
    token: str = Field(min_length=1)


class SimulationRequest(BaseModel):
    module: str | int
    action: Action


class SimulationResult(BaseModel):
    allowed: bool
    message: str


Role.model_rebuild()
Group.model_rebuild()
