"""Headless views composed from stores and the authorization gate."""

from iam_console.views.assignments import (
    AssignmentFlow,
    GroupRoleAssignment,
    GroupUserAssignment,
    RoleGroupAssignment,
    RolePermissionAssignment,
)
from iam_console.views.dashboard import Dashboard
from iam_console.views.pages import (
    EntityPage,
    GroupsPage,
    ModulesPage,
    PermissionsPage,
    RolesPage,
    UsersPage,
)

__all__ = [
    "AssignmentFlow",
    "Dashboard",
    "EntityPage",
    "GroupRoleAssignment",
    "GroupUserAssignment",
    "GroupsPage",
    "ModulesPage",
    "PermissionsPage",
    "RoleGroupAssignment",
    "RolePermissionAssignment",
    "RolesPage",
    "UsersPage",
]
