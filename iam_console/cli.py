"""CLI entry point for the IAM admin console."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from typing import Annotated, Any, TypeVar

import typer
import yaml
from pydantic import BaseModel, ValidationError
from rich import print as rprint
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table

from iam_console.config import ConsoleConfig, load_config
from iam_console.config.loader import DEFAULT_CONFIG_TEMPLATE, PROJECT_CONFIG
from iam_console.console import Console, create_session_storage
from iam_console.gate import PermissionDeniedNotice
from iam_console.logging_setup import configure_logging
from iam_console.models import (
    ACTIONS,
    GroupCreate,
    ModuleCreate,
    Permission,
    RoleCreate,
    UserCreate,
    UserLogin,
)
from iam_console.stores.base import OperationResult
from iam_console.transport.errors import ApiError
from iam_console.views import AssignmentFlow, EntityPage, PermissionsPage

T = TypeVar("T")

app = typer.Typer(
    name="iam-console",
    help="Administer users, groups, roles, modules and permissions on an IAM backend.",
)

config_app = typer.Typer(help="Manage console configuration.")
app.add_typer(config_app, name="config")

users_app = typer.Typer(help="Manage users.")
app.add_typer(users_app, name="users")

groups_app = typer.Typer(help="Manage groups and their members.")
app.add_typer(groups_app, name="groups")

roles_app = typer.Typer(help="Manage roles and their permissions.")
app.add_typer(roles_app, name="roles")

modules_app = typer.Typer(help="Manage modules.")
app.add_typer(modules_app, name="modules")

permissions_app = typer.Typer(help="Manage permissions.")
app.add_typer(permissions_app, name="permissions")

# Global state
_config: ConsoleConfig | None = None


def _get_config() -> ConsoleConfig:
    if _config is None:
        return load_config()
    return _config


@app.callback()
def main(
    config: Annotated[
        str | None, typer.Option("--config", "-c", help="Path to iam-console.yaml")
    ] = None,
) -> None:
    """Global options."""
    global _config
    try:
        _config = load_config(config)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    configure_logging(_config.log_level, _config.log_format)


def _login_hint(route: str) -> None:
    rprint(
        "[yellow]Session expired or invalid.[/yellow] "
        "Run [bold]iam-console login[/bold] to sign in again."
    )


def _console() -> Console:
    return Console(_get_config(), on_redirect=_login_hint)


def _run(coro: Coroutine[Any, Any, T]) -> T:
    try:
        return asyncio.run(coro)
    except ApiError as e:
        rprint(f"[red]Error:[/red] {escape(e.message)}")
        raise typer.Exit(1)


def _finish(outcome: OperationResult[Any] | PermissionDeniedNotice | None) -> Any:
    """Exit 1 on a denial or a failed operation, otherwise return its value."""
    if isinstance(outcome, PermissionDeniedNotice):
        rprint(f"[red]{escape(outcome.message)}[/red]")
        raise typer.Exit(1)
    if outcome is None:
        return None
    if not outcome.ok:
        rprint(f"[red]Error:[/red] {escape(outcome.message)}")
        raise typer.Exit(1)
    return outcome.value


def _validated(model: type[BaseModel], **data: Any) -> BaseModel:
    try:
        return model(**data)
    except ValidationError as e:
        error = e.errors()[0]
        rprint(f"[red]Error:[/red] {error['loc'][0]}: {escape(error['msg'])}")
        raise typer.Exit(1)


def _changes(**fields: Any) -> dict[str, Any]:
    changes = {k: v for k, v in fields.items() if v is not None}
    if not changes:
        rprint("[yellow]Nothing to update.[/yellow] Pass at least one option.")
        raise typer.Exit(1)
    return changes


def _confirm_delete(noun: str, entity_id: int, yes: bool) -> None:
    if not yes:
        typer.confirm(f"Delete {noun} {entity_id}?", abort=True)


def _names(items: list[Any], attr: str = "name") -> str:
    return ", ".join(getattr(i, attr) or str(i.id) for i in items) or "-"


def _grant_label(permission: Permission) -> str:
    module = permission.module_name or (
        str(permission.module_id) if permission.module_id is not None else "?"
    )
    return f"{module}:{permission.action or '?'}"


def _show_table(title: str, columns: list[str], rows: list[list[str]]) -> None:
    table = Table(title=f"{title} ({len(rows)})")
    for i, column in enumerate(columns):
        table.add_column(column, style="cyan" if i == 0 else None)
    for row in rows:
        table.add_row(*row)
    rprint(table)


# ---------------------------------------------------------------------------
# Entity CRUD shared by the sub-apps
# ---------------------------------------------------------------------------

PageFactory = Callable[[Console], EntityPage[Any]]


async def _list_entities(factory: PageFactory) -> EntityPage[Any]:
    async with _console() as console:
        page = factory(console)
        _finish(await page.mount())
        return page


async def _create_entity(factory: PageFactory, data: BaseModel | dict[str, Any]) -> Any:
    async with _console() as console:
        return await factory(console).save(data)


async def _update_entity(factory: PageFactory, entity_id: int, data: dict[str, Any]) -> Any:
    async with _console() as console:
        page = factory(console)
        notice = page.guard("update")
        if notice is not None:
            return notice
        fetched = await page.mount()
        if not fetched.ok:
            return fetched
        current = page.store.get(entity_id)
        if current is None:
            return page.store.fail_locally(f"No {page.store.name[:-1]} with id {entity_id}")
        return await page.save(data, current)


async def _delete_entity(factory: PageFactory, entity_id: int) -> Any:
    async with _console() as console:
        return await factory(console).delete(entity_id)


FlowFactory = Callable[[Console], AssignmentFlow]


async def _assign(
    factory: FlowFactory, owner_id: int, candidate_ids: list[int]
) -> tuple[AssignmentFlow, Any]:
    async with _console() as console:
        flow = factory(console)
        notice = await flow.open(owner_id)
        if notice is not None:
            return flow, notice
        for candidate_id in candidate_ids:
            flow.select(candidate_id)
        return flow, await flow.assign()


async def _unassign(factory: FlowFactory, owner_id: int, candidate_id: int) -> Any:
    async with _console() as console:
        flow = factory(console)
        notice = await flow.open(owner_id)
        if notice is not None:
            return notice
        return await flow.remove(candidate_id)


def _report_assignment(flow: AssignmentFlow, outcome: Any) -> None:
    _finish(outcome)
    rprint(f"[green]{flow.banner or flow.success_text}[/green]")


# ---------------------------------------------------------------------------
# Session commands
# ---------------------------------------------------------------------------


@app.command()
def login(
    username: str = typer.Option(..., "--username", "-u", prompt=True),
    password: str = typer.Option(..., "--password", "-p", prompt=True, hide_input=True),
) -> None:
    """Log in and store the session token and permission list."""
    credentials = _validated(UserLogin, username=username, password=password)

    async def _login() -> tuple[Any, Any]:
        async with _console() as console:
            result = await console.auth.login(credentials)
            if not result.ok:
                return result, None
            return result, await console.auth.load_permissions()

    result, permissions = _run(_login())
    session = _finish(result)
    rprint(f"[green]Logged in[/green] as {session.user.username}")
    if permissions is not None and not permissions.ok:
        rprint(f"[yellow]Could not load permissions:[/yellow] {escape(permissions.message)}")


@app.command()
def register(
    username: str = typer.Option(..., "--username", "-u", prompt=True),
    email: str = typer.Option(..., "--email", "-e", prompt=True),
    password: str = typer.Option(
        ..., "--password", "-p", prompt=True, hide_input=True, confirmation_prompt=True
    ),
    first_name: str = typer.Option("", "--first-name"),
    last_name: str = typer.Option("", "--last-name"),
) -> None:
    """Create an account and start a session with it."""
    draft = _validated(
        UserCreate,
        username=username,
        email=email,
        password=password,
        first_name=first_name,
        last_name=last_name,
    )

    async def _register() -> tuple[Any, Any]:
        async with _console() as console:
            result = await console.auth.register(draft)
            if not result.ok:
                return result, None
            return result, await console.auth.load_permissions()

    result, permissions = _run(_register())
    session = _finish(result)
    rprint(f"[green]Registered[/green] and logged in as {session.user.username}")
    if permissions is not None and not permissions.ok:
        rprint(f"[yellow]Could not load permissions:[/yellow] {escape(permissions.message)}")


@app.command()
def logout() -> None:
    """Forget the stored session and cached permissions."""
    create_session_storage(_get_config().session).clear()
    rprint("[green]Logged out.[/green]")


@app.command()
def whoami() -> None:
    """Show the stored principal. No request is made."""
    storage = create_session_storage(_get_config().session)
    session = storage.load_session()
    if session is None:
        rprint("[yellow]Not logged in.[/yellow]")
        raise typer.Exit(1)
    user = session.user
    rprint(f"[bold]{user.username}[/bold] (id {user.id})")
    if user.email:
        rprint(f"[dim]Email:[/dim] {user.email}")
    if user.full_name:
        rprint(f"[dim]Name:[/dim]  {user.full_name}")
    rprint(f"[dim]Cached permissions:[/dim] {len(storage.load_permissions())}")


@app.command("permissions-me")
def permissions_me() -> None:
    """Refresh and show the principal's permissions by module."""

    async def _load() -> dict[str, list[str]]:
        async with _console() as console:
            dashboard = console.dashboard()
            _finish(await dashboard.mount())
            return dashboard.permissions_by_module()

    grouped = _run(_load())
    _show_table(
        "My permissions",
        ["Module", "Actions"],
        [[module, ", ".join(actions)] for module, actions in grouped.items()],
    )


@app.command()
def simulate(
    module: str = typer.Argument(..., help="Module name or id"),
    action: str = typer.Argument(..., help="create, read, update or delete"),
) -> None:
    """Ask the backend whether you may perform ACTION on MODULE."""
    if action not in ACTIONS:
        rprint(f"[red]Error:[/red] action must be one of {', '.join(ACTIONS)}")
        raise typer.Exit(1)
    target: str | int = int(module) if module.isdigit() else module

    async def _simulate() -> Any:
        async with _console() as console:
            return await console.dashboard().simulate(target, action)

    verdict = _run(_simulate())
    if verdict.allowed:
        rprint(f"[green]Allowed:[/green] {verdict.message}")
    else:
        rprint(f"[red]Denied:[/red] {verdict.message}")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# users
# ---------------------------------------------------------------------------


@users_app.command("list")
def users_list() -> None:
    """List users."""
    page = _run(_list_entities(Console.users_page))
    _show_table(
        "Users",
        ["ID", "Username", "Email", "Name"],
        [[str(u.id), u.username, u.email, u.full_name or "-"] for u in page.items],
    )


@users_app.command("create")
def users_create(
    username: str = typer.Option(..., "--username", "-u"),
    email: str = typer.Option(..., "--email", "-e"),
    password: str = typer.Option(..., "--password", "-p", prompt=True, hide_input=True),
    first_name: str = typer.Option("", "--first-name"),
    last_name: str = typer.Option("", "--last-name"),
) -> None:
    """Create a user."""
    draft = _validated(
        UserCreate,
        username=username,
        email=email,
        password=password,
        first_name=first_name,
        last_name=last_name,
    )
    user = _finish(_run(_create_entity(Console.users_page, draft)))
    rprint(f"[green]Created[/green] user {user.username} (id {user.id})")


@users_app.command("update")
def users_update(
    user_id: int = typer.Argument(..., help="User id"),
    username: str | None = typer.Option(None, "--username", "-u"),
    email: str | None = typer.Option(None, "--email", "-e"),
    first_name: str | None = typer.Option(None, "--first-name"),
    last_name: str | None = typer.Option(None, "--last-name"),
) -> None:
    """Update a user's profile fields."""
    changes = _changes(
        username=username, email=email, first_name=first_name, last_name=last_name
    )
    user = _finish(_run(_update_entity(Console.users_page, user_id, changes)))
    rprint(f"[green]Updated[/green] user {user.username} (id {user.id})")


@users_app.command("delete")
def users_delete(
    user_id: int = typer.Argument(..., help="User id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a user."""
    _confirm_delete("user", user_id, yes)
    _finish(_run(_delete_entity(Console.users_page, user_id)))
    rprint(f"[green]Deleted[/green] user {user_id}")


# ---------------------------------------------------------------------------
# groups
# ---------------------------------------------------------------------------


@groups_app.command("list")
def groups_list() -> None:
    """List groups with their users and roles."""
    page = _run(_list_entities(Console.groups_page))
    _show_table(
        "Groups",
        ["ID", "Name", "Users", "Roles"],
        [
            [str(g.id), g.name, _names(g.users, "username"), _names(g.roles)]
            for g in page.items
        ],
    )


@groups_app.command("create")
def groups_create(name: str = typer.Argument(..., help="Group name")) -> None:
    """Create a group."""
    group = _finish(_run(_create_entity(Console.groups_page, _validated(GroupCreate, name=name))))
    rprint(f"[green]Created[/green] group {group.name} (id {group.id})")


@groups_app.command("update")
def groups_update(
    group_id: int = typer.Argument(..., help="Group id"),
    name: str | None = typer.Option(None, "--name", "-n"),
) -> None:
    """Rename a group."""
    group = _finish(_run(_update_entity(Console.groups_page, group_id, _changes(name=name))))
    rprint(f"[green]Updated[/green] group {group.name} (id {group.id})")


@groups_app.command("delete")
def groups_delete(
    group_id: int = typer.Argument(..., help="Group id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a group."""
    _confirm_delete("group", group_id, yes)
    _finish(_run(_delete_entity(Console.groups_page, group_id)))
    rprint(f"[green]Deleted[/green] group {group_id}")


@groups_app.command("add-users")
def groups_add_users(
    group_id: int = typer.Argument(..., help="Group id"),
    user_ids: list[int] = typer.Argument(..., help="One or more user ids"),
) -> None:
    """Add users to a group in one request."""
    flow, outcome = _run(_assign(Console.group_users, group_id, user_ids))
    _report_assignment(flow, outcome)


@groups_app.command("remove-user")
def groups_remove_user(
    group_id: int = typer.Argument(..., help="Group id"),
    user_id: int = typer.Argument(..., help="User id"),
) -> None:
    """Remove a user from a group."""
    _finish(_run(_unassign(Console.group_users, group_id, user_id)))
    rprint(f"[green]Removed[/green] user {user_id} from group {group_id}")


@groups_app.command("add-role")
def groups_add_role(
    group_id: int = typer.Argument(..., help="Group id"),
    role_ids: list[int] = typer.Argument(..., help="One or more role ids"),
) -> None:
    """Assign roles to a group, one request per role."""
    flow, outcome = _run(_assign(Console.group_roles, group_id, role_ids))
    _report_assignment(flow, outcome)


@groups_app.command("remove-role")
def groups_remove_role(
    group_id: int = typer.Argument(..., help="Group id"),
    role_id: int = typer.Argument(..., help="Role id"),
) -> None:
    """Remove a role from a group."""
    _finish(_run(_unassign(Console.group_roles, group_id, role_id)))
    rprint(f"[green]Removed[/green] role {role_id} from group {group_id}")


# ---------------------------------------------------------------------------
# roles
# ---------------------------------------------------------------------------


@roles_app.command("list")
def roles_list() -> None:
    """List roles with their permissions."""
    page = _run(_list_entities(Console.roles_page))
    _show_table(
        "Roles",
        ["ID", "Name", "Permissions"],
        [
            [str(r.id), r.name, ", ".join(_grant_label(p) for p in r.permissions) or "-"]
            for r in page.items
        ],
    )


@roles_app.command("create")
def roles_create(name: str = typer.Argument(..., help="Role name")) -> None:
    """Create a role."""
    role = _finish(_run(_create_entity(Console.roles_page, _validated(RoleCreate, name=name))))
    rprint(f"[green]Created[/green] role {role.name} (id {role.id})")


@roles_app.command("update")
def roles_update(
    role_id: int = typer.Argument(..., help="Role id"),
    name: str | None = typer.Option(None, "--name", "-n"),
) -> None:
    """Rename a role."""
    role = _finish(_run(_update_entity(Console.roles_page, role_id, _changes(name=name))))
    rprint(f"[green]Updated[/green] role {role.name} (id {role.id})")


@roles_app.command("delete")
def roles_delete(
    role_id: int = typer.Argument(..., help="Role id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a role."""
    _confirm_delete("role", role_id, yes)
    _finish(_run(_delete_entity(Console.roles_page, role_id)))
    rprint(f"[green]Deleted[/green] role {role_id}")


@roles_app.command("add-permission")
def roles_add_permission(
    role_id: int = typer.Argument(..., help="Role id"),
    permission_ids: list[int] = typer.Argument(..., help="One or more permission ids"),
) -> None:
    """Grant permissions to a role."""
    flow, outcome = _run(_assign(Console.role_permissions, role_id, permission_ids))
    _report_assignment(flow, outcome)


@roles_app.command("remove-permission")
def roles_remove_permission(
    role_id: int = typer.Argument(..., help="Role id"),
    permission_id: int = typer.Argument(..., help="Permission id"),
) -> None:
    """Revoke a permission from a role."""
    _finish(_run(_unassign(Console.role_permissions, role_id, permission_id)))
    rprint(f"[green]Removed[/green] permission {permission_id} from role {role_id}")


@roles_app.command("add-to-group")
def roles_add_to_group(
    role_id: int = typer.Argument(..., help="Role id"),
    group_ids: list[int] = typer.Argument(..., help="One or more group ids"),
) -> None:
    """Put a role into one or more groups."""
    flow, outcome = _run(_assign(Console.role_groups, role_id, group_ids))
    _report_assignment(flow, outcome)


# ---------------------------------------------------------------------------
# modules
# ---------------------------------------------------------------------------


@modules_app.command("list")
def modules_list() -> None:
    """List modules."""
    page = _run(_list_entities(Console.modules_page))
    _show_table("Modules", ["ID", "Name"], [[str(m.id), m.name] for m in page.items])


@modules_app.command("create")
def modules_create(name: str = typer.Argument(..., help="Module name")) -> None:
    """Create a module."""
    module = _finish(
        _run(_create_entity(Console.modules_page, _validated(ModuleCreate, name=name)))
    )
    rprint(f"[green]Created[/green] module {module.name} (id {module.id})")


@modules_app.command("update")
def modules_update(
    module_id: int = typer.Argument(..., help="Module id"),
    name: str | None = typer.Option(None, "--name", "-n"),
) -> None:
    """Rename a module."""
    module = _finish(_run(_update_entity(Console.modules_page, module_id, _changes(name=name))))
    rprint(f"[green]Updated[/green] module {module.name} (id {module.id})")


@modules_app.command("delete")
def modules_delete(
    module_id: int = typer.Argument(..., help="Module id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a module."""
    _confirm_delete("module", module_id, yes)
    _finish(_run(_delete_entity(Console.modules_page, module_id)))
    rprint(f"[green]Deleted[/green] module {module_id}")


# ---------------------------------------------------------------------------
# permissions
# ---------------------------------------------------------------------------


@permissions_app.command("list")
def permissions_list() -> None:
    """List permissions by module name."""
    page: PermissionsPage = _run(_list_entities(Console.permissions_page))
    _show_table(
        "Permissions",
        ["ID", "Module", "Action"],
        [[str(p.id), page.module_name(p), p.action or "-"] for p in page.items],
    )


@permissions_app.command("create")
def permissions_create(
    module_id: int = typer.Option(..., "--module-id", "-m", help="Module id"),
    action: str = typer.Option(..., "--action", "-a", help="create, read, update or delete"),
) -> None:
    """Create a (module, action) permission."""
    permission = _finish(
        _run(
            _create_entity(
                Console.permissions_page, {"module_id": module_id, "action": action}
            )
        )
    )
    rprint(f"[green]Created[/green] permission {_grant_label(permission)} (id {permission.id})")


@permissions_app.command("update")
def permissions_update(
    permission_id: int = typer.Argument(..., help="Permission id"),
    module_id: int | None = typer.Option(None, "--module-id", "-m"),
    action: str | None = typer.Option(None, "--action", "-a"),
) -> None:
    """Update a permission. Module and action are fixed once created."""
    changes = _changes(module_id=module_id, action=action)
    permission = _finish(
        _run(_update_entity(Console.permissions_page, permission_id, changes))
    )
    rprint(f"[green]Updated[/green] permission {permission.id}")


@permissions_app.command("delete")
def permissions_delete(
    permission_id: int = typer.Argument(..., help="Permission id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a permission."""
    _confirm_delete("permission", permission_id, yes)
    _finish(_run(_delete_entity(Console.permissions_page, permission_id)))
    rprint(f"[green]Deleted[/green] permission {permission_id}")


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show() -> None:
    """Show current resolved configuration."""
    cfg = _get_config()
    rprint(Syntax(yaml.dump(cfg.model_dump(), default_flow_style=False), "yaml"))


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", help="Overwrite existing config"),
) -> None:
    """Create default iam-console.yaml in current directory."""
    target = PROJECT_CONFIG
    if target.exists() and not force:
        rprint("[yellow]iam-console.yaml already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)
    target.write_text(DEFAULT_CONFIG_TEMPLATE)
    rprint(f"[green]Created[/green] {target}")
