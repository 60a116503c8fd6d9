"""Tests for the iam-console CLI commands."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import httpx
import pytest
from typer.testing import CliRunner

from conftest import stored_session
from iam_console.cli import app
from iam_console.console import Console
from iam_console.session import MemorySessionStorage

runner = CliRunner()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _isolated(tmp_path, monkeypatch):
    """No config files from the real environment; logging left alone."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.delenv("IAM_CONSOLE_CONFIG", raising=False)
    with patch("iam_console.cli.configure_logging"):
        yield


@pytest.fixture
def cli_session():
    return MemorySessionStorage(stored_session())


@pytest.fixture
def wired(backend, cli_session):
    """Point every command at the fake backend and an in-memory session."""

    def _console():
        from iam_console.cli import _get_config, _login_hint

        return Console(
            _get_config(),
            session=cli_session,
            on_redirect=_login_hint,
            transport=backend.transport(),
        )

    with patch("iam_console.cli._console", side_effect=_console), patch(
        "iam_console.cli.create_session_storage", return_value=cli_session
    ):
        yield backend


def _limit_grants(session, grants):
    session._data = stored_session(grants=grants)


# ---------------------------------------------------------------------------
# Session commands
# ---------------------------------------------------------------------------


class TestLogin:
    def test_login_stores_session_and_permissions(self, wired, cli_session):
        cli_session.clear()
        wired.on("POST", "/api/auth/login", json={"user": {"id": 7, "username": "alice"}, "token": "t"})
        wired.on("GET", "/api/permissions/me/permissions", json={"permissions": [{"module": "Users", "action": "read"}]})

        result = runner.invoke(app, ["login", "-u", "alice", "-p", "secret"])

        assert result.exit_code == 0
        assert "Logged in" in result.output
        assert cli_session.get_token() == "t"
        assert len(cli_session.load_permissions()) == 1

    def test_login_failure(self, wired, cli_session):
        cli_session.clear()
        wired.on("POST", "/api/auth/login", status=400, json={"message": "Invalid credentials"})

        result = runner.invoke(app, ["login", "-u", "alice", "-p", "wrong"])

        assert result.exit_code == 1
        assert "Error: Invalid credentials" in result.output


def test_register_loads_new_principals_permissions(wired, cli_session):
    wired.on(
        "POST", "/api/auth/register", status=201,
        json={"user": {"id": 9, "username": "bob"}, "token": "t-bob"},
    )
    wired.on("GET", "/api/permissions/me/permissions", json={"permissions": [{"module": "Users", "action": "read"}]})

    result = runner.invoke(
        app, ["register", "-u", "bob", "-e", "bob@example.com", "-p", "secret"]
    )

    assert result.exit_code == 0
    assert "Registered" in result.output
    assert cli_session.get_token() == "t-bob"
    assert [g.module for g in cli_session.load_permissions()] == ["Users"]


def test_logout(wired, cli_session):
    result = runner.invoke(app, ["logout"])

    assert result.exit_code == 0
    assert cli_session.load_session() is None


def test_whoami(wired):
    result = runner.invoke(app, ["whoami"])

    assert result.exit_code == 0
    assert "admin" in result.output
    assert wired.requests == []


def test_whoami_logged_out(wired, cli_session):
    cli_session.clear()

    result = runner.invoke(app, ["whoami"])

    assert result.exit_code == 1
    assert "Not logged in" in result.output


def test_permissions_me(wired):
    wired.on(
        "GET", "/api/permissions/me/permissions",
        json={"permissions": [{"module": "Users", "action": "read"}, {"module": "Users", "action": "update"}]},
    )
    wired.on("GET", "/api/modules", json=[])

    result = runner.invoke(app, ["permissions-me"])

    assert result.exit_code == 0
    assert "Users" in result.output
    assert "read, update" in result.output


class TestSimulate:
    def test_allowed(self, wired):
        wired.on("POST", "/api/permissions/simulate-action", json={"allowed": True, "message": "ok"})

        result = runner.invoke(app, ["simulate", "Users", "read"])

        assert result.exit_code == 0
        assert "Allowed" in result.output

    def test_denied_exits_1(self, wired):
        wired.on("POST", "/api/permissions/simulate-action", status=403, json={"message": "Forbidden"})

        result = runner.invoke(app, ["simulate", "3", "delete"])

        assert result.exit_code == 1
        assert "Denied: Forbidden" in result.output

    def test_unknown_action(self, wired):
        result = runner.invoke(app, ["simulate", "Users", "fly"])

        assert result.exit_code == 1
        assert wired.requests == []


# ---------------------------------------------------------------------------
# Entity commands
# ---------------------------------------------------------------------------


def test_users_list(wired):
    wired.on("GET", "/api/users", json={"users": [{"id": 1, "username": "alice", "email": "a@example.com"}]})

    result = runner.invoke(app, ["users", "list"])

    assert result.exit_code == 0
    assert "alice" in result.output


def test_users_create_denied_before_any_request(wired, cli_session):
    _limit_grants(cli_session, [{"module": "Users", "action": "read"}])

    result = runner.invoke(
        app, ["users", "create", "-u", "bob", "-e", "bob@example.com", "-p", "pw"]
    )

    assert result.exit_code == 1
    assert "You don't have permission to create users." in result.output
    assert wired.requests == []


def test_groups_create(wired):
    wired.on("POST", "/api/groups", json={"id": 4, "name": "Ops"})
    wired.on("GET", "/api/groups", json=[{"id": 4, "name": "Ops"}])

    result = runner.invoke(app, ["groups", "create", "Ops"])

    assert result.exit_code == 0
    assert "Created group Ops (id 4)" in result.output


def test_roles_update_unknown_id(wired):
    wired.on("GET", "/api/roles", json=[{"id": 1, "name": "Admin"}])

    result = runner.invoke(app, ["roles", "update", "9", "--name", "X"])

    assert result.exit_code == 1
    assert "No role with id 9" in result.output


def test_update_without_changes(wired):
    result = runner.invoke(app, ["modules", "update", "1"])

    assert result.exit_code == 1
    assert "Nothing to update" in result.output


def test_modules_delete_with_yes(wired):
    wired.on("DELETE", "/api/modules/2", status=204)
    wired.on("GET", "/api/modules", json=[])

    result = runner.invoke(app, ["modules", "delete", "2", "--yes"])

    assert result.exit_code == 0
    assert len(wired.calls("DELETE", "/api/modules/2")) == 1


def test_delete_aborted_at_prompt(wired):
    result = runner.invoke(app, ["modules", "delete", "2"], input="n\n")

    assert result.exit_code == 1
    assert wired.requests == []


def test_permissions_update_refuses_action_change(wired):
    wired.on("GET", "/api/modules", json=[{"id": 1, "name": "Users"}])
    wired.on("GET", "/api/permissions", json=[{"id": 3, "module_id": 1, "action": "read"}])

    result = runner.invoke(app, ["permissions", "update", "3", "--action", "delete"])

    assert result.exit_code == 1
    assert "cannot be changed" in result.output
    assert wired.calls("PUT", "/api/permissions/3") == []


def test_groups_add_users(wired):
    wired.on("GET", "/api/groups", json=[{"id": 5, "name": "Ops"}])
    wired.on("GET", "/api/users", json=[{"id": 1}, {"id": 2}])
    wired.on("POST", "/api/groups/5/users", json={"message": "ok"})

    result = runner.invoke(app, ["groups", "add-users", "5", "1", "2"])

    assert result.exit_code == 0
    assert "Users added to group successfully" in result.output
    assert len(wired.calls("POST", "/api/groups/5/users")) == 1


def test_roles_add_to_group(wired):
    wired.on("GET", "/api/roles", json=[{"id": 2, "name": "Editor"}])
    wired.on("GET", "/api/groups", json=[{"id": 5, "name": "Ops"}])
    wired.on("POST", "/api/groups/5/roles", json={"message": "ok"})

    result = runner.invoke(app, ["roles", "add-to-group", "2", "5"])

    assert result.exit_code == 0
    assert len(wired.calls("POST", "/api/groups/5/roles")) == 1


def test_session_expiry_prints_login_hint(wired, cli_session):
    wired.on("GET", "/api/roles", status=401, json={"message": "Token expired"})

    result = runner.invoke(app, ["roles", "list"])

    assert result.exit_code == 1
    assert "iam-console login" in result.output
    assert "Error: Token expired" in result.output
    assert cli_session.load_session() is None


def test_transport_failure(wired):
    wired.on("POST", "/api/permissions/simulate-action", exc=httpx.ConnectError("connection refused"))

    result = runner.invoke(app, ["simulate", "Users", "read"])

    assert result.exit_code == 1
    assert "Error: connection refused" in result.output


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


class TestConfigCommands:
    def test_init_creates_file(self, tmp_path):
        result = runner.invoke(app, ["config", "init"])

        assert result.exit_code == 0
        assert Path("iam-console.yaml").exists()

    def test_init_refuses_overwrite(self, tmp_path):
        Path("iam-console.yaml").write_text("log_level: debug\n")

        result = runner.invoke(app, ["config", "init"])

        assert result.exit_code == 1
        assert Path("iam-console.yaml").read_text() == "log_level: debug\n"

    def test_show(self, tmp_path):
        Path("custom.yaml").write_text("api:\n  base_url: https://iam.example.com\n")

        result = runner.invoke(app, ["--config", "custom.yaml", "config", "show"])

        assert result.exit_code == 0
        assert "https://iam.example.com" in result.output

    def test_bad_config_exits_1(self, tmp_path):
        Path("custom.yaml").write_text("log_format: xml\n")

        result = runner.invoke(app, ["--config", "custom.yaml", "config", "show"])

        assert result.exit_code == 1
        assert "Invalid config" in result.output
