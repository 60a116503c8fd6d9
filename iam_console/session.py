"""SessionStorage backends: a JSON file on disk and an in-memory dict."""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from iam_console.models import AuthSession, PermissionGrant

logger = logging.getLogger(__name__)

SESSION_KEY = "session"
PERMISSIONS_KEY = "permissions"
LOGIN_RESPONSE_KEY = "login_response"


class _DictSessionStorage(ABC):
    """Shared logic over a flat key -> JSON value mapping."""

    @abstractmethod
    def _read(self) -> dict[str, Any]:
        ...

    @abstractmethod
    def _write(self, data: dict[str, Any]) -> None:
        ...

    def get_token(self) -> str | None:
        session = self.load_session()
        return session.token if session else None

    def load_session(self) -> AuthSession | None:
        raw = self._read().get(SESSION_KEY)
        if not raw:
            return None
        try:
            return AuthSession.model_validate(raw)
        except ValidationError as e:
            logger.warning("Ignoring malformed stored session: %s", e)
            return None

    def save_session(self, session: AuthSession, raw: dict[str, Any] | None = None) -> None:
        """Store ``session``. A different principal starts with no cached grants."""
        data = self._read()
        previous = self.load_session()
        if previous is None or previous.user.id != session.user.id:
            data.pop(PERMISSIONS_KEY, None)
            data.pop(LOGIN_RESPONSE_KEY, None)
        data[SESSION_KEY] = {
            "user": session.user.model_dump(mode="json"),
            "token": session.token,
        }
        if raw is not None:
            data[LOGIN_RESPONSE_KEY] = raw
        self._write(data)

    def load_permissions(self) -> list[PermissionGrant]:
        raw = self._read().get(PERMISSIONS_KEY) or []
        try:
            return [PermissionGrant.model_validate(p) for p in raw]
        except ValidationError as e:
            logger.warning("Ignoring malformed cached permissions: %s", e)
            return []

    def save_permissions(self, permissions: list[PermissionGrant]) -> None:
        data = self._read()
        data[PERMISSIONS_KEY] = [p.model_dump() for p in permissions]
        self._write(data)

    def clear(self) -> None:
        self._write({})


class MemorySessionStorage(_DictSessionStorage):
    """Process-local storage, used for tests and `session.backend: memory`."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})

    def _read(self) -> dict[str, Any]:
        return dict(self._data)

    def _write(self, data: dict[str, Any]) -> None:
        self._data = dict(data)


class FileSessionStorage(_DictSessionStorage):
    """JSON file storage, read fresh on every access.

    The file is created with owner-only permissions since it holds a bearer
    token. An unreadable or corrupt file behaves like an empty one.
    """

    def __init__(self, path: str | Path = "~/.iam-console/session.json") -> None:
        self.path = Path(path).expanduser()

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Session file %s unreadable: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        if not data:
            self.path.unlink(missing_ok=True)
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.unlink(missing_ok=True)
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            f.write(json.dumps(data, indent=2))
        tmp.replace(self.path)
