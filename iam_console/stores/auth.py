"""Session and principal-permission store."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ValidationError

from iam_console.cancellation import CancelToken
from iam_console.interfaces.session import SessionStorage
from iam_console.models import AuthSession, PermissionGrant, User, UserCreate, UserLogin
from iam_console.stores.base import BaseStore, OperationResult, Phase
from iam_console.transport.client import ApiClient
from iam_console.transport.errors import ResponseShapeError
from iam_console.transport.schemas import parse_grants

logger = logging.getLogger(__name__)


@dataclass
class AuthState:
    user: User | None = None
    token: str | None = None
    permissions: list[PermissionGrant] = field(default_factory=list)
    loading: bool = False
    error: bool = False
    success: bool = False
    message: str = ""
    phase: Phase = Phase.idle


def parse_auth_response(body: Any) -> AuthSession:
    """Build an AuthSession from a login/register response.

    The token may sit at the top level or inside ``user``.
    """
    if not isinstance(body, dict) or not isinstance(body.get("user"), dict):
        raise ResponseShapeError("Expected {'user': {...}} in auth response", body=body)
    user_data = body["user"]
    token = body.get("token") or user_data.get("token")
    if not token:
        raise ResponseShapeError("Auth response carried no token", body=body)
    try:
        return AuthSession(user=User.model_validate(user_data), token=token)
    except ValidationError as e:
        raise ResponseShapeError(f"Invalid user in auth response: {e}", body=body) from e


def _as_payload(data: BaseModel | dict[str, Any]) -> dict[str, Any]:
    return data.model_dump() if isinstance(data, BaseModel) else dict(data)


class AuthStore(BaseStore):
    """Holds the logged-in principal and its flattened permission list.

    Seeded from session storage at construction. The in-memory permission
    list wins; when it is empty the durable cache is used instead.
    """

    name = "auth"

    def __init__(self, client: ApiClient, session: SessionStorage) -> None:
        super().__init__(client)
        self._session = session
        self._state = AuthState()
        self._seed()

    def _seed(self) -> None:
        stored = self._session.load_session()
        self._state.user = stored.user if stored else None
        self._state.token = stored.token if stored else None

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def user(self) -> User | None:
        return self._state.user

    @property
    def is_authenticated(self) -> bool:
        return self._state.user is not None and bool(self._state.token)

    @property
    def effective_permissions(self) -> list[PermissionGrant]:
        if self._state.permissions:
            return list(self._state.permissions)
        return self._session.load_permissions()

    def sync(self) -> None:
        """Re-read session storage, e.g. after the transport cleared it on a 401."""
        self._seed()
        if self._state.user is None:
            self._state.permissions = []
        self._notify()

    async def _authenticate(
        self,
        op: str,
        path: str,
        data: BaseModel | dict[str, Any],
        persist_raw: bool,
        cancel: CancelToken | None,
    ) -> OperationResult[AuthSession]:
        raw: dict[str, Any] = {}

        async def call() -> AuthSession:
            body = await self._client.post(
                path, json=_as_payload(data), authenticated=False, cancel=cancel
            )
            session = parse_auth_response(body)
            raw.update(body)
            return session

        def reconcile(session: AuthSession) -> None:
            self._session.save_session(session, raw=raw if persist_raw else None)
            if self._state.user is None or self._state.user.id != session.user.id:
                self._state.permissions = []
            self._state.user = session.user
            self._state.token = session.token

        result = await self._run(op, call, reconcile, cancel)
        if result.status is Phase.rejected:
            self._state.user = None
            self._state.token = None
            self._notify()
        return result

    async def login(
        self, credentials: UserLogin | dict[str, Any], cancel: CancelToken | None = None
    ) -> OperationResult[AuthSession]:
        return await self._authenticate("login", "/api/auth/login", credentials, True, cancel)

    async def register(
        self, draft: UserCreate | dict[str, Any], cancel: CancelToken | None = None
    ) -> OperationResult[AuthSession]:
        return await self._authenticate("register", "/api/auth/register", draft, False, cancel)

    def logout(self) -> None:
        self._session.clear()
        self._state.user = None
        self._state.token = None
        self._state.permissions = []
        logger.info("Logged out")
        self._notify()

    async def load_permissions(
        self, cancel: CancelToken | None = None
    ) -> OperationResult[list[PermissionGrant]]:
        """GET /api/permissions/me/permissions and cache the result durably."""
        if not (self._state.token or self._session.get_token()):
            return self.fail_locally("No auth token found")

        async def call() -> list[PermissionGrant]:
            body = await self._client.get("/api/permissions/me/permissions", cancel=cancel)
            try:
                return [PermissionGrant.model_validate(p) for p in parse_grants(body)]
            except ValidationError as e:
                raise ResponseShapeError(f"Invalid permission entry: {e}", body=body) from e

        def reconcile(grants: list[PermissionGrant]) -> None:
            self._state.permissions = grants
            self._session.save_permissions(grants)

        return await self._run("load_permissions", call, reconcile, cancel)
