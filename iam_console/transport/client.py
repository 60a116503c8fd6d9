"""Async HTTP client for the IAM backend REST API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from iam_console.cancellation import CancelToken, run_cancellable
from iam_console.interfaces.navigation import Navigator
from iam_console.interfaces.session import SessionStorage
from iam_console.transport.errors import (
    AuthenticationExpired,
    HttpStatusError,
    ResponseShapeError,
    TransportError,
    message_from_body,
)

logger = logging.getLogger(__name__)

_DEFAULT_BASE_URL = "http://localhost:5000"


class ApiClient:
    """Thin wrapper over httpx.AsyncClient.

    Every request reads the bearer token from the injected session storage.
    A 401 on any call clears that storage and redirects to the login route
    before the error is raised to the caller. There is no retry policy.
    """

    def __init__(
        self,
        session: SessionStorage,
        navigator: Navigator,
        base_url: str | None = None,
        timeout: float | None = None,
        user_agent: str = "iam-console",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or _DEFAULT_BASE_URL).rstrip("/")
        self._session = session
        self._navigator = navigator
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                "User-Agent": user_agent,
            },
        )

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _auth_headers(self) -> dict[str, str]:
        token = self._session.get_token()
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def send(
        self,
        method: str,
        path: str,
        json: Any = None,
        *,
        authenticated: bool = True,
        cancel: CancelToken | None = None,
    ) -> Any:
        """Issue one request and return the decoded JSON body (None if empty).

        Raises TransportError, HttpStatusError, AuthenticationExpired,
        ResponseShapeError, or OperationCancelled.
        """
        path = "/" + path.lstrip("/")
        headers = self._auth_headers() if authenticated else {}

        try:
            response = await run_cancellable(
                self._client.request(method, path, json=json, headers=headers),
                cancel,
            )
        except httpx.RequestError as e:
            logger.debug("%s %s failed: %s", method, path, e)
            raise TransportError(str(e) or e.__class__.__name__) from e

        logger.debug("%s %s -> %s", method, path, response.status_code)

        body: Any = None
        decoded = True
        if response.content:
            try:
                body = response.json()
            except ValueError:
                decoded = False

        if response.status_code == 401:
            self._session.clear()
            self._navigator.redirect_to_login()
            raise AuthenticationExpired(
                message_from_body(body, 401, response.text if not decoded else ""),
                status_code=401,
                body=body,
            )

        if not response.is_success:
            raise HttpStatusError(
                message_from_body(body, response.status_code, response.text if not decoded else ""),
                status_code=response.status_code,
                body=body,
            )

        if not decoded:
            raise ResponseShapeError(
                f"{method} {path} returned non-JSON content",
                status_code=response.status_code,
            )
        return body

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.send("GET", path, **kwargs)

    async def post(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.send("POST", path, json=json, **kwargs)

    async def put(self, path: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.send("PUT", path, json=json, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.send("DELETE", path, **kwargs)
