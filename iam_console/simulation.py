"""Ask the backend whether the principal may perform an action."""

from __future__ import annotations

import logging

from iam_console.cancellation import CancelToken
from iam_console.models import SimulationRequest, SimulationResult
from iam_console.transport.client import ApiClient
from iam_console.transport.errors import AuthenticationExpired, HttpStatusError

logger = logging.getLogger(__name__)

SIMULATE_PATH = "/api/permissions/simulate-action"


async def simulate_action(
    client: ApiClient,
    request: SimulationRequest,
    cancel: CancelToken | None = None,
) -> SimulationResult:
    """Pass the (module, action) pair through to the backend's decision.

    A non-2xx answer is a deny verdict. A 401 still resets the session (the
    transport does that) and is reported as a deny. Transport failures
    propagate.
    """
    try:
        body = await client.post(SIMULATE_PATH, json=request.model_dump(), cancel=cancel)
    except AuthenticationExpired as e:
        return SimulationResult(allowed=False, message=e.message)
    except HttpStatusError as e:
        message = e.body.get("message") if isinstance(e.body, dict) else None
        return SimulationResult(allowed=False, message=message or "Action not permitted")

    body = body if isinstance(body, dict) else {}
    allowed = bool(body.get("allowed", True))
    default = "Action is permitted" if allowed else "Action not permitted"
    result = SimulationResult(allowed=allowed, message=body.get("message") or default)
    logger.debug("simulate %s/%s -> %s", request.module, request.action, result.allowed)
    return result
