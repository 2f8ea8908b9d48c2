"""
Request context and response envelopes.

Every handler receives the shared ApiContext and one ApiRequest and returns
an envelope dict:

    {success, message?, error?, request: {method, path, query?, body?}, data?}

or an awaitable resolving to one (deferred handlers).
"""

import functools
import inspect
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Union

from ..core.errors import ControllerError, IntegrityError
from ..core.geometry import DEFAULT_MARGIN
from ..host import ModelEngine, Repository
from ..utils import get_logger

logger = get_logger("api")

Envelope = dict[str, Any]
HandlerResult = Union[Envelope, Awaitable[Envelope]]

NOT_FOUND_PATTERN = re.compile(r"^([\w ]+)?not found: ", re.IGNORECASE)


@dataclass
class ApiContext:
    """Process-wide collaborators handed to every handler."""
    engine: ModelEngine
    repository: Repository
    frame_margin: float = DEFAULT_MARGIN

    @classmethod
    def create(cls, engine: Optional[ModelEngine] = None,
               frame_margin: float = DEFAULT_MARGIN) -> "ApiContext":
        engine = engine or ModelEngine()
        return cls(engine=engine, repository=Repository(engine), frame_margin=frame_margin)


@dataclass
class ApiRequest:
    """One routed request: verb, normalized path, decoded params."""
    method: str
    path: str
    params: dict[str, str] = field(default_factory=dict)
    query: dict[str, str] = field(default_factory=dict)
    body: dict[str, Any] = field(default_factory=dict)

    def info(self) -> dict:
        info: dict[str, Any] = {"method": self.method, "path": self.path}
        if self.query:
            info["query"] = dict(self.query)
        if self.body:
            info["body"] = self.body
        return info


Handler = Callable[[ApiContext, ApiRequest], HandlerResult]


def ok(req: ApiRequest, message: str, data: Any = None) -> Envelope:
    result: Envelope = {"success": True, "message": message, "request": req.info()}
    if data is not None:
        result["data"] = data
    return result


def fail(req: ApiRequest, error: str, data: Any = None) -> Envelope:
    result: Envelope = {"success": False, "error": error, "request": req.info()}
    if data is not None:
        result["data"] = data
    return result


def error_envelope(req: ApiRequest, error: ControllerError) -> Envelope:
    if isinstance(error, IntegrityError) and error.referents:
        return fail(req, str(error), {"referents": error.referents})
    return fail(req, str(error))


def status_for(result: Envelope) -> int:
    """
    HTTP status for an envelope.

    200 on success, 404 when the error reads "<kind> not found: <id>",
    400 for every other reported failure.
    """
    if result.get("success"):
        return 200
    if NOT_FOUND_PATTERN.match(result.get("error") or ""):
        return 404
    return 400


def guarded(handler: Handler) -> Handler:
    """Turn ControllerErrors raised by a handler (sync or deferred) into envelopes."""

    @functools.wraps(handler)
    def wrapper(ctx: ApiContext, req: ApiRequest) -> HandlerResult:
        try:
            result = handler(ctx, req)
        except ControllerError as e:
            return error_envelope(req, e)
        if inspect.isawaitable(result):
            return _guard_deferred(result, req)
        return result

    return wrapper


async def _guard_deferred(pending: Awaitable[Envelope], req: ApiRequest) -> Envelope:
    try:
        return await pending
    except ControllerError as e:
        return error_envelope(req, e)
