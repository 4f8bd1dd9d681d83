"""Translate failures into RFC 7807 problem responses.

Every exception that escapes an endpoint is rendered as an
``application/problem+json`` document with ``title``, ``status``,
``detail`` and ``traceId`` members. The mapping follows the error taxonomy
in ``map_server.core.errors``:

    - EntityNotFoundError -> 404 "Not found"
    - InvalidGeometryError -> 400 "Invalid geometry", fixed message
    - ValidationError -> 400 "Validation error"
    - DatabaseError (or a raw pymongo error) -> 500 "Database error"
    - anything else -> 500 "Server error"

Raw exception text for 500 responses is only included when the
application runs in development mode.

Example:
    Wrap an ASGI app:
        >>> app.add_middleware(ProblemDetailsMiddleware, expose_details=False)
"""

from __future__ import annotations

import dataclasses
import json
import logging
import uuid
from typing import TYPE_CHECKING, Any

import fastapi.exceptions
import fastapi.responses
import pymongo.errors

from map_server.core import errors

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

PROBLEM_CONTENT_TYPE = "application/problem+json"
TRACE_HEADER = "x-request-id"


@dataclasses.dataclass(frozen=True)
class Problem:
    """Caller-visible description of a failure."""

    status: int
    title: str
    detail: str

    def to_dict(self, trace_id: str) -> dict[str, Any]:
        return {
            "title": self.title,
            "status": self.status,
            "detail": self.detail,
            "traceId": trace_id,
        }


def _request_validation_detail(exc: fastapi.exceptions.RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = str(error.get("msg", "Invalid value"))
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages) or "Request body is invalid"


def to_problem(exc: BaseException, *, expose_details: bool) -> Problem:
    """Map an exception to exactly one problem description.

    Args:
        exc: The failure to translate.
        expose_details: Whether raw exception text may be shown for
            server-side failures.

    Returns:
        Problem with status, title and a detail safe to show the caller.
    """
    if isinstance(exc, pymongo.errors.PyMongoError):
        exc = errors.classify_storage_error(exc)

    if isinstance(
        exc,
        (
            errors.EntityNotFoundError,
            errors.ValidationError,
            errors.InvalidGeometryError,
        ),
    ):
        # InvalidGeometryError messages are already the fixed friendly text.
        return Problem(exc.status_code, exc.title, str(exc))

    if isinstance(exc, fastapi.exceptions.RequestValidationError):
        return Problem(
            errors.ValidationError.status_code,
            errors.ValidationError.title,
            _request_validation_detail(exc),
        )

    if isinstance(exc, errors.DatabaseError):
        detail = str(exc) if expose_details else errors.DATABASE_ERROR_MESSAGE
        return Problem(exc.status_code, exc.title, detail)

    detail = str(exc) if expose_details else errors.UNKNOWN_ERROR_MESSAGE
    return Problem(errors.MapServerError.status_code, errors.MapServerError.title, detail)


def _trace_id(scope: Scope) -> str:
    for name, value in scope.get("headers", []):
        if name.decode("latin-1").lower() == TRACE_HEADER:
            return value.decode("latin-1")
    return uuid.uuid4().hex


class ProblemDetailsMiddleware:
    """ASGI middleware rendering unhandled exceptions as problem documents.

    If the response has already started when the failure happens, the
    original exception is re-raised: the status line and headers are gone
    and the body can no longer be replaced.
    """

    def __init__(self, app: ASGIApp, expose_details: bool = False) -> None:
        self.app = app
        self.expose_details = expose_details

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            if response_started:
                raise
            await self._send_problem(scope, send, exc)

    async def _send_problem(self, scope: Scope, send: Send, exc: Exception) -> None:
        trace_id = _trace_id(scope)
        problem = to_problem(exc, expose_details=self.expose_details)
        if problem.status >= 500:
            logger.error(
                "Unhandled error on %s %s [traceId=%s]",
                scope.get("method"),
                scope.get("path"),
                trace_id,
                exc_info=exc,
            )
        else:
            logger.info(
                "%s on %s %s [traceId=%s]: %s",
                problem.title,
                scope.get("method"),
                scope.get("path"),
                trace_id,
                problem.detail,
            )

        body = json.dumps(problem.to_dict(trace_id)).encode("utf-8")
        await send(
            {
                "type": "http.response.start",
                "status": problem.status,
                "headers": [
                    (b"content-type", PROBLEM_CONTENT_TYPE.encode("latin-1")),
                    (b"content-length", str(len(body)).encode("latin-1")),
                ],
            }
        )
        await send({"type": "http.response.body", "body": body})


async def request_validation_handler(
    request: fastapi.Request,
    exc: fastapi.exceptions.RequestValidationError,
) -> fastapi.Response:
    """Render FastAPI body/parameter validation failures as 400 problems."""
    problem = to_problem(exc, expose_details=False)
    trace_id = request.headers.get(TRACE_HEADER) or uuid.uuid4().hex
    return fastapi.responses.JSONResponse(
        problem.to_dict(trace_id),
        status_code=problem.status,
        media_type=PROBLEM_CONTENT_TYPE,
    )
