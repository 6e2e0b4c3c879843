"""Error kinds, exceptions and the single HTTP error boundary."""

import logging
from enum import StrEnum
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from opentelemetry import trace
from opentelemetry.trace import StatusCode


logger = logging.getLogger(__name__)


class ErrorKind(StrEnum):
    NOT_FOUND = "not_found"
    STORAGE_FAILURE = "storage_failure"


STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.STORAGE_FAILURE: 500,
}


class TaskAPIError(Exception):
    """Base error for everything the gateway turns into an HTTP error response.

    ``message`` is the client-facing text and never carries storage details.
    """

    kind: ErrorKind

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]


_NOT_FOUND_LOG_PREFIXES = {
    "get": "Task not found",
    "update": "Task not found for update",
    "delete": "Task not found for delete",
}


class TaskNotFoundError(TaskAPIError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, task_id: int | str, action: str = "get") -> None:
        super().__init__("Task not found")
        self.task_id = task_id
        self.action = action

    @property
    def log_message(self) -> str:
        prefix = _NOT_FOUND_LOG_PREFIXES.get(self.action, "Task not found")
        return f"{prefix}: ID {self.task_id}"


class StorageError(TaskAPIError):
    kind = ErrorKind.STORAGE_FAILURE

    def __init__(self, message: str, cause: BaseException) -> None:
        super().__init__(message)
        self.cause = cause


def error_response(message: str, status_code: int) -> JSONResponse:
    """Create error response with trace context.

    Args:
        message: Error message.
        status_code: HTTP status code.

    Returns:
        JSON response with an ``error`` key, plus ``trace_id`` when tracing is active.
    """
    content: dict[str, Any] = {"error": message}

    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        content["trace_id"] = format(span_context.trace_id, "032x")

    return JSONResponse(status_code=status_code, content=content)


def _record_error_on_span(exc: TaskAPIError) -> None:
    span = trace.get_current_span()
    if span.is_recording():
        cause = getattr(exc, "cause", exc)
        span.record_exception(cause)
        span.set_attribute("error.type", type(cause).__name__)
        span.set_attribute("error.kind", exc.kind.value)
        if exc.kind is ErrorKind.STORAGE_FAILURE:
            span.set_status(StatusCode.ERROR, exc.message)


def _log_and_ship(request: Request, exc: TaskAPIError) -> None:
    shipper = getattr(request.app.state, "shipper", None)

    if isinstance(exc, TaskNotFoundError):
        logger.info(exc.log_message)
        if shipper is not None:
            shipper.info(exc.log_message)
    elif isinstance(exc, StorageError):
        logger.error(
            "%s (%s %s)",
            exc.message,
            request.method,
            request.url.path,
            exc_info=exc.cause,
        )
        if shipper is not None:
            shipper.error(exc.message, {"error": str(exc.cause)})


def register_error_handlers(app: FastAPI) -> None:
    """Register the error handlers on the app.

    Not-found is recorded as info, storage failures as errors with the
    underlying cause; both go to the local log and the remote shipper.
    Anything else that escapes a handler is treated as a storage failure.
    """

    @app.exception_handler(TaskAPIError)
    async def task_api_error_handler(request: Request, exc: TaskAPIError) -> JSONResponse:
        _record_error_on_span(exc)
        _log_and_ship(request, exc)
        return error_response(exc.message, exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        # Only unparseable JSON or a non-object body get here; field values are not checked
        logger.warning("Invalid body on %s %s: %s", request.method, request.url.path, exc.errors())
        return error_response("Invalid request body", 400)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        wrapped = StorageError("Internal server error", exc)
        _record_error_on_span(wrapped)
        _log_and_ship(request, wrapped)
        return error_response(wrapped.message, wrapped.status_code)
