from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .schemas import ErrorEnvelope

logger = logging.getLogger(__name__)


class TaskboardError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500
    code = "internal"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class BadRequest(TaskboardError):
    status_code = 400
    code = "bad_request"


class Unauthorized(TaskboardError):
    status_code = 401
    code = "unauthorized"


class NotFound(TaskboardError):
    status_code = 404
    code = "not_found"


class Conflict(TaskboardError):
    # Clients of the original API expect 400 for a taken email.
    status_code = 400
    code = "conflict"


class Internal(TaskboardError):
    pass


def error_response(status_code: int, code: str, message: str, details: Optional[dict] = None) -> JSONResponse:
    body = ErrorEnvelope(code=code, message=message, details=details, requestId=str(uuid.uuid4()))
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body, exclude_none=True))


async def handle_taskboard_error(request: Request, exc: TaskboardError) -> JSONResponse:
    return error_response(exc.status_code, exc.code, exc.message, exc.details)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return error_response(400, BadRequest.code, "Invalid request", {"errors": errors})


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(500, Internal.code, "Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TaskboardError, handle_taskboard_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
