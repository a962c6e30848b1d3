# -*- coding: utf-8 -*-
"""API exceptions and the handlers that turn them into JSON envelopes."""
from __future__ import annotations

import logging
from typing import Any

from flask import Flask
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from .extensions import db

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status = 400
    code = "BAD_REQUEST"

    def __init__(self, message: str, status: int | None = None, code: str | None = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status
        if code is not None:
            self.code = code
        self.details = details


class BadRequest(ApiError):
    pass


class Unauthorized(ApiError):
    status = 401
    code = "UNAUTHENTICATED"


class Forbidden(ApiError):
    status = 403
    code = "FORBIDDEN"


class NotFound(ApiError):
    status = 404
    code = "NOT_FOUND"


class Conflict(ApiError):
    status = 409
    code = "CONFLICT"


class ClockError(ApiError):
    """A clock action the worker's current state does not allow."""
    status = 400
    code = "INVALID_TRANSITION"


class ClockConflict(Conflict):
    """Another request changed the same worker first."""


def validation_details(exc: ValidationError) -> list[dict[str, str]]:
    return [
        {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
        for err in exc.errors()
    ]


def register_error_handlers(app: Flask) -> None:
    from .api import fail

    @app.errorhandler(ApiError)
    def _api_error(exc: ApiError):
        return fail(exc.message, exc.status, exc.code, exc.details)

    @app.errorhandler(ValidationError)
    def _validation_error(exc: ValidationError):
        return fail("Invalid request data", 400, "VALIDATION_ERROR", validation_details(exc))

    @app.errorhandler(HTTPException)
    def _http_error(exc: HTTPException):
        code = (exc.name or "error").upper().replace(" ", "_")
        return fail(exc.description or exc.name, exc.code or 500, code)

    @app.errorhandler(Exception)
    def _unexpected(exc: Exception):
        db.session.rollback()
        logger.error("Unhandled error: %s", exc, exc_info=True)
        return fail("Internal server error", 500, "INTERNAL_ERROR")
