"""
Error taxonomy and its single translation to HTTP responses.

Handlers raise the domain errors below; `install_error_handlers` turns them
into `{"detail": ...}` JSON bodies with the matching status code.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: str = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(ApiError):
    status_code = 422
    default_detail = "Invalid request"


class Conflict(ApiError):
    status_code = 400
    default_detail = "Already exists"


class Unauthorized(ApiError):
    status_code = 401
    default_detail = "Please authenticate"


class Forbidden(ApiError):
    status_code = 403
    default_detail = "Access denied"


class NotFound(ApiError):
    status_code = 404
    default_detail = "Not found"


class InvalidCredentials(ApiError):
    status_code = 400
    default_detail = "Invalid credentials"


class InternalError(ApiError):
    status_code = 500
    default_detail = "Internal server error"


class InvalidToken(Exception):
    """Raised by the token verifier; the auth guard turns it into Unauthorized."""


def error_response(exc: ApiError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def _api_error(request: Request, exc: ApiError):
        return error_response(exc)

    @app.exception_handler(PyMongoError)
    async def _store_error(request: Request, exc: PyMongoError):
        logger.exception("Database error on %s %s", request.method, request.url.path)
        return error_response(InternalError())

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(InternalError())
