# comicshelf/errors.py
"""
Every error leaving either app is ``{"error": "<message>"}``.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AssetError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AssetValidationError(AssetError):
    status_code = 400


class AssetForbidden(AssetError):
    """Path escapes the asset root or targets a protected folder."""
    status_code = 403


class AssetNotFound(AssetError):
    status_code = 404


class AssetConflict(AssetError):
    status_code = 400


def error_response(status_code: int, message, headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    msg = first.get("msg", "Invalid value")
    return f"{loc}: {msg}" if loc else msg


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, exc.detail, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return error_response(400, _validation_message(exc))

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return error_response(429, "Too many requests. Please slow down.")

    @app.exception_handler(AssetError)
    async def asset_error_handler(request: Request, exc: AssetError):
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(500, str(exc) or "Internal server error")
