# civic_feed/exception_handling.py
from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .logging_setup import get_logger

# Keep a separate logger namespace for exceptions
logger = get_logger("civic_feed.exceptions")


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(
        "HTTP_EXCEPTION",
        extra={"handled": True, "path": str(request.url.path), "status_code": exc.status_code},
    )
    return JSONResponse(
        {"error": str(exc.detail)},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # A malformed body is reported as a plain server error with its message
    logger.warning(
        "REQUEST_INVALID",
        extra={"handled": True, "path": str(request.url.path)},
    )
    message = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', '')}"
        for err in exc.errors()
    )
    return JSONResponse({"error": message or "Invalid request"}, status_code=500)


def cors_headers(request: Request) -> dict:
    """
    Allow-Origin for responses built outside the CORS middleware.
    The catch-all handler runs in ServerErrorMiddleware, which wraps it.
    """
    origin = request.headers.get("origin")
    if not origin:
        return {}
    allowed = request.app.state.settings.cors_origins
    if "*" in allowed:
        return {"Access-Control-Allow-Origin": "*"}
    if origin in allowed:
        return {"Access-Control-Allow-Origin": origin, "Vary": "Origin"}
    return {}


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(
        "UNHANDLED_EXCEPTION",
        extra={"handled": False, "path": str(request.url.path)},
    )
    return JSONResponse(
        {"error": str(exc) or type(exc).__name__},
        status_code=500,
        headers=cors_headers(request),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers in one place.
    Called from create_app() right after the FastAPI app is built.
    """
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
