# civic_feed/middleware.py
import time
import uuid
from typing import Optional

from starlette.datastructures import Headers
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import Response

from .logging_setup import request_id_var, get_logger

logger = get_logger("civic_feed.http")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds a request id to the logging context and logs one line per request."""

    async def dispatch(self, request: Request, call_next):
        req_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
        token = request_id_var.set(req_id)
        http = {"method": request.method, "path": request.url.path}

        start = time.perf_counter()
        response: Optional[Response] = None

        try:
            logger.debug("REQUEST_START", extra=http)
            response = await call_next(request)
            response.headers["X-Request-ID"] = req_id
            return response
        except Exception:
            # the registered exception handlers build the response
            logger.exception("REQUEST_FAILED", extra=http)
            raise
        finally:
            status = getattr(response, "status_code", 500)
            elapsed_ms = round((time.perf_counter() - start) * 1000, 1)
            level = "warning" if status >= 500 else "info"
            getattr(logger, level)("REQUEST_END", extra={**http, "status_code": status, "elapsed_ms": elapsed_ms})
            request_id_var.reset(token)


class PreflightCORSMiddleware(CORSMiddleware):
    """CORSMiddleware whose successful preflight answer is an empty 200."""

    def preflight_response(self, request_headers: Headers) -> Response:
        response = super().preflight_response(request_headers=request_headers)
        if response.status_code != 200:
            return response
        headers = {
            k: v for k, v in response.headers.items()
            if k not in ("content-length", "content-type")
        }
        return Response(status_code=200, headers=headers)
