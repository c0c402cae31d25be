"""
Response decoration and the top-level error boundary.
"""

from __future__ import annotations

import logging
import time

from fastapi import Request
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,POST,PUT,DELETE,OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type,Authorization,X-Requested-With",
}


def apply_cors_headers(response: Response) -> Response:
    """Set the cross-origin headers, overwriting any existing values."""
    for name, value in CORS_HEADERS.items():
        response.headers[name] = value
    return response


class ResponseDecoratorMiddleware(BaseHTTPMiddleware):
    """
    Outermost application layer.

    OPTIONS requests are answered here without routing. Every other request
    is passed on; anything that escapes the exception handlers becomes a 500
    JSON body. All responses leave with the CORS headers attached.
    """

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS":
            return apply_cors_headers(Response(status_code=200))

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.exception(
                "Unhandled error on %s %s", request.method, request.url.path
            )
            response = JSONResponse(
                status_code=500, content={"error": str(exc), "success": False}
            )

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.info(
            "%s %s -> %d (%.2f ms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return apply_cors_headers(response)
