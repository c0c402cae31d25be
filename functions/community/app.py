"""
FastAPI application entry point for the community backend.
"""

from __future__ import annotations

import logging
import os

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from community.config import get_settings
from community.errors import ApiError
from community.middleware import ResponseDecoratorMiddleware
from community.observability import configure_logging
from community.routes import not_found, router

logger = logging.getLogger(__name__)


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        log = logger.error if exc.status_code >= 500 else logger.warning
        log("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_response(),
            headers=exc.headers(),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail, "success": False},
            headers=exc.headers,
        )


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Community Backend (FastAPI)",
        version="0.1.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    _register_error_handlers(app)
    app.add_middleware(ResponseDecoratorMiddleware)
    app.include_router(router, prefix=settings.api_prefix)

    # Mounted after the API routes so resource prefixes take precedence.
    if settings.static_dir and os.path.isdir(settings.static_dir):
        app.mount(
            "/",
            StaticFiles(directory=settings.static_dir, html=True),
            name="static",
        )
    else:
        app.add_route("/{path:path}", not_found, include_in_schema=False)
    return app


app = create_app()
