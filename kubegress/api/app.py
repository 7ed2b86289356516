"""FastAPI application factory for kubegress.

Usage::

    from kubegress.api.app import create_app

    app = create_app(engine=engine, cache=cache, controller_name="example.com/ingress")

The factory is used by both the production bootstrap (``kubegress.app``) and
unit tests.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from kubegress.api.routes import probes, router
from kubegress.api.schemas import ErrorResponse
from kubegress.observability.logging import get_logger

_log = get_logger("api.app")

_API_PREFIX = "/api/v1"


def create_app(engine: Any, cache: Any, controller_name: str = "") -> FastAPI:
    """Create and configure the kubegress FastAPI application.

    Args:
        engine:          ReconciliationEngine instance.
        cache:           ObjectCache instance.
        controller_name: Reported by the status endpoint.
    """
    from kubegress import __version__

    app = FastAPI(
        title="kubegress",
        summary="Ingress reconciliation controller status API",
        version=__version__,
        docs_url="/api/v1/docs",
        redoc_url=None,
        openapi_url="/api/v1/openapi.json",
    )

    app.state.engine = engine
    app.state.cache = cache
    app.state.controller_name = controller_name

    app.include_router(probes)
    app.include_router(router, prefix=_API_PREFIX)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions; never expose stack traces."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error="INTERNAL_ERROR", detail="An unexpected error occurred.").model_dump(),
        )

    return app
