"""Route handlers for the kubegress REST API."""

from __future__ import annotations

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from kubegress.api.schemas import (
    HealthResponse,
    IngressListResponse,
    IngressStatusResponse,
    ReadinessResponse,
)
from kubegress.cache.object_cache import CacheReadiness

router = APIRouter()
probes = APIRouter()


@probes.get("/healthz", response_model=HealthResponse)
async def healthz() -> HealthResponse:
    from kubegress import __version__

    return HealthResponse(status="ok", version=__version__)


@probes.get("/readyz", response_model=ReadinessResponse)
async def readyz(request: Request) -> JSONResponse:
    cache = request.app.state.cache
    engine = request.app.state.engine
    cache_state = cache.readiness()
    body = ReadinessResponse(
        ready=cache_state == CacheReadiness.READY and engine.running,
        cache_state=str(cache_state),
        engine_running=engine.running,
    )
    return JSONResponse(status_code=200 if body.ready else 503, content=body.model_dump())


@probes.get("/metrics")
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@router.get("/ingresses", response_model=IngressListResponse)
async def list_ingresses(request: Request) -> IngressListResponse:
    """Adopted ingresses and ingresses currently in an error state."""
    engine = request.app.state.engine
    statuses = engine.statuses()
    return IngressListResponse(
        controller=request.app.state.controller_name,
        adopted=len(engine.adopted()),
        ingresses=[
            IngressStatusResponse(
                namespace=s.identity.namespace,
                name=s.identity.name,
                state=str(s.state),
                error=s.error,
                error_kind=s.error_kind,
            )
            for s in statuses
        ],
    )
