"""Response models for the kubegress REST API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    error: str
    detail: str


class HealthResponse(BaseModel):
    status: str
    version: str


class ReadinessResponse(BaseModel):
    ready: bool
    cache_state: str
    engine_running: bool


class IngressStatusResponse(BaseModel):
    namespace: str
    name: str
    state: str
    error: str | None = None
    error_kind: str | None = None


class IngressListResponse(BaseModel):
    controller: str
    adopted: int
    ingresses: list[IngressStatusResponse] = Field(default_factory=list)
