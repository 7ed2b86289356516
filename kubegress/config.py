"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from kubegress.models.config import (
    APIConfig,
    ControllerConfig,
    EventsConfig,
    KubegressConfig,
    LogConfig,
    QueueConfig,
    ReconcilerConfig,
)


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KUBEGRESS_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float, min_val: float | None = None) -> float:
    val = float(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    return val


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_controller_name(value: str) -> str:
    if not value or "/" not in value:
        raise ValueError(f"Invalid controller name: {value!r}. Expected a domain-prefixed path, e.g. example.com/ingress")
    return value


def load_config() -> KubegressConfig:
    """Load configuration from KUBEGRESS_* environment variables."""
    base_delay = _env_float("RETRY_BASE_DELAY", 0.05, min_val=0.001)
    return KubegressConfig(
        controller=ControllerConfig(
            controller_name=_validate_controller_name(_env("CONTROLLER_NAME", "kubegress.io/ingress-controller")),
            annotation_prefix=_env("ANNOTATION_PREFIX", "ingress.kubegress.io").rstrip("/"),
            watch_namespace=_env("WATCH_NAMESPACE", ""),
        ),
        queue=QueueConfig(
            workers=_env_int("WORKERS", 4, min_val=1, max_val=64),
            retry_base_delay=base_delay,
            retry_max_delay=_env_float("RETRY_MAX_DELAY", 300.0, min_val=base_delay),
        ),
        reconciler=ReconcilerConfig(
            endpoint=_env("RECONCILER_ENDPOINT", "").rstrip("/"),
            timeout_seconds=_env_float("RECONCILER_TIMEOUT", 10.0, min_val=1.0),
        ),
        events=EventsConfig(
            enabled=_env_bool("EVENTS_ENABLED", True),
        ),
        api=APIConfig(
            port=_env_int("API_PORT", 8080, min_val=1, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )
