"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ControllerConfig:
    """Adoption and annotation settings of this controller instance."""

    controller_name: str = "kubegress.io/ingress-controller"
    annotation_prefix: str = "ingress.kubegress.io"
    watch_namespace: str = ""


@dataclass
class QueueConfig:
    """Worker pool and retry backoff."""

    workers: int = 4
    retry_base_delay: float = 0.05
    retry_max_delay: float = 300.0


@dataclass
class ReconcilerConfig:
    """Downstream proxy control-plane endpoint. Empty endpoint means dry-run."""

    endpoint: str = ""
    timeout_seconds: float = 10.0


@dataclass
class EventsConfig:
    """Advisory Kubernetes Event recording."""

    enabled: bool = True


@dataclass
class APIConfig:
    """REST API configuration."""

    port: int = 8080


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class KubegressConfig:
    """Top-level kubegress configuration."""

    controller: ControllerConfig = field(default_factory=ControllerConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    reconciler: ReconcilerConfig = field(default_factory=ReconcilerConfig)
    events: EventsConfig = field(default_factory=EventsConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
