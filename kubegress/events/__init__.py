"""Advisory Kubernetes Events attached to ingress objects."""

from kubegress.events.recorder import (
    EVENT_NORMAL,
    EVENT_WARNING,
    EventDeduplicator,
    EventRecorder,
    KubernetesEventRecorder,
    NullEventRecorder,
)

__all__ = [
    "EVENT_NORMAL",
    "EVENT_WARNING",
    "EventDeduplicator",
    "EventRecorder",
    "KubernetesEventRecorder",
    "NullEventRecorder",
]
