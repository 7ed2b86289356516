"""Controller package: adoption, snapshot building, work queue and engine."""

from kubegress.controller.adoption import (
    DEFAULT_CLASS_ANNOTATION,
    AdoptionDecision,
    IngressClassView,
    resolve_adoption,
)
from kubegress.controller.builder import ConfigBuilder, IngressReferences, collect_references
from kubegress.controller.engine import AdoptionState, IngressStatus, ReconciliationEngine
from kubegress.controller.queue import ReconcileQueue

__all__ = [
    "DEFAULT_CLASS_ANNOTATION",
    "AdoptionDecision",
    "AdoptionState",
    "ConfigBuilder",
    "IngressClassView",
    "IngressReferences",
    "IngressStatus",
    "ReconcileQueue",
    "ReconciliationEngine",
    "collect_references",
    "resolve_adoption",
]
