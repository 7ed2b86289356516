"""Dependency registry between ingresses and the objects they reference.

Provides a bidirectional in-memory index written by every reconcile pass
(backend Services, TLS and annotation Secrets, the governing IngressClass).
"""

from kubegress.graph.models import DependencyEdge, DependencyKey
from kubegress.graph.registry import DependencyRegistry

__all__ = [
    "DependencyEdge",
    "DependencyKey",
    "DependencyRegistry",
]
