"""Cache layer for kubegress.

Holds the latest served state of every watched Ingress, IngressClass,
Service and Secret.  Kept current by the collectors; the reconciliation
engine only ever reads it.

Submodules:
    object_cache -- In-memory object store with per-kind sync tracking.
"""

from kubegress.cache.object_cache import CacheReadiness, ObjectCache

__all__ = ["CacheReadiness", "ObjectCache"]
