"""In-memory object cache keyed by (kind, namespace, name)."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from kubegress.models.identity import NamespacedName, ObjectKind
from kubegress.observability.logging import get_logger

_logger = get_logger("cache.object_cache")


class CacheReadiness(StrEnum):
    """Cache completeness state."""

    WARMING = "warming"
    PARTIALLY_READY = "partially_ready"
    READY = "ready"


class ObjectCache:
    """Latest known raw object per identity, for the four watched kinds.

    Objects are stored as the API serves them (camelCase dicts).  Readers
    must treat returned objects as read-only.
    """

    def __init__(self, kinds: tuple[ObjectKind, ...] = tuple(ObjectKind)) -> None:
        self._all_kinds: set[ObjectKind] = set(kinds)
        self._synced_kinds: set[ObjectKind] = set()
        self._store: dict[ObjectKind, dict[NamespacedName, dict[str, Any]]] = {kind: {} for kind in kinds}

    def get(self, kind: ObjectKind, identity: NamespacedName) -> dict[str, Any] | None:
        return self._store.get(kind, {}).get(identity)

    def list(self, kind: ObjectKind, namespace: str | None = None) -> list[dict[str, Any]]:
        objects = self._store.get(kind, {})
        return [obj for ident, obj in sorted(objects.items()) if namespace is None or ident.namespace == namespace]

    def identities(self, kind: ObjectKind) -> set[NamespacedName]:
        return set(self._store.get(kind, {}))

    def update(self, kind: ObjectKind, obj: dict[str, Any]) -> NamespacedName:
        """Insert or replace *obj*; returns its identity."""
        identity = NamespacedName.from_object(obj)
        self._store.setdefault(kind, {})[identity] = obj
        return identity

    def remove(self, kind: ObjectKind, identity: NamespacedName) -> bool:
        """Drop *identity*; returns False if it was not cached."""
        return self._store.get(kind, {}).pop(identity, None) is not None

    def replace(self, kind: ObjectKind, objects: list[dict[str, Any]]) -> set[NamespacedName]:
        """Replace the whole *kind* store after a relist.

        Returns every identity that was added, changed or removed, so the
        caller can emit one notification per affected object.
        """
        previous = self._store.get(kind, {})
        current = {NamespacedName.from_object(obj): obj for obj in objects}
        changed = set(previous.keys() - current.keys())
        changed |= {ident for ident, obj in current.items() if previous.get(ident) != obj}
        self._store[kind] = current
        self.mark_synced(kind)
        _logger.debug("cache_replaced", kind=str(kind), objects=len(current), changed=len(changed))
        return changed

    def mark_synced(self, kind: ObjectKind) -> None:
        self._synced_kinds.add(kind)

    def readiness(self) -> CacheReadiness:
        if not self._synced_kinds:
            return CacheReadiness.WARMING
        if self._all_kinds - self._synced_kinds:
            return CacheReadiness.PARTIALLY_READY
        return CacheReadiness.READY
