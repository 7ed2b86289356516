"""Bidirectional ingress -> dependency index.

Two paired mappings are kept in lock-step:

    parent -> {DependencyKey}
    DependencyKey -> {parent}

All operations take a single mutex and never perform I/O, so they are safe to
call from any worker coroutine or thread.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable

from kubegress.graph.models import DependencyEdge, DependencyKey
from kubegress.models.identity import DependencyKind, NamespacedName


class DependencyRegistry:
    """Tracks which ingresses reference which Services, Secrets and IngressClasses.

    One instance is constructed per engine and shared by reference with every
    component that needs fan-out.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._dependencies: dict[NamespacedName, set[DependencyKey]] = {}
        self._parents: dict[DependencyKey, set[NamespacedName]] = {}

    @property
    def parent_count(self) -> int:
        with self._lock:
            return len(self._dependencies)

    @property
    def edge_count(self) -> int:
        with self._lock:
            return sum(len(deps) for deps in self._dependencies.values())

    def set_edges(
        self,
        parent: NamespacedName,
        kind: DependencyKind,
        dependencies: Iterable[NamespacedName],
    ) -> None:
        """Replace every *kind* edge of *parent* with *dependencies*.

        Edges of other kinds for the same parent are left untouched.
        """
        wanted = {DependencyKey(kind, dep) for dep in dependencies}
        with self._lock:
            current = self._dependencies.get(parent, set())
            for key in [k for k in current if k.kind == kind and k not in wanted]:
                current.discard(key)
                self._unlink(key, parent)
            for key in wanted - current:
                current.add(key)
                self._parents.setdefault(key, set()).add(parent)
            if current:
                self._dependencies[parent] = current
            else:
                self._dependencies.pop(parent, None)

    def clear_all(self, parent: NamespacedName) -> None:
        """Remove every edge of *parent*."""
        with self._lock:
            for key in self._dependencies.pop(parent, set()):
                self._unlink(key, parent)

    def parents_of(self, kind: DependencyKind, identity: NamespacedName) -> set[NamespacedName]:
        """Return the ingresses currently depending on (*kind*, *identity*)."""
        with self._lock:
            return set(self._parents.get(DependencyKey(kind, identity), ()))

    def dependencies_of(
        self,
        parent: NamespacedName,
        kind: DependencyKind | None = None,
    ) -> set[NamespacedName]:
        with self._lock:
            return {k.identity for k in self._dependencies.get(parent, ()) if kind is None or k.kind == kind}

    def edges(self, parent: NamespacedName) -> list[DependencyEdge]:
        with self._lock:
            keys = sorted(self._dependencies.get(parent, ()))
        return [DependencyEdge(parent, key.kind, key.identity) for key in keys]

    def is_tracked(self, parent: NamespacedName) -> bool:
        with self._lock:
            return parent in self._dependencies

    def _unlink(self, key: DependencyKey, parent: NamespacedName) -> None:
        parents = self._parents.get(key)
        if parents is None:
            return
        parents.discard(parent)
        if not parents:
            del self._parents[key]
