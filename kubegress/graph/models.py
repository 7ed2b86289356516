"""Data structures for the dependency registry."""

from __future__ import annotations

from dataclasses import dataclass

from kubegress.models.identity import DependencyKind, NamespacedName


@dataclass(frozen=True, order=True)
class DependencyKey:
    """A dependency target: one object of one kind."""

    kind: DependencyKind
    identity: NamespacedName


@dataclass(frozen=True)
class DependencyEdge:
    """A typed edge from an ingress to an object it references."""

    parent: NamespacedName
    kind: DependencyKind
    dependency: NamespacedName

    @property
    def key(self) -> DependencyKey:
        return DependencyKey(self.kind, self.dependency)
