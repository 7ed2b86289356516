"""Object identities, watched kinds, and change notifications."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class ObjectKind(StrEnum):
    """The four object kinds the controller watches."""

    INGRESS = "Ingress"
    INGRESS_CLASS = "IngressClass"
    SERVICE = "Service"
    SECRET = "Secret"


class DependencyKind(StrEnum):
    """Kinds of objects an ingress can depend on."""

    SERVICE = "service"
    SECRET = "secret"
    INGRESS_CLASS = "ingress_class"

    @property
    def object_kind(self) -> ObjectKind:
        return _DEPENDENCY_OBJECT_KINDS[self]


_DEPENDENCY_OBJECT_KINDS = {
    DependencyKind.SERVICE: ObjectKind.SERVICE,
    DependencyKind.SECRET: ObjectKind.SECRET,
    DependencyKind.INGRESS_CLASS: ObjectKind.INGRESS_CLASS,
}


@dataclass(frozen=True, order=True)
class NamespacedName:
    """(namespace, name) pair addressing a single object.

    Cluster-scoped objects (IngressClass) use an empty namespace.
    """

    namespace: str
    name: str

    @classmethod
    def from_object(cls, obj: dict[str, Any]) -> NamespacedName:
        metadata = obj.get("metadata") or {}
        return cls(namespace=str(metadata.get("namespace") or ""), name=str(metadata.get("name") or ""))

    def __str__(self) -> str:
        if not self.namespace:
            return self.name
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class ChangeNotification:
    """A change to one watched object, as delivered by the collectors.

    Carries only the identity; reconciliation always reads the current
    object state from the cache.
    """

    kind: ObjectKind
    identity: NamespacedName
