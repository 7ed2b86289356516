"""Config builder: resolve an adopted ingress into an IngressConfig snapshot.

The builder collects every Service referenced by a backend (rule paths and
the default backend) and every Secret referenced by a TLS entry or a
TLS annotation, fetches each from the object cache exactly once, and
validates the result before handing it out.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Protocol

from kubegress.models.errors import (
    InternalConsistencyError,
    InvalidBackendError,
    TransientFetchError,
)
from kubegress.models.identity import DependencyKind, NamespacedName, ObjectKind
from kubegress.models.ingress_config import SECRET_ANNOTATIONS, IngressConfig


class _CacheProto(Protocol):
    def get(self, kind: ObjectKind, identity: NamespacedName) -> dict[str, Any] | None: ...


@dataclass
class IngressReferences:
    """Everything an ingress points at, deduplicated by identity."""

    services: set[NamespacedName] = field(default_factory=set)
    secrets: set[NamespacedName] = field(default_factory=set)
    # (service, port name) pairs that must resolve on the service
    named_ports: set[tuple[NamespacedName, str]] = field(default_factory=set)
    invalid_backends: list[str] = field(default_factory=list)

    def of_kind(self, kind: DependencyKind) -> set[NamespacedName]:
        if kind == DependencyKind.SERVICE:
            return self.services
        if kind == DependencyKind.SECRET:
            return self.secrets
        return set()


def collect_references(ingress: dict[str, Any], annotation_prefix: str) -> IngressReferences:
    """Walk the ingress spec and collect its Service and Secret references."""
    metadata = ingress.get("metadata") or {}
    namespace = str(metadata.get("namespace") or "")
    annotations = metadata.get("annotations") or {}
    spec = ingress.get("spec") or {}
    refs = IngressReferences()

    backends = []
    if spec.get("defaultBackend"):
        backends.append(spec["defaultBackend"])
    for rule in spec.get("rules") or []:
        for path in (rule.get("http") or {}).get("paths") or []:
            if path.get("backend"):
                backends.append(path["backend"])

    for backend in backends:
        service = backend.get("service")
        if not service:
            # resource backends carry no service dependency
            continue
        identity = NamespacedName(namespace, str(service.get("name") or ""))
        port = service.get("port") or {}
        if port.get("name"):
            refs.named_ports.add((identity, str(port["name"])))
        elif port.get("number") is None:
            refs.invalid_backends.append(f"backend service {identity} has neither a port name nor a port number")
        refs.services.add(identity)

    for tls in spec.get("tls") or []:
        if tls.get("secretName"):
            refs.secrets.add(NamespacedName(namespace, str(tls["secretName"])))

    for suffix in SECRET_ANNOTATIONS:
        name = annotations.get(f"{annotation_prefix}/{suffix}")
        if name:
            refs.secrets.add(NamespacedName(namespace, str(name)))

    return refs


class ConfigBuilder:
    """Builds IngressConfig snapshots from the local object cache.

    Never performs I/O: every read is served by the cache.
    """

    def __init__(self, cache: _CacheProto, annotation_prefix: str) -> None:
        self._cache = cache
        self._annotation_prefix = annotation_prefix

    @property
    def annotation_prefix(self) -> str:
        return self._annotation_prefix

    def references(self, ingress: dict[str, Any]) -> IngressReferences:
        return collect_references(ingress, self._annotation_prefix)

    def build(self, ingress: dict[str, Any]) -> IngressConfig:
        """Return a validated snapshot for *ingress*.

        Raises:
            TransientFetchError: a referenced object is not in the cache.
            ValidationError: wrong secret type, undecodable secret data, unknown named
                port or malformed backend.
            InternalConsistencyError: the built snapshot does not match the references.
        """
        refs = self.references(ingress)
        if refs.invalid_backends:
            raise InvalidBackendError("; ".join(refs.invalid_backends))

        services = {ident: self._fetch(DependencyKind.SERVICE, ident) for ident in sorted(refs.services)}
        secrets = {ident: self._fetch(DependencyKind.SECRET, ident) for ident in sorted(refs.secrets)}

        config = IngressConfig(
            annotation_prefix=self._annotation_prefix,
            ingress=copy.deepcopy(ingress),
            services=services,
            secrets=secrets,
        )
        if set(config.services) != refs.services or set(config.secrets) != refs.secrets:
            raise InternalConsistencyError(f"snapshot of {config.identity} does not match its references")

        for identity, port in sorted(refs.named_ports):
            config.service_port_by_name(identity, port)
        config.parse_tls_certificates()
        config.tls_client_certificate()
        config.tls_custom_ca()
        config.tls_downstream_client_ca()

        return config

    def _fetch(self, kind: DependencyKind, identity: NamespacedName) -> dict[str, Any]:
        obj = self._cache.get(kind.object_kind, identity)
        if obj is None:
            raise TransientFetchError(kind, identity)
        if NamespacedName.from_object(obj) != identity:
            raise InternalConsistencyError(f"cache returned {NamespacedName.from_object(obj)} for {kind} {identity}")
        return copy.deepcopy(obj)
