"""Configuration snapshot handed to the external reconciler."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any

from kubegress.models.errors import (
    InternalConsistencyError,
    InvalidSecretDataError,
    InvalidSecretTypeError,
    PortNotFoundError,
)
from kubegress.models.identity import NamespacedName

SECRET_TYPE_TLS = "kubernetes.io/tls"
TLS_PRIVATE_KEY_KEY = "tls.key"
TLS_CERT_KEY = "tls.crt"
CA_CERT_KEY = "ca.crt"

# Annotation suffixes, combined with the controller's annotation prefix.
SECURE_UPSTREAM = "secure_upstream"
TLS_CUSTOM_CA_SECRET = "tls_custom_ca_secret"
TLS_CLIENT_SECRET = "tls_client_secret"
TLS_DOWNSTREAM_CLIENT_CA_SECRET = "tls_downstream_client_ca_secret"

SECRET_ANNOTATIONS = (TLS_CUSTOM_CA_SECRET, TLS_CLIENT_SECRET, TLS_DOWNSTREAM_CLIENT_CA_SECRET)


@dataclass(frozen=True)
class TLSCert:
    """Decoded key/certificate pair of a TLS secret."""

    key: bytes
    cert: bytes


def secret_bytes(secret: dict[str, Any], key: str) -> bytes:
    """Decode one base64 ``data`` entry of a served Secret; missing keys decode to b''.

    Raises:
        InvalidSecretDataError: the value is not strict base64.
    """
    value = (secret.get("data") or {}).get(key)
    if not value:
        return b""
    try:
        return base64.b64decode(value, validate=True)
    except ValueError as exc:  # binascii.Error, or non-ASCII text
        raise InvalidSecretDataError(NamespacedName.from_object(secret), key) from exc


def secret_type(secret: dict[str, Any]) -> str:
    return str(secret.get("type") or "")


@dataclass(frozen=True)
class IngressConfig:
    """An ingress together with every Service and Secret it references.

    Built fresh on each reconciliation and never mutated afterwards.  The
    ``services`` and ``secrets`` maps hold exactly the identities the
    ingress referenced at build time.
    """

    annotation_prefix: str
    ingress: dict[str, Any]
    services: dict[NamespacedName, dict[str, Any]] = field(default_factory=dict)
    secrets: dict[NamespacedName, dict[str, Any]] = field(default_factory=dict)

    @property
    def identity(self) -> NamespacedName:
        return NamespacedName.from_object(self.ingress)

    @property
    def namespace(self) -> str:
        return self.identity.namespace

    @property
    def annotations(self) -> dict[str, str]:
        return (self.ingress.get("metadata") or {}).get("annotations") or {}

    @property
    def spec(self) -> dict[str, Any]:
        return self.ingress.get("spec") or {}

    def annotation(self, suffix: str) -> str | None:
        return self.annotations.get(f"{self.annotation_prefix}/{suffix}")

    def is_secure_upstream(self) -> bool:
        return (self.annotation(SECURE_UPSTREAM) or "").lower() == "true"

    def service_port_by_name(self, identity: NamespacedName, port: str) -> int:
        """Return the numeric port of the service port named *port*."""
        svc = self.services.get(identity)
        if svc is None:
            raise InternalConsistencyError(f"service {identity} was not pre-fetched, this is a bug")

        for service_port in (svc.get("spec") or {}).get("ports") or []:
            if service_port.get("name") == port:
                return int(service_port["port"])

        raise PortNotFoundError(identity, port)

    def parse_tls_certificates(self) -> list[TLSCert]:
        """Decode the TLS secrets in the order of ``spec.tls``."""
        certs: list[TLSCert] = []
        for tls in self.spec.get("tls") or []:
            secret_name = tls.get("secretName")
            if not secret_name:
                continue
            identity = NamespacedName(self.namespace, secret_name)
            secret = self._prefetched_secret(identity)
            certs.append(_tls_cert(identity, secret))
        return certs

    def tls_client_certificate(self) -> TLSCert | None:
        identity = self._annotated_secret(TLS_CLIENT_SECRET)
        if identity is None:
            return None
        return _tls_cert(identity, self._prefetched_secret(identity))

    def tls_custom_ca(self) -> bytes | None:
        return self._annotated_ca(TLS_CUSTOM_CA_SECRET)

    def tls_downstream_client_ca(self) -> bytes | None:
        return self._annotated_ca(TLS_DOWNSTREAM_CLIENT_CA_SECRET)

    def _annotated_ca(self, suffix: str) -> bytes | None:
        identity = self._annotated_secret(suffix)
        if identity is None:
            return None
        return secret_bytes(self._prefetched_secret(identity), CA_CERT_KEY)

    def _annotated_secret(self, suffix: str) -> NamespacedName | None:
        name = self.annotation(suffix)
        if not name:
            return None
        return NamespacedName(self.namespace, name)

    def _prefetched_secret(self, identity: NamespacedName) -> dict[str, Any]:
        secret = self.secrets.get(identity)
        if secret is None:
            raise InternalConsistencyError(f"secret {identity} was not pre-fetched, this is a bug")
        return secret


def _tls_cert(identity: NamespacedName, secret: dict[str, Any]) -> TLSCert:
    if secret_type(secret) != SECRET_TYPE_TLS:
        raise InvalidSecretTypeError(identity, SECRET_TYPE_TLS, secret_type(secret))
    return TLSCert(
        key=secret_bytes(secret, TLS_PRIVATE_KEY_KEY),
        cert=secret_bytes(secret, TLS_CERT_KEY),
    )
