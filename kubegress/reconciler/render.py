"""Render an IngressConfig into the JSON document sent downstream."""

from __future__ import annotations

import base64
from typing import Any

from kubegress.models.identity import NamespacedName
from kubegress.models.ingress_config import IngressConfig

_CLUSTER_DOMAIN = "svc.cluster.local"


def _b64(data: bytes | None) -> str | None:
    if data is None:
        return None
    return base64.b64encode(data).decode("ascii")


def upstream_url(config: IngressConfig, service: dict[str, Any]) -> str:
    """Build the upstream URL of one service backend."""
    identity = NamespacedName(config.namespace, str(service.get("name") or ""))
    port = service.get("port") or {}
    if port.get("name"):
        number = config.service_port_by_name(identity, str(port["name"]))
    else:
        number = int(port["number"])
    scheme = "https" if config.is_secure_upstream() else "http"
    return f"{scheme}://{identity.name}.{identity.namespace}.{_CLUSTER_DOMAIN}:{number}"


def render_routes(config: IngressConfig) -> list[dict[str, Any]]:
    routes: list[dict[str, Any]] = []
    for rule in config.spec.get("rules") or []:
        host = rule.get("host") or ""
        for path in (rule.get("http") or {}).get("paths") or []:
            service = (path.get("backend") or {}).get("service")
            if not service:
                continue
            routes.append(
                {
                    "host": host,
                    "path": path.get("path") or "/",
                    "path_type": path.get("pathType") or "Prefix",
                    "upstream": upstream_url(config, service),
                }
            )

    default_service = (config.spec.get("defaultBackend") or {}).get("service")
    if default_service:
        routes.append({"host": "", "path": "/", "path_type": "Prefix", "upstream": upstream_url(config, default_service)})
    return routes


def render_document(config: IngressConfig) -> dict[str, Any]:
    """Serialise *config* to a plain dict for JSON encoding."""
    identity = config.identity
    client_cert = config.tls_client_certificate()
    return {
        "namespace": identity.namespace,
        "name": identity.name,
        "resource_version": str((config.ingress.get("metadata") or {}).get("resourceVersion") or ""),
        "routes": render_routes(config),
        "tls": [
            {"hosts": list(entry.get("hosts") or []), "cert": _b64(cert.cert), "key": _b64(cert.key)}
            for entry, cert in zip(
                [t for t in config.spec.get("tls") or [] if t.get("secretName")],
                config.parse_tls_certificates(),
                strict=True,
            )
        ],
        "tls_client_certificate": (
            {"cert": _b64(client_cert.cert), "key": _b64(client_cert.key)} if client_cert is not None else None
        ),
        "tls_custom_ca": _b64(config.tls_custom_ca()),
        "tls_downstream_client_ca": _b64(config.tls_downstream_client_ca()),
    }
