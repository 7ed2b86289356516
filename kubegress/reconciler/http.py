"""HTTP reconciler: pushes rendered configuration to a proxy control plane.

PUT    {endpoint}/v1/ingresses/{namespace}/{name}   -- upsert (JSON body)
DELETE {endpoint}/v1/ingresses/{namespace}/{name}   -- delete; 404 counts as success
"""

from __future__ import annotations

import httpx

from kubegress.models.identity import NamespacedName
from kubegress.models.ingress_config import IngressConfig
from kubegress.observability.logging import get_logger
from kubegress.reconciler.base import ConfigReconciler
from kubegress.reconciler.render import render_document

_log = get_logger("reconciler.http")


class HttpConfigReconciler(ConfigReconciler):
    """Delivers snapshots to a control plane over HTTP.

    Args:
        endpoint: Base URL of the control plane API.
        timeout:  HTTP request timeout in seconds. Defaults to 10.
        client:   Optional pre-built client (tests inject a mock transport).
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not endpoint:
            raise ValueError("Reconciler endpoint must not be empty")
        self._endpoint = endpoint.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def name(self) -> str:
        return "http"

    def _url(self, identity: NamespacedName) -> str:
        return f"{self._endpoint}/v1/ingresses/{identity.namespace}/{identity.name}"

    async def upsert(self, config: IngressConfig) -> None:
        identity = config.identity
        response = await self._client.put(self._url(identity), json=render_document(config))
        if not response.is_success:
            _log.warning(
                "upsert_non_2xx_response",
                ingress=str(identity),
                status_code=response.status_code,
                body=response.text[:200],
            )
        response.raise_for_status()

    async def delete(self, identity: NamespacedName) -> None:
        response = await self._client.delete(self._url(identity))
        if response.status_code == httpx.codes.NOT_FOUND:
            return
        if not response.is_success:
            _log.warning(
                "delete_non_2xx_response",
                ingress=str(identity),
                status_code=response.status_code,
                body=response.text[:200],
            )
        response.raise_for_status()

    async def close(self) -> None:
        await self._client.aclose()
