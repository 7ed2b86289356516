"""Log-only reconciler used when no control-plane endpoint is configured."""

from __future__ import annotations

from typing import Any

from kubegress.models.identity import NamespacedName
from kubegress.models.ingress_config import IngressConfig
from kubegress.observability.logging import get_logger
from kubegress.reconciler.base import ConfigReconciler
from kubegress.reconciler.render import render_document

_log = get_logger("reconciler.dry_run")


class DryRunReconciler(ConfigReconciler):
    """Renders every snapshot and logs it instead of sending it anywhere."""

    def __init__(self) -> None:
        self.applied: dict[NamespacedName, dict[str, Any]] = {}

    @property
    def name(self) -> str:
        return "dry_run"

    async def upsert(self, config: IngressConfig) -> None:
        document = render_document(config)
        self.applied[config.identity] = document
        _log.info("dry_run_upsert", ingress=str(config.identity), routes=len(document["routes"]))

    async def delete(self, identity: NamespacedName) -> None:
        existed = self.applied.pop(identity, None) is not None
        _log.info("dry_run_delete", ingress=str(identity), existed=existed)
