"""External reconcilers for kubegress.

ConfigReconciler      -- Upsert/Delete contract called by the engine.
HttpConfigReconciler  -- Pushes rendered configuration to a control plane over HTTP.
DryRunReconciler      -- Logs rendered configuration; used without an endpoint.
build_reconciler      -- Factory used by the application bootstrap.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from kubegress.reconciler.base import ConfigReconciler
from kubegress.reconciler.dry_run import DryRunReconciler
from kubegress.reconciler.http import HttpConfigReconciler

if TYPE_CHECKING:
    from kubegress.models.config import ReconcilerConfig

__all__ = [
    "ConfigReconciler",
    "DryRunReconciler",
    "HttpConfigReconciler",
    "build_reconciler",
]


def build_reconciler(config: ReconcilerConfig) -> ConfigReconciler:
    """Return an HTTP reconciler when an endpoint is configured, else a dry-run one."""
    if config.endpoint:
        return HttpConfigReconciler(config.endpoint, timeout=config.timeout_seconds)
    return DryRunReconciler()
