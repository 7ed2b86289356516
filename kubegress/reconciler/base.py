"""External reconciler contract.

The engine hands finished IngressConfig snapshots to a ``ConfigReconciler``.
Implementations must be idempotent: a later ``upsert`` for an identity fully
supersedes earlier ones, and ``delete`` of an identity that was never
upserted is a no-op, not an error.  Any exception signals failure and the
call is retried by the engine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from kubegress.models.identity import NamespacedName
from kubegress.models.ingress_config import IngressConfig


class ConfigReconciler(ABC):
    """Sink for built ingress configuration."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Identifier used in metrics and logs."""

    @abstractmethod
    async def upsert(self, config: IngressConfig) -> None:
        """Create or replace the configuration stored under ``config.identity``."""

    @abstractmethod
    async def delete(self, identity: NamespacedName) -> None:
        """Remove any configuration stored under *identity*."""

    async def close(self) -> None:  # noqa: B027
        """Release resources. Optional."""
