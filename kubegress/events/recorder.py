"""Event recording for operator visibility.

EventRecorder            -- ABC the engine records outcomes through.
KubernetesEventRecorder  -- Creates core/v1 Events via kubernetes-asyncio.
NullEventRecorder        -- Drops everything (events disabled).
EventDeduplicator        -- Cooldown per (ingress, reason, message) so a
                            failing retry loop does not flood the API.

Recording is advisory: failures are logged and never propagate.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta
from typing import Any

from kubegress.models.identity import NamespacedName
from kubegress.observability.logging import get_logger

_log = get_logger("events.recorder")

EVENT_NORMAL = "Normal"
EVENT_WARNING = "Warning"

_DEDUP_COOLDOWN = timedelta(minutes=5)


class EventRecorder(ABC):
    """Records human-readable outcome notes against an ingress."""

    @abstractmethod
    def record(self, ingress: dict[str, Any], event_type: str, reason: str, message: str) -> None:
        """Record an event. Must not block and must not raise."""

    def forget(self, identity: NamespacedName) -> None:  # noqa: B027
        """Drop any per-ingress state once *identity* is no longer managed. Optional."""

    async def close(self) -> None:  # noqa: B027
        """Wait for outstanding writes. Optional."""


class NullEventRecorder(EventRecorder):
    def record(self, ingress: dict[str, Any], event_type: str, reason: str, message: str) -> None:
        return None


class EventDeduplicator:
    """Suppresses identical events within a cooldown window."""

    def __init__(self, cooldown: timedelta = _DEDUP_COOLDOWN) -> None:
        self._cooldown = cooldown
        self._last_sent: dict[tuple[NamespacedName, str, str], datetime] = {}

    def __len__(self) -> int:
        return len(self._last_sent)

    def should_send(self, identity: NamespacedName, reason: str, message: str) -> bool:
        key = (identity, reason, message)
        now = datetime.now(tz=UTC)
        self._prune(now)
        last = self._last_sent.get(key)
        if last is not None and (now - last) < self._cooldown:
            return False
        self._last_sent[key] = now
        return True

    def forget(self, identity: NamespacedName) -> None:
        for key in [k for k in self._last_sent if k[0] == identity]:
            del self._last_sent[key]

    def _prune(self, now: datetime) -> None:
        expired = [k for k, sent in self._last_sent.items() if (now - sent) >= self._cooldown]
        for key in expired:
            del self._last_sent[key]


class KubernetesEventRecorder(EventRecorder):
    """Writes core/v1 Events referencing the ingress as involved object.

    Args:
        core_api:   kubernetes_asyncio ``CoreV1Api`` instance.
        component:  Reported as ``source.component``.
    """

    def __init__(
        self,
        core_api: Any,
        component: str = "kubegress",
        deduplicator: EventDeduplicator | None = None,
    ) -> None:
        self._core_api = core_api
        self._component = component
        self._deduplicator = deduplicator or EventDeduplicator()
        self._pending: set[asyncio.Task[None]] = set()

    def record(self, ingress: dict[str, Any], event_type: str, reason: str, message: str) -> None:
        identity = NamespacedName.from_object(ingress)
        if not self._deduplicator.should_send(identity, reason, message):
            return
        task = asyncio.ensure_future(self._create(ingress, event_type, reason, message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def forget(self, identity: NamespacedName) -> None:
        self._deduplicator.forget(identity)

    async def close(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    def build_body(self, ingress: dict[str, Any], event_type: str, reason: str, message: str) -> dict[str, Any]:
        metadata = ingress.get("metadata") or {}
        now = datetime.now(tz=UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
        return {
            "apiVersion": "v1",
            "kind": "Event",
            "metadata": {
                "generateName": f"{metadata.get('name', 'ingress')}.",
                "namespace": metadata.get("namespace") or "default",
            },
            "involvedObject": {
                "apiVersion": "networking.k8s.io/v1",
                "kind": "Ingress",
                "name": metadata.get("name"),
                "namespace": metadata.get("namespace"),
                "uid": metadata.get("uid"),
                "resourceVersion": metadata.get("resourceVersion"),
            },
            "type": event_type,
            "reason": reason,
            "message": message[:1024],
            "source": {"component": self._component},
            "firstTimestamp": now,
            "lastTimestamp": now,
            "count": 1,
        }

    async def _create(self, ingress: dict[str, Any], event_type: str, reason: str, message: str) -> None:
        body = self.build_body(ingress, event_type, reason, message)
        try:
            await self._core_api.create_namespaced_event(body["metadata"]["namespace"], body)
        except Exception as exc:  # noqa: BLE001
            _log.warning(
                "event_record_failed",
                ingress=str(NamespacedName.from_object(ingress)),
                reason=reason,
                error=str(exc),
            )
