"""Reconciliation engine.

Consumes change notifications for the four watched kinds, fans each one out
to the affected ingress identities, and reconciles every identity through a
keyed work queue so that at most one pass per ingress runs at a time.

A pass always starts from the current cache state:

    cache lookup -> adoption decision -> (adopted)   build -> upsert
                                      -> (unadopted) delete if previously upserted

Delete is only ever issued for an identity that reached the adopted state
and is never caused by a Service or Secret change on its own.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol

from kubegress.controller.adoption import (
    IngressClassView,
    affected_by_class,
    ingress_class_name,
    resolve_adoption,
)
from kubegress.controller.builder import ConfigBuilder
from kubegress.controller.queue import ReconcileQueue
from kubegress.events.recorder import EVENT_NORMAL, EVENT_WARNING, EventRecorder, NullEventRecorder
from kubegress.graph.registry import DependencyRegistry
from kubegress.models.errors import (
    AmbiguousDefaultClassError,
    InternalConsistencyError,
    ReconcileError,
    ReconcilerCallError,
    TransientFetchError,
    ValidationError,
)
from kubegress.models.identity import ChangeNotification, DependencyKind, NamespacedName, ObjectKind
from kubegress.models.ingress_config import IngressConfig
from kubegress.observability.logging import get_logger
from kubegress.observability.metrics import (
    adopted_ingresses,
    notifications_total,
    reconcile_duration_seconds,
    reconcile_total,
    reconciler_calls_total,
)
from kubegress.reconciler.base import ConfigReconciler

_logger = get_logger("controller.engine")


class _CacheProto(Protocol):
    def get(self, kind: ObjectKind, identity: NamespacedName) -> dict[str, Any] | None: ...

    def list(self, kind: ObjectKind, namespace: str | None = None) -> list[dict[str, Any]]: ...


class AdoptionState(StrEnum):
    UNADOPTED = "unadopted"
    ADOPTED = "adopted"


@dataclass(frozen=True)
class IngressStatus:
    """Externally visible state of one ingress identity."""

    identity: NamespacedName
    state: AdoptionState
    error: str | None = None
    error_kind: str | None = None


class ReconciliationEngine:
    """Drives the external reconciler from cluster state.

    Args:
        cache:            Read-only object cache.
        registry:         Dependency registry owned by this engine.
        reconciler:       Upsert/Delete sink.
        controller_name:  This instance's IngressClass ``spec.controller`` value.
        annotation_prefix: Prefix of the ingress annotations this controller reads.
        recorder:         Advisory event recorder.
    """

    def __init__(
        self,
        cache: _CacheProto,
        registry: DependencyRegistry,
        reconciler: ConfigReconciler,
        controller_name: str,
        annotation_prefix: str,
        recorder: EventRecorder | None = None,
        workers: int = 4,
        retry_base_delay: float = 0.05,
        retry_max_delay: float = 300.0,
    ) -> None:
        self._cache = cache
        self._registry = registry
        self._reconciler = reconciler
        self._controller_name = controller_name
        self._recorder = recorder or NullEventRecorder()
        self._builder = ConfigBuilder(cache, annotation_prefix)
        self._queue: ReconcileQueue[NamespacedName] = ReconcileQueue(
            self.reconcile,
            workers=workers,
            base_delay=retry_base_delay,
            max_delay=retry_max_delay,
        )
        # identity -> last snapshot accepted by the reconciler; membership == Adopted
        self._applied: dict[NamespacedName, IngressConfig] = {}
        self._errors: dict[NamespacedName, ReconcileError] = {}

    @property
    def queue(self) -> ReconcileQueue[NamespacedName]:
        return self._queue

    @property
    def registry(self) -> DependencyRegistry:
        return self._registry

    @property
    def running(self) -> bool:
        return self._queue.running

    async def start(self) -> None:
        await self._queue.start()
        _logger.info("engine_started", controller=self._controller_name)

    async def stop(self) -> None:
        """Stop admitting notifications; in-flight passes run to completion."""
        await self._queue.stop()
        _logger.info("engine_stopped", adopted=len(self._applied))

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def notify(self, notification: ChangeNotification) -> set[NamespacedName]:
        """Enqueue every ingress affected by *notification*; returns them."""
        notifications_total.labels(kind=str(notification.kind)).inc()
        affected = self.affected_ingresses(notification)
        for identity in affected:
            self._queue.add(identity)
        if affected:
            _logger.debug(
                "notification_dispatched",
                kind=str(notification.kind),
                object=str(notification.identity),
                ingresses=len(affected),
            )
        return affected

    def affected_ingresses(self, notification: ChangeNotification) -> set[NamespacedName]:
        kind = notification.kind
        if kind == ObjectKind.INGRESS:
            return {notification.identity}

        if kind == ObjectKind.INGRESS_CLASS:
            class_name = notification.identity.name
            affected = self._registry.parents_of(DependencyKind.INGRESS_CLASS, NamespacedName("", class_name))
            affected |= {
                NamespacedName.from_object(ingress)
                for ingress in self._cache.list(ObjectKind.INGRESS)
                if affected_by_class(ingress, class_name)
            }
            return affected

        if kind == ObjectKind.SERVICE:
            return self._registry.parents_of(DependencyKind.SERVICE, notification.identity)
        if kind == ObjectKind.SECRET:
            return self._registry.parents_of(DependencyKind.SECRET, notification.identity)
        return set()

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def reconcile(self, identity: NamespacedName) -> None:
        """Run one pass for *identity*. Raises on failure so the queue retries."""
        t_start = time.monotonic()
        try:
            await self._reconcile(identity)
        except ReconcileError as exc:
            reconcile_total.labels(result=type(exc).__name__).inc()
            self._record_failure(identity, exc)
            raise
        except Exception as exc:
            reconcile_total.labels(result="unexpected").inc()
            _logger.exception("reconcile_unexpected_error", ingress=str(identity), error=str(exc))
            raise
        else:
            reconcile_total.labels(result="success").inc()
            self._errors.pop(identity, None)
        finally:
            reconcile_duration_seconds.observe(time.monotonic() - t_start)

    async def _reconcile(self, identity: NamespacedName) -> None:
        ingress = self._cache.get(ObjectKind.INGRESS, identity)
        if ingress is None:
            await self._unadopt(identity, None, "ingress deleted")
            return

        classes = [IngressClassView.from_object(obj) for obj in self._cache.list(ObjectKind.INGRESS_CLASS)]
        try:
            decision = resolve_adoption(ingress_class_name(ingress), classes, self._controller_name)
        except AmbiguousDefaultClassError:
            # no class is guessed; the ingress stays unadopted until a class change resolves it
            await self._unadopt(identity, ingress, "ambiguous default ingress class")
            raise

        if not decision.adopted:
            await self._unadopt(identity, ingress, decision.reason)
            return

        if decision.class_name is None:
            raise InternalConsistencyError(f"adoption of {identity} resolved without an ingress class")
        refs = self._builder.references(ingress)
        self._registry.set_edges(identity, DependencyKind.INGRESS_CLASS, [NamespacedName("", decision.class_name)])
        self._registry.set_edges(identity, DependencyKind.SERVICE, refs.services)
        self._registry.set_edges(identity, DependencyKind.SECRET, refs.secrets)

        config = self._builder.build(ingress)
        if self._applied.get(identity) == config:
            _logger.debug("reconcile_unchanged", ingress=str(identity))
            return

        try:
            await self._reconciler.upsert(config)
        except Exception as exc:
            reconciler_calls_total.labels(operation="upsert", success="false").inc()
            raise ReconcilerCallError("upsert", identity, exc) from exc
        reconciler_calls_total.labels(operation="upsert", success="true").inc()

        first = identity not in self._applied
        self._applied[identity] = config
        adopted_ingresses.set(len(self._applied))
        _logger.info(
            "reconcile_upserted",
            ingress=str(identity),
            ingress_class=decision.class_name,
            services=len(config.services),
            secrets=len(config.secrets),
            adopted=first,
        )
        self._recorder.record(ingress, EVENT_NORMAL, "Updated", f"configuration applied via {self._reconciler.name}")

    async def _unadopt(self, identity: NamespacedName, ingress: dict[str, Any] | None, reason: str) -> None:
        self._registry.clear_all(identity)
        self._recorder.forget(identity)
        if identity not in self._applied:
            return

        try:
            await self._reconciler.delete(identity)
        except Exception as exc:
            reconciler_calls_total.labels(operation="delete", success="false").inc()
            raise ReconcilerCallError("delete", identity, exc) from exc
        reconciler_calls_total.labels(operation="delete", success="true").inc()

        del self._applied[identity]
        adopted_ingresses.set(len(self._applied))
        _logger.info("reconcile_deleted", ingress=str(identity), reason=reason)
        if ingress is not None:
            self._recorder.record(ingress, EVENT_NORMAL, "Deleted", f"configuration removed: {reason}")

    def _record_failure(self, identity: NamespacedName, exc: ReconcileError) -> None:
        self._errors[identity] = exc
        fields = {"ingress": str(identity), "error": str(exc), "error_kind": type(exc).__name__}

        if isinstance(exc, TransientFetchError):
            # expected while the cache converges
            _logger.debug("reconcile_dependency_missing", **fields)
        elif isinstance(exc, InternalConsistencyError):
            _logger.error("reconcile_internal_inconsistency", **fields)
        elif isinstance(exc, ValidationError | AmbiguousDefaultClassError):
            _logger.warning("reconcile_invalid_configuration", **fields)
        else:
            _logger.warning("reconcile_failed", **fields)

        if exc.advisory:
            ingress = self._cache.get(ObjectKind.INGRESS, identity)
            if ingress is not None:
                reason = "AmbiguousIngressClass" if isinstance(exc, AmbiguousDefaultClassError) else "InvalidConfiguration"
                self._recorder.record(ingress, EVENT_WARNING, reason, str(exc))

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def is_adopted(self, identity: NamespacedName) -> bool:
        return identity in self._applied

    def adopted(self) -> set[NamespacedName]:
        return set(self._applied)

    def applied_config(self, identity: NamespacedName) -> IngressConfig | None:
        return self._applied.get(identity)

    def status(self, identity: NamespacedName) -> IngressStatus:
        error = self._errors.get(identity)
        return IngressStatus(
            identity=identity,
            state=AdoptionState.ADOPTED if identity in self._applied else AdoptionState.UNADOPTED,
            error=str(error) if error is not None else None,
            error_kind=type(error).__name__ if error is not None else None,
        )

    def statuses(self) -> list[IngressStatus]:
        return [self.status(identity) for identity in sorted(set(self._applied) | set(self._errors))]
