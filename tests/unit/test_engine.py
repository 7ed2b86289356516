"""Unit tests for engine dispatch and status reporting."""

from __future__ import annotations

import pytest

from kubegress.controller.adoption import AdoptionDecision
from kubegress.controller.engine import AdoptionState
from kubegress.models.errors import InternalConsistencyError, TransientFetchError
from kubegress.models.identity import ChangeNotification, DependencyKind, NamespacedName, ObjectKind
from tests.factories import CLASS_NAME, Cluster, make_ingress, make_ingress_class, make_secret, make_service

INGRESS = NamespacedName("default", "ingress")


# ---------------------------------------------------------------------------
# Fan-out
# ---------------------------------------------------------------------------


class TestAffectedIngresses:
    def test_ingress_change_targets_itself(self) -> None:
        cluster = Cluster()
        note = ChangeNotification(ObjectKind.INGRESS, INGRESS)
        assert cluster.engine.affected_ingresses(note) == {INGRESS}

    def test_service_change_uses_registry(self) -> None:
        cluster = Cluster()
        service = NamespacedName("default", "service")
        cluster.registry.set_edges(INGRESS, DependencyKind.SERVICE, [service])

        assert cluster.engine.affected_ingresses(ChangeNotification(ObjectKind.SERVICE, service)) == {INGRESS}
        unrelated = ChangeNotification(ObjectKind.SERVICE, NamespacedName("default", "other"))
        assert cluster.engine.affected_ingresses(unrelated) == set()

    def test_service_and_secret_with_same_name_are_distinct(self) -> None:
        cluster = Cluster()
        shared = NamespacedName("default", "shared")
        cluster.registry.set_edges(INGRESS, DependencyKind.SECRET, [shared])

        assert cluster.engine.affected_ingresses(ChangeNotification(ObjectKind.SERVICE, shared)) == set()
        assert cluster.engine.affected_ingresses(ChangeNotification(ObjectKind.SECRET, shared)) == {INGRESS}

    def test_class_change_targets_named_and_classless_ingresses(self) -> None:
        cluster = Cluster()
        cluster.cache.update(ObjectKind.INGRESS, make_ingress(name="named", class_name=CLASS_NAME))
        cluster.cache.update(ObjectKind.INGRESS, make_ingress(name="classless", class_name=None))
        cluster.cache.update(ObjectKind.INGRESS, make_ingress(name="other", class_name="other"))

        affected = cluster.engine.affected_ingresses(
            ChangeNotification(ObjectKind.INGRESS_CLASS, NamespacedName("", CLASS_NAME))
        )

        assert affected == {NamespacedName("default", "named"), NamespacedName("default", "classless")}

    def test_class_change_includes_registered_parents(self) -> None:
        cluster = Cluster()
        cluster.registry.set_edges(INGRESS, DependencyKind.INGRESS_CLASS, [NamespacedName("", CLASS_NAME)])

        affected = cluster.engine.affected_ingresses(
            ChangeNotification(ObjectKind.INGRESS_CLASS, NamespacedName("", CLASS_NAME))
        )

        assert affected == {INGRESS}

    def test_notify_enqueues(self) -> None:
        cluster = Cluster()
        cluster.engine.notify(ChangeNotification(ObjectKind.INGRESS, INGRESS))
        cluster.engine.notify(ChangeNotification(ObjectKind.INGRESS, INGRESS))
        assert len(cluster.engine.queue) == 1


# ---------------------------------------------------------------------------
# Single passes
# ---------------------------------------------------------------------------


class TestReconcilePass:
    def _seed(self, cluster: Cluster) -> None:
        cluster.cache.update(ObjectKind.INGRESS_CLASS, make_ingress_class())
        cluster.cache.update(ObjectKind.INGRESS, make_ingress())
        cluster.cache.update(ObjectKind.SERVICE, make_service())
        cluster.cache.update(ObjectKind.SECRET, make_secret())

    async def test_successful_pass_adopts(self) -> None:
        cluster = Cluster()
        self._seed(cluster)

        await cluster.engine.reconcile(INGRESS)

        assert cluster.engine.is_adopted(INGRESS)
        assert cluster.engine.status(INGRESS).state == AdoptionState.ADOPTED
        assert cluster.engine.applied_config(INGRESS) == cluster.reconciler.upserts[-1]
        assert cluster.recorder.reasons() == ["Updated"]

    async def test_repeat_pass_without_changes_is_skipped(self) -> None:
        cluster = Cluster()
        self._seed(cluster)

        await cluster.engine.reconcile(INGRESS)
        await cluster.engine.reconcile(INGRESS)

        assert len(cluster.reconciler.upserts) == 1

    async def test_failed_pass_reports_error(self) -> None:
        cluster = Cluster()
        self._seed(cluster)
        cluster.cache.remove(ObjectKind.SECRET, NamespacedName("default", "secret"))

        with pytest.raises(TransientFetchError):
            await cluster.engine.reconcile(INGRESS)

        status = cluster.engine.status(INGRESS)
        assert status.state == AdoptionState.UNADOPTED
        assert status.error_kind == "TransientFetchError"
        assert [s.identity for s in cluster.engine.statuses()] == [INGRESS]
        # edges are registered so the secret's arrival reaches this ingress
        assert cluster.registry.parents_of(DependencyKind.SECRET, NamespacedName("default", "secret")) == {INGRESS}

    async def test_unknown_ingress_pass_is_noop(self) -> None:
        cluster = Cluster()
        await cluster.engine.reconcile(INGRESS)
        assert cluster.reconciler.deletes == []
        assert cluster.engine.statuses() == []

    async def test_deleted_ingress_is_forgotten_by_recorder(self) -> None:
        cluster = Cluster()
        self._seed(cluster)
        await cluster.engine.reconcile(INGRESS)

        cluster.cache.remove(ObjectKind.INGRESS, INGRESS)
        await cluster.engine.reconcile(INGRESS)

        assert cluster.reconciler.deletes == [INGRESS]
        assert cluster.recorder.forgotten == [INGRESS]

    async def test_adoption_without_class_name_fails_the_pass(self, monkeypatch: pytest.MonkeyPatch) -> None:
        cluster = Cluster()
        self._seed(cluster)
        monkeypatch.setattr(
            "kubegress.controller.engine.resolve_adoption",
            lambda class_name, classes, controller_name: AdoptionDecision(True, None, "adopted"),
        )

        with pytest.raises(InternalConsistencyError):
            await cluster.engine.reconcile(INGRESS)

        assert cluster.reconciler.upserts == []
        assert cluster.engine.status(INGRESS).error_kind == "InternalConsistencyError"
