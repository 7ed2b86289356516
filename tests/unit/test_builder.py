"""Unit tests for reference collection and config building."""

from __future__ import annotations

import pytest

from kubegress.cache.object_cache import ObjectCache
from kubegress.controller.builder import ConfigBuilder, collect_references
from kubegress.models.errors import (
    InternalConsistencyError,
    InvalidBackendError,
    InvalidSecretDataError,
    InvalidSecretTypeError,
    PortNotFoundError,
    TransientFetchError,
)
from kubegress.models.identity import DependencyKind, NamespacedName, ObjectKind
from tests.factories import ANNOTATION_PREFIX, make_ingress, make_secret, make_service

SERVICE = NamespacedName("default", "service")
SECRET = NamespacedName("default", "secret")


def _cache(*objects: tuple[ObjectKind, dict]) -> ObjectCache:
    cache = ObjectCache()
    for kind, obj in objects:
        cache.update(kind, obj)
    return cache


def _two_backend_ingress() -> dict:
    ingress = make_ingress()
    ingress["spec"]["defaultBackend"] = {"service": {"name": "fallback", "port": {"number": 8080}}}
    ingress["spec"]["rules"][0]["http"]["paths"].append(
        {"path": "/api", "pathType": "Prefix", "backend": {"service": {"name": "service", "port": {"name": "http"}}}}
    )
    return ingress


# ---------------------------------------------------------------------------
# Reference collection
# ---------------------------------------------------------------------------


class TestCollectReferences:
    def test_default_backend_and_rules(self) -> None:
        refs = collect_references(_two_backend_ingress(), ANNOTATION_PREFIX)
        assert refs.services == {SERVICE, NamespacedName("default", "fallback")}
        assert refs.named_ports == {(SERVICE, "http")}
        assert refs.invalid_backends == []

    def test_tls_and_annotation_secrets(self) -> None:
        ingress = make_ingress(
            annotations={
                f"{ANNOTATION_PREFIX}/tls_client_secret": "client",
                f"{ANNOTATION_PREFIX}/tls_custom_ca_secret": "ca",
                f"{ANNOTATION_PREFIX}/tls_downstream_client_ca_secret": "ca",
            }
        )
        refs = collect_references(ingress, ANNOTATION_PREFIX)
        assert refs.secrets == {
            SECRET,
            NamespacedName("default", "client"),
            NamespacedName("default", "ca"),
        }
        assert refs.of_kind(DependencyKind.SECRET) is refs.secrets
        assert refs.of_kind(DependencyKind.INGRESS_CLASS) == set()

    def test_resource_backend_has_no_service(self) -> None:
        ingress = make_ingress(tls_secrets=[])
        ingress["spec"]["rules"][0]["http"]["paths"][0]["backend"] = {
            "resource": {"apiGroup": "example.com", "kind": "Bucket", "name": "static"}
        }
        refs = collect_references(ingress, ANNOTATION_PREFIX)
        assert refs.services == set()
        assert refs.secrets == set()

    def test_backend_without_port(self) -> None:
        ingress = make_ingress(port_name=None, port_number=None)
        refs = collect_references(ingress, ANNOTATION_PREFIX)
        assert refs.services == {SERVICE}
        assert len(refs.invalid_backends) == 1

    def test_references_use_ingress_namespace(self) -> None:
        refs = collect_references(make_ingress(namespace="prod"), ANNOTATION_PREFIX)
        assert refs.services == {NamespacedName("prod", "service")}
        assert refs.secrets == {NamespacedName("prod", "secret")}


# ---------------------------------------------------------------------------
# Building
# ---------------------------------------------------------------------------


class TestConfigBuilder:
    def test_build_holds_exactly_the_references(self) -> None:
        cache = _cache(
            (ObjectKind.SERVICE, make_service()),
            (ObjectKind.SERVICE, make_service(name="unrelated")),
            (ObjectKind.SECRET, make_secret()),
            (ObjectKind.SECRET, make_secret(name="unrelated")),
        )
        config = ConfigBuilder(cache, ANNOTATION_PREFIX).build(make_ingress())

        assert set(config.services) == {SERVICE}
        assert set(config.secrets) == {SECRET}
        assert config.annotation_prefix == ANNOTATION_PREFIX

    def test_build_is_deterministic(self) -> None:
        cache = _cache((ObjectKind.SERVICE, make_service()), (ObjectKind.SECRET, make_secret()))
        builder = ConfigBuilder(cache, ANNOTATION_PREFIX)
        ingress = make_ingress()
        assert builder.build(ingress) == builder.build(ingress)

    def test_snapshot_is_isolated_from_cache(self) -> None:
        service = make_service()
        cache = _cache((ObjectKind.SERVICE, service), (ObjectKind.SECRET, make_secret()))
        config = ConfigBuilder(cache, ANNOTATION_PREFIX).build(make_ingress())

        service["spec"]["ports"][0]["port"] = 9999

        assert config.service_port_by_name(SERVICE, "http") == 80

    def test_missing_service(self) -> None:
        cache = _cache((ObjectKind.SECRET, make_secret()))
        with pytest.raises(TransientFetchError) as exc_info:
            ConfigBuilder(cache, ANNOTATION_PREFIX).build(make_ingress())
        assert exc_info.value.kind == DependencyKind.SERVICE
        assert exc_info.value.identity == SERVICE

    def test_missing_secret(self) -> None:
        cache = _cache((ObjectKind.SERVICE, make_service()))
        with pytest.raises(TransientFetchError) as exc_info:
            ConfigBuilder(cache, ANNOTATION_PREFIX).build(make_ingress())
        assert exc_info.value.kind == DependencyKind.SECRET

    def test_unknown_named_port(self) -> None:
        cache = _cache((ObjectKind.SERVICE, make_service(ports={"grpc": 9000})), (ObjectKind.SECRET, make_secret()))
        with pytest.raises(PortNotFoundError):
            ConfigBuilder(cache, ANNOTATION_PREFIX).build(make_ingress())

    def test_numeric_port_is_not_checked(self) -> None:
        cache = _cache((ObjectKind.SERVICE, make_service(ports={})), (ObjectKind.SECRET, make_secret()))
        config = ConfigBuilder(cache, ANNOTATION_PREFIX).build(make_ingress(port_name=None, port_number=8080))
        assert SERVICE in config.services

    def test_wrong_secret_type(self) -> None:
        cache = _cache((ObjectKind.SERVICE, make_service()), (ObjectKind.SECRET, make_secret(secret_type="Opaque")))
        with pytest.raises(InvalidSecretTypeError):
            ConfigBuilder(cache, ANNOTATION_PREFIX).build(make_ingress())

    def test_invalid_backend(self) -> None:
        cache = _cache((ObjectKind.SERVICE, make_service()), (ObjectKind.SECRET, make_secret()))
        with pytest.raises(InvalidBackendError):
            ConfigBuilder(cache, ANNOTATION_PREFIX).build(make_ingress(port_name=None, port_number=None))

    def test_cache_returning_wrong_object(self) -> None:
        class _WrongCache:
            def get(self, kind: ObjectKind, identity: NamespacedName) -> dict:
                return make_service(name="imposter")

        with pytest.raises(InternalConsistencyError):
            ConfigBuilder(_WrongCache(), ANNOTATION_PREFIX).build(make_ingress(tls_secrets=[]))

    def test_undecodable_ca_secret(self) -> None:
        ca = make_secret(name="ca", secret_type="Opaque")
        ca["data"]["ca.crt"] = "not base64!"
        cache = _cache((ObjectKind.SERVICE, make_service()), (ObjectKind.SECRET, ca))
        ingress = make_ingress(tls_secrets=[], annotations={f"{ANNOTATION_PREFIX}/tls_custom_ca_secret": "ca"})

        with pytest.raises(InvalidSecretDataError) as exc_info:
            ConfigBuilder(cache, ANNOTATION_PREFIX).build(ingress)
        assert exc_info.value.identity == NamespacedName("default", "ca")
