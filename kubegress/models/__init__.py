"""Core data structures for kubegress."""

from kubegress.models.config import KubegressConfig
from kubegress.models.errors import (
    AmbiguousDefaultClassError,
    InternalConsistencyError,
    InvalidBackendError,
    InvalidSecretDataError,
    InvalidSecretTypeError,
    KubegressError,
    PortNotFoundError,
    ReconcileError,
    ReconcilerCallError,
    TransientFetchError,
    ValidationError,
)
from kubegress.models.identity import ChangeNotification, DependencyKind, NamespacedName, ObjectKind
from kubegress.models.ingress_config import IngressConfig, TLSCert

__all__ = [
    "AmbiguousDefaultClassError",
    "ChangeNotification",
    "DependencyKind",
    "IngressConfig",
    "InternalConsistencyError",
    "InvalidBackendError",
    "InvalidSecretDataError",
    "InvalidSecretTypeError",
    "KubegressConfig",
    "KubegressError",
    "NamespacedName",
    "ObjectKind",
    "PortNotFoundError",
    "ReconcileError",
    "ReconcilerCallError",
    "TLSCert",
    "TransientFetchError",
    "ValidationError",
]
