"""Error taxonomy for reconciliation failures.

Every failure of a single reconciliation pass is a ``ReconcileError``.
The engine decides how to react from the subclass alone:

TransientFetchError      -- dependency not (yet) visible in the cache; retried quietly.
ValidationError          -- user misconfiguration; retried and surfaced as a Warning event.
InternalConsistencyError -- snapshot/registry defect; fails only the current pass.
AmbiguousDefaultClassError -- persistent until an IngressClass change resolves it.
ReconcilerCallError      -- downstream Upsert/Delete failed; retried.
"""

from __future__ import annotations

from kubegress.models.identity import DependencyKind, NamespacedName


class KubegressError(Exception):
    """Root of all kubegress errors."""


class ReconcileError(KubegressError):
    """A single reconciliation pass failed."""

    retryable = True
    advisory = False


class TransientFetchError(ReconcileError):
    """A referenced dependency is not present in the local cache."""

    def __init__(self, kind: DependencyKind, identity: NamespacedName) -> None:
        super().__init__(f"{kind} {identity} not found")
        self.kind = kind
        self.identity = identity


class ValidationError(ReconcileError):
    """The ingress or one of its dependencies is misconfigured."""

    advisory = True


class InvalidSecretTypeError(ValidationError):
    def __init__(self, identity: NamespacedName, expected: str, actual: str) -> None:
        super().__init__(f"invalid secret type: secret {identity}, expected {expected}, got {actual or '<empty>'}")
        self.identity = identity
        self.expected = expected
        self.actual = actual


class PortNotFoundError(ValidationError):
    def __init__(self, identity: NamespacedName, port: str) -> None:
        super().__init__(f"port not found: could not find port {port} on service {identity}")
        self.identity = identity
        self.port = port


class InvalidBackendError(ValidationError):
    """A service backend names neither a port name nor a port number."""


class InvalidSecretDataError(ValidationError):
    def __init__(self, identity: NamespacedName, key: str) -> None:
        super().__init__(f"invalid secret data: key {key} of secret {identity} is not valid base64")
        self.identity = identity
        self.key = key


class InternalConsistencyError(ReconcileError):
    """The registry, cache and snapshot disagree. Indicates a bug."""


class AmbiguousDefaultClassError(ReconcileError):
    """More than one default IngressClass is owned by this controller."""

    retryable = False
    advisory = True

    def __init__(self, class_names: list[str]) -> None:
        names = ", ".join(sorted(class_names))
        super().__init__(f"ambiguous default ingress class: multiple default classes for this controller ({names})")
        self.class_names = sorted(class_names)


class ReconcilerCallError(ReconcileError):
    """The external reconciler rejected an Upsert or Delete."""

    def __init__(self, operation: str, identity: NamespacedName, cause: Exception) -> None:
        super().__init__(f"{operation} {identity} failed: {cause}")
        self.operation = operation
        self.identity = identity
        self.cause = cause
