"""kubegress: dependency-aware ingress reconciliation controller."""

__version__ = "0.1.0"
