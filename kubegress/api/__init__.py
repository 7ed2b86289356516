"""REST API layer for kubegress.

Exposes:
    create_app -- FastAPI application factory.
"""

from kubegress.api.app import create_app

__all__ = ["create_app"]
