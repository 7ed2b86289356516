"""List+watch loop for one object kind."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from kubegress.cache.object_cache import ObjectCache
from kubegress.models.identity import ChangeNotification, NamespacedName, ObjectKind
from kubegress.observability.logging import get_logger

_logger = get_logger("collector.watcher")

_INITIAL_BACKOFF = 1.0
_MAX_BACKOFF = 60.0
_WATCH_TIMEOUT_SECONDS = 300
_HTTP_GONE = 410


def _resource_version(obj: dict[str, Any]) -> str:
    return str((obj.get("metadata") or {}).get("resourceVersion") or "")


class ResourceWatcher:
    """Keeps one kind of the ObjectCache in sync with the API server.

    Args:
        kind:       Object kind this watcher maintains.
        list_fn:    kubernetes-asyncio list call (e.g. ``NetworkingV1Api.list_ingress_for_all_namespaces``).
        cache:      Cache to write into.
        on_change:  Called once per added, modified or deleted object.
        serialize:  Converts a client model to its served dict form
                    (``ApiClient.sanitize_for_serialization``).
        list_kwargs: Extra arguments for ``list_fn`` such as ``namespace``.
    """

    def __init__(
        self,
        kind: ObjectKind,
        list_fn: Callable[..., Awaitable[Any]],
        cache: ObjectCache,
        on_change: Callable[[ChangeNotification], object],
        serialize: Callable[[Any], dict[str, Any]],
        list_kwargs: dict[str, Any] | None = None,
    ) -> None:
        self._kind = kind
        self._list_fn = list_fn
        self._cache = cache
        self._on_change = on_change
        self._serialize = serialize
        self._list_kwargs = list_kwargs or {}
        self._task: asyncio.Task[None] | None = None
        self.reconnect_failures = 0

    @property
    def kind(self) -> ObjectKind:
        return self._kind

    async def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name=f"watch-{self._kind}")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None

    async def relist(self) -> str:
        """List every object, replace the cache contents, and notify changes.

        Returns the list resourceVersion to start watching from.
        """
        response = await self._list_fn(**self._list_kwargs)
        objects = [self._serialize(item) for item in response.items or []]
        changed = self._cache.replace(self._kind, objects)
        for identity in sorted(changed):
            self._on_change(ChangeNotification(self._kind, identity))
        _logger.info("relist_complete", kind=str(self._kind), objects=len(objects), changed=len(changed))
        return str(response.metadata.resource_version or "")

    def handle_event(self, event_type: str, raw: dict[str, Any]) -> None:
        """Apply one watch event to the cache and emit its notification."""
        if event_type in ("ADDED", "MODIFIED"):
            identity = self._cache.update(self._kind, raw)
        elif event_type == "DELETED":
            identity = NamespacedName.from_object(raw)
            self._cache.remove(self._kind, identity)
        else:
            return
        self._on_change(ChangeNotification(self._kind, identity))

    async def _run(self) -> None:
        from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]

        backoff = _INITIAL_BACKOFF
        while True:
            try:
                resource_version = await self.relist()
                backoff = _INITIAL_BACKOFF
                self.reconnect_failures = 0
                while True:
                    resource_version = await self._watch(resource_version)
            except asyncio.CancelledError:
                raise
            except ApiException as exc:
                if exc.status == _HTTP_GONE:
                    _logger.info("watch_expired_relisting", kind=str(self._kind))
                    continue
                self.reconnect_failures += 1
                _logger.warning(
                    "watch_api_error",
                    kind=str(self._kind),
                    status=exc.status,
                    retry_in=backoff,
                    failures=self.reconnect_failures,
                )
            except Exception as exc:  # noqa: BLE001
                self.reconnect_failures += 1
                _logger.warning(
                    "watch_error",
                    kind=str(self._kind),
                    error=str(exc),
                    retry_in=backoff,
                    failures=self.reconnect_failures,
                )
            await asyncio.sleep(backoff)
            backoff = min(backoff * 2, _MAX_BACKOFF)

    async def _watch(self, resource_version: str) -> str:
        """Stream events until the server closes the watch; returns the last resourceVersion."""
        from kubernetes_asyncio import watch  # type: ignore[import-untyped]
        from kubernetes_asyncio.client.exceptions import ApiException  # type: ignore[import-untyped]

        w = watch.Watch()
        try:
            async for event in w.stream(
                self._list_fn,
                resource_version=resource_version,
                timeout_seconds=_WATCH_TIMEOUT_SECONDS,
                allow_watch_bookmarks=True,
                **self._list_kwargs,
            ):
                event_type = event["type"]
                raw = event["raw_object"]
                if event_type == "ERROR":
                    raise ApiException(status=raw.get("code"), reason=raw.get("message"))
                resource_version = _resource_version(raw) or resource_version
                self.handle_event(event_type, raw)
        finally:
            w.stop()
        return resource_version
