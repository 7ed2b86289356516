"""Application bootstrap for kubegress.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → K8s client → cache → registry → reconciler
              → event recorder → engine → watchers → REST

Shutdown is graceful: watchers stop first so no new notifications arrive,
then the engine lets in-flight reconciliations finish, then the rest stop
in reverse startup order.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING, Any

from kubegress.cache.object_cache import ObjectCache
from kubegress.config import load_config
from kubegress.controller.engine import ReconciliationEngine
from kubegress.events.recorder import EventRecorder, KubernetesEventRecorder, NullEventRecorder
from kubegress.graph.registry import DependencyRegistry
from kubegress.models.config import KubegressConfig
from kubegress.models.identity import ObjectKind
from kubegress.observability.logging import get_logger, setup_logging
from kubegress.reconciler import ConfigReconciler, build_reconciler

if TYPE_CHECKING:
    import structlog

    from kubegress.collector.watcher import ResourceWatcher

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class KubegressApp:
    """Application root.  Owns every component and coordinates their lifecycle.

    ``stop()`` is safe to call on an app that was never started or has
    already stopped.
    """

    def __init__(self) -> None:
        self.config: KubegressConfig | None = None

        self._api_client: Any = None
        self._cache: ObjectCache | None = None
        self._registry: DependencyRegistry | None = None
        self._reconciler: ConfigReconciler | None = None
        self._recorder: EventRecorder | None = None
        self._engine: ReconciliationEngine | None = None
        self._watchers: list[ResourceWatcher] = []
        self._rest_server: Any = None

        self._background_tasks: list[asyncio.Task[None]] = []

        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        self.config = load_config()

        setup_logging(self.config.log.level, controller_name=self.config.controller.controller_name)
        self._log = get_logger("app")
        self._log.info(
            "kubegress starting",
            version=_kubegress_version(),
            controller=self.config.controller.controller_name,
        )

        await self._start_k8s_client()

        self._cache = ObjectCache()
        self._registry = DependencyRegistry()

        await self._start_reconciler()
        await self._start_event_recorder()
        await self._start_engine()
        await self._start_watchers()
        await self._start_rest()

        self._running = True
        self._log.info("kubegress started", port=self.config.api.port)

    async def _start_k8s_client(self) -> None:
        """Initialise the kubernetes-asyncio client from in-cluster config or kubeconfig."""
        assert self._log is not None
        self._log.debug("starting k8s client")
        try:
            import kubernetes_asyncio.config as k8s_config  # type: ignore[import-untyped]
            from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

            try:
                k8s_config.load_incluster_config()
                self._log.info("k8s client configured from in-cluster service account")
            except k8s_config.ConfigException:
                await k8s_config.load_kube_config()
                self._log.info("k8s client configured from kubeconfig")

            self._api_client = k8s_client.ApiClient()
        except Exception as exc:
            raise _ComponentError("k8s_client", exc) from exc

    async def _start_reconciler(self) -> None:
        assert self._log is not None
        assert self.config is not None
        try:
            self._reconciler = build_reconciler(self.config.reconciler)
            self._log.info(
                "reconciler configured",
                reconciler=self._reconciler.name,
                endpoint=self.config.reconciler.endpoint or None,
            )
        except Exception as exc:
            raise _ComponentError("reconciler", exc) from exc

    async def _start_event_recorder(self) -> None:
        """Event recording is advisory; failure falls back to a null recorder."""
        assert self._log is not None
        assert self.config is not None
        if not self.config.events.enabled:
            self._recorder = NullEventRecorder()
            self._log.info("event recorder disabled")
            return
        try:
            from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

            self._recorder = KubernetesEventRecorder(k8s_client.CoreV1Api(self._api_client))
            self._log.info("event recorder started")
        except Exception as exc:
            self._log.warning("event recorder failed to start; events disabled", error=str(exc))
            self._recorder = NullEventRecorder()

    async def _start_engine(self) -> None:
        assert self._log is not None
        assert self.config is not None
        assert self._cache is not None
        assert self._registry is not None
        assert self._reconciler is not None
        try:
            engine = ReconciliationEngine(
                cache=self._cache,
                registry=self._registry,
                reconciler=self._reconciler,
                controller_name=self.config.controller.controller_name,
                annotation_prefix=self.config.controller.annotation_prefix,
                recorder=self._recorder,
                workers=self.config.queue.workers,
                retry_base_delay=self.config.queue.retry_base_delay,
                retry_max_delay=self.config.queue.retry_max_delay,
            )
            await engine.start()
            self._engine = engine
        except Exception as exc:
            raise _ComponentError("engine", exc) from exc

    async def _start_watchers(self) -> None:
        """Start one list+watch loop per watched kind."""
        assert self._log is not None
        assert self.config is not None
        assert self._cache is not None
        assert self._engine is not None
        try:
            from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

            from kubegress.collector.watcher import ResourceWatcher

            core_v1 = k8s_client.CoreV1Api(self._api_client)
            networking_v1 = k8s_client.NetworkingV1Api(self._api_client)
            namespace = self.config.controller.watch_namespace

            if namespace:
                namespaced = {
                    ObjectKind.INGRESS: networking_v1.list_namespaced_ingress,
                    ObjectKind.SERVICE: core_v1.list_namespaced_service,
                    ObjectKind.SECRET: core_v1.list_namespaced_secret,
                }
                kwargs: dict[str, Any] = {"namespace": namespace}
            else:
                namespaced = {
                    ObjectKind.INGRESS: networking_v1.list_ingress_for_all_namespaces,
                    ObjectKind.SERVICE: core_v1.list_service_for_all_namespaces,
                    ObjectKind.SECRET: core_v1.list_secret_for_all_namespaces,
                }
                kwargs = {}

            # IngressClass first so early ingress notifications see the classes
            watchers = [
                ResourceWatcher(
                    ObjectKind.INGRESS_CLASS,
                    networking_v1.list_ingress_class,
                    self._cache,
                    self._engine.notify,
                    serialize=self._api_client.sanitize_for_serialization,
                )
            ]
            for kind, list_fn in namespaced.items():
                watchers.append(
                    ResourceWatcher(
                        kind,
                        list_fn,
                        self._cache,
                        self._engine.notify,
                        serialize=self._api_client.sanitize_for_serialization,
                        list_kwargs=kwargs,
                    )
                )

            for watcher in watchers:
                await watcher.start()
            self._watchers = watchers
            self._log.info("watchers started", kinds=[str(w.kind) for w in watchers], namespace=namespace or None)
        except Exception as exc:
            raise _ComponentError("watchers", exc) from exc

    async def _start_rest(self) -> None:
        """Start the uvicorn server for probes, metrics and status."""
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting rest api")
        try:
            import uvicorn

            from kubegress.api import create_app

            fastapi_app = create_app(
                engine=self._engine,
                cache=self._cache,
                controller_name=self.config.controller.controller_name,
            )
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=self.config.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            task = asyncio.create_task(server.serve(), name="rest-server")
            self._background_tasks.append(task)
            self._rest_server = server
            self._log.info("rest api started", port=self.config.api.port)
        except Exception as exc:
            raise _ComponentError("rest", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Gracefully stop all components.

        Each component's stop is wrapped independently; a failure in one
        component's teardown does not prevent the others from stopping.
        """
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("kubegress shutting down")
        self._running = False

        for watcher in self._watchers:
            await self._stop_component(f"watcher.{watcher.kind}", watcher)
        self._watchers = []

        await self._stop_component("engine", self._engine)

        if self._rest_server is not None:
            self._rest_server.should_exit = True
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()

        await self._close_component("event_recorder", self._recorder)
        await self._close_component("reconciler", self._reconciler)
        await self._close_component("k8s_client", self._api_client)

        log.info("kubegress stopped")

    async def _stop_component(self, name: str, component: object | None) -> None:
        await self._call_with_grace(name, component, "stop")

    async def _close_component(self, name: str, component: object | None) -> None:
        await self._call_with_grace(name, component, "close")

    async def _call_with_grace(self, name: str, component: object | None, method: str) -> None:
        if component is None:
            return
        log = self._log or get_logger("app")
        fn = getattr(component, method, None)
        if fn is None:
            return
        try:
            result = fn()
            if asyncio.iscoroutine(result):
                await asyncio.wait_for(result, timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("component shutdown timed out", component=name, timeout=_SHUTDOWN_GRACE_SECONDS)
        except Exception as exc:
            log.error("component shutdown raised an error", component=name, error=str(exc))


def _kubegress_version() -> str:
    from kubegress import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = KubegressApp()
    loop = asyncio.get_running_loop()

    stop_requested = asyncio.Event()

    def _request_shutdown() -> None:
        stop_requested.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown)

    try:
        await app.start()
        await stop_requested.wait()
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        raise SystemExit(1) from exc
    finally:
        await app.stop()


def run() -> None:
    """Console-script entry point."""
    asyncio.run(main())
