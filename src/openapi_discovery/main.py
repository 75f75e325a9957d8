"""CLI entrypoint for the OpenAPI discovery operator and documentation viewer."""

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import Iterable
from contextlib import suppress

from pydantic import ValidationError

from . import __version__
from .config import OperatorSettings, ViewerSettings, WatchScope
from .controller import DiscoveryController
from .errors import ConfigurationError
from .kube import create_core_api
from .logging import configure_logging
from .probe import AvailabilityProber
from .reconciler import ReconcileContext, Reconciler
from .store import ConfigMapDocumentStore
from .sync import OptimisticSyncEngine, SyncRetryConfig

logger = logging.getLogger(__name__)

EXIT_CONFIG_ERROR = 2


def cli(argv: Iterable[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        if args.command == "viewer":
            return _run_viewer()
        if args.command == "check-config":
            return _check_config()
        return _run_operator()
    except (ConfigurationError, ValidationError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR


def _check_config() -> int:
    settings = OperatorSettings()
    scope = settings.resolve()
    print(f"watch namespaces:    {scope.describe()}")
    print(f"discovery configmap: {settings.discovery_namespace}/{settings.discovery_configmap}")
    print(f"probe timeout:       {settings.probe_timeout}s")
    print(f"requeue interval:    {settings.requeue_interval}s")
    return 0


def _run_operator() -> int:
    settings = OperatorSettings()
    configure_logging("openapi-k8s-operator", settings.log_level, settings.json_logs)
    logger.info(f"Starting OpenAPI K8s Operator {__version__}")

    # Invalid names are fatal before anything touches the cluster
    scope = settings.resolve()

    asyncio.run(_serve_operator(settings, scope))
    logger.info("OpenAPI K8s Operator stopped")
    return 0


async def _serve_operator(settings: OperatorSettings, scope: WatchScope) -> None:
    core_api = create_core_api(settings.kubeconfig)
    store = ConfigMapDocumentStore(
        core_api, settings.discovery_namespace, settings.discovery_configmap
    )
    sync = OptimisticSyncEngine(
        store,
        SyncRetryConfig(
            max_attempts=settings.sync_max_attempts,
            base_delay=settings.sync_base_delay,
        ),
    )

    async with AvailabilityProber(timeout=settings.probe_timeout) as prober:
        context = ReconcileContext(
            sync=sync,
            prober=prober,
            watch_scope=scope,
            discovery_namespace=settings.discovery_namespace,
            discovery_name=settings.discovery_configmap,
            requeue_interval=settings.requeue_interval,
            error_requeue_interval=settings.error_requeue_interval,
        )
        controller = DiscoveryController(
            core_api, Reconciler(context), workers=settings.workers
        )

        run_task = asyncio.create_task(controller.run())
        loop = asyncio.get_running_loop()
        if sys.platform != "win32":
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, run_task.cancel)

        with suppress(asyncio.CancelledError):
            await run_task


def _run_viewer() -> int:
    import uvicorn

    from .viewer.app import create_app

    settings = ViewerSettings()
    configure_logging("openapi-doc-server", settings.log_level, settings.json_logs)
    logger.info(f"Starting OpenAPI documentation server on port {settings.port}")

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_config=None,
    )
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Kubernetes OpenAPI discovery operator and documentation viewer"
    )
    parser.add_argument("--version", action="version", version=__version__)
    subparsers = parser.add_subparsers(dest="command")

    operator_parser = subparsers.add_parser("operator", help="Run the discovery operator")
    operator_parser.set_defaults(command="operator")

    viewer_parser = subparsers.add_parser("viewer", help="Run the documentation viewer")
    viewer_parser.set_defaults(command="viewer")

    check_parser = subparsers.add_parser(
        "check-config", help="Validate and print the operator configuration"
    )
    check_parser.set_defaults(command="check-config")

    parser.set_defaults(command="operator")
    return parser


if __name__ == "__main__":
    raise SystemExit(cli())
