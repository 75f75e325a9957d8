"""
Controller loop for the discovery operator.

A Service watch feeds a keyed work queue; a pool of workers pulls Service
keys, fetches the current object and runs the reconciler. The queue never
hands out a key that is already being processed, so reconciliations of the
same Service are serialized while different Services proceed in parallel.

Error policy:
- Service not found: remove its catalogue entry within the same pass, requeue normally
- Anything else: log and requeue after the short error interval
"""

import asyncio
import builtins
import functools
import logging
from collections.abc import Callable
from typing import Any

from kubernetes import client, watch
from kubernetes.client.rest import ApiException

from .errors import ResourceNotFoundError
from .kube import HTTP_GONE, HTTP_NOT_FOUND, api_status
from .merge import remove_entry
from .models import EntryKey, ServiceResource
from .reconciler import Reconciler

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 4
WATCH_TIMEOUT_SECONDS = 60
WATCH_RESTART_DELAY = 5.0


class KeyedWorkQueue:
    """Work queue of Service keys with per-key exclusivity.

    - A key is queued at most once while waiting
    - A key re-added while it is being processed is queued again once ``done``
    - ``add_after`` schedules a delayed add; the earliest pending deadline wins
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop
        self._ready: asyncio.Queue[EntryKey | None] = asyncio.Queue()
        self._pending: builtins.set[EntryKey] = set()
        self._processing: builtins.set[EntryKey] = set()
        self._dirty: builtins.set[EntryKey] = set()
        self._timers: builtins.dict[EntryKey, asyncio.TimerHandle] = {}
        self._shutdown = False

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def __len__(self) -> int:
        return len(self._pending)

    def is_processing(self, key: EntryKey) -> bool:
        return key in self._processing

    def scheduled(self, key: EntryKey) -> bool:
        return key in self._timers

    def add(self, key: EntryKey) -> None:
        if self._shutdown:
            return
        if key in self._processing:
            self._dirty.add(key)
            return
        if key in self._pending:
            return
        self._pending.add(key)
        self._ready.put_nowait(key)

    def add_after(self, key: EntryKey, delay: float) -> None:
        if self._shutdown:
            return
        if delay <= 0:
            self.add(key)
            return

        deadline = self.loop.time() + delay
        existing = self._timers.get(key)
        if existing is not None:
            if existing.when() <= deadline:
                return
            existing.cancel()

        self._timers[key] = self.loop.call_at(deadline, self._fire, key)

    def forget(self, key: EntryKey) -> None:
        """Drop any delayed add scheduled for ``key``."""
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()

    async def get(self) -> EntryKey | None:
        """Wait for the next key. Returns None once the queue is shut down."""
        key = await self._ready.get()
        if key is None:
            return None
        self._pending.discard(key)
        self._processing.add(key)
        return key

    def done(self, key: EntryKey) -> None:
        self._processing.discard(key)
        if key in self._dirty:
            self._dirty.discard(key)
            self.add(key)

    def shutdown(self, waiters: int) -> None:
        self._shutdown = True
        for key in list(self._timers):
            self.forget(key)
        for _ in range(waiters):
            self._ready.put_nowait(None)

    def _fire(self, key: EntryKey) -> None:
        self._timers.pop(key, None)
        self.add(key)


class DiscoveryController:
    """Watches Services and dispatches them to the reconciler."""

    def __init__(
        self,
        core_api: client.CoreV1Api,
        reconciler: Reconciler,
        workers: int = DEFAULT_WORKERS,
        watch_timeout: int = WATCH_TIMEOUT_SECONDS,
        restart_delay: float = WATCH_RESTART_DELAY,
        watch_factory: Callable[[], Any] = watch.Watch,
    ):
        self.core_api = core_api
        self.reconciler = reconciler
        self.context = reconciler.context
        self.workers = workers
        self.watch_timeout = watch_timeout
        self.restart_delay = restart_delay
        self.watch_factory = watch_factory

        self.queue = KeyedWorkQueue()
        self.running = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._watch: Any = None
        self._watch_response: Any = None
        self._resource_version: str | None = None
        self._worker_tasks: builtins.list[asyncio.Task] = []
        self._pending_removals: builtins.set[EntryKey] = set()

    async def bootstrap_document(self) -> None:
        """Create the discovery document if it does not exist yet."""
        store = self.context.sync.store
        if await store.ensure_document():
            logger.info(
                f"Created discovery ConfigMap '{self.context.discovery_name}' "
                f"in namespace '{self.context.discovery_namespace}'"
            )
        else:
            logger.info(
                f"Discovery ConfigMap '{self.context.discovery_name}' already exists "
                f"in namespace '{self.context.discovery_namespace}'"
            )

    async def run(self) -> None:
        """Run until :meth:`stop` is called."""
        self._loop = asyncio.get_running_loop()
        self.running = True

        await self.bootstrap_document()
        self.start_workers()

        logger.info(
            "Controller started, watching for services with API documentation annotations"
        )
        try:
            await self._watch_services()
        finally:
            await self.stop()

    def start_workers(self) -> None:
        self._loop = self._loop or asyncio.get_running_loop()
        self.running = True
        self._worker_tasks = [
            asyncio.create_task(self._worker(i), name=f"discovery-worker-{i}")
            for i in range(self.workers)
        ]

    async def stop(self) -> None:
        if not self.running:
            return

        self.running = False
        logger.info("Stopping discovery controller")

        self._interrupt_watch()

        self.queue.shutdown(len(self._worker_tasks))
        await asyncio.gather(*self._worker_tasks, return_exceptions=True)
        self._worker_tasks = []

    def enqueue(self, key: EntryKey) -> None:
        self.queue.add(key)

    def error_policy(self, key: EntryKey, error: Exception) -> float:
        """Map a reconcile failure to a requeue delay, marking not-found keys for removal."""
        if isinstance(error, ResourceNotFoundError):
            logger.info(f"Service {key} no longer exists, removing its API entry")
            self._pending_removals.add(key)
            return self.context.requeue_interval

        logger.error(f"Reconcile error for service {key}: {error}")
        return self.context.error_requeue_interval

    async def process(self, key: EntryKey) -> float:
        """Reconcile one Service and return the delay before it is reconciled again.

        Removal of a deleted Service's entry happens inside the same pass, so it
        holds the key like any other reconciliation and cannot overtake a later
        pass for a re-created Service.
        """
        try:
            resource = await self._fetch_service(key)
            outcome = await self.reconciler.reconcile(resource)
            logger.debug(f"Reconciled service {key}: {outcome.state.value}")
            return outcome.requeue_after
        except Exception as e:
            delay = self.error_policy(key, e)

        if key in self._pending_removals:
            self._pending_removals.discard(key)
            if not await self._remove_entry(key):
                delay = self.context.error_requeue_interval
        return delay

    async def _worker(self, index: int) -> None:
        while True:
            key = await self.queue.get()
            if key is None:
                break

            try:
                delay = await self.process(key)
            finally:
                self.queue.done(key)

            self.queue.add_after(key, delay)

        logger.debug(f"Discovery worker {index} stopped")

    async def _fetch_service(self, key: EntryKey) -> ServiceResource:
        try:
            service = await asyncio.to_thread(
                self.core_api.read_namespaced_service, key.service_name, key.namespace
            )
        except ApiException as e:
            if api_status(e) == HTTP_NOT_FOUND:
                raise ResourceNotFoundError(key.namespace, key.service_name) from e
            raise

        return ServiceResource.from_v1_service(service)

    async def _remove_entry(self, key: EntryKey) -> bool:
        try:
            await self.context.sync.sync_merge(remove_entry, key)
        except Exception as e:
            logger.error(f"Failed to remove API entry for deleted service {key}: {e}")
            return False

        logger.info(f"Removed API entry for deleted service {key}")
        return True

    async def _watch_services(self) -> None:
        while self.running:
            try:
                await asyncio.to_thread(self._stream_events)
            except ApiException as e:
                if not self.running:
                    break
                if api_status(e) == HTTP_GONE:
                    logger.info("Service watch expired, restarting from a fresh list")
                    self._resource_version = None
                    continue
                logger.error(f"Service watch error: {e}")
            except Exception as e:
                if not self.running:
                    break
                logger.error(f"Service watch error: {e}")

            if self.running:
                await asyncio.sleep(self.restart_delay)

    def _interrupt_watch(self) -> None:
        """Stop the watch and unblock the thread reading its response."""
        if self._watch is not None:
            self._watch.stop()

        response = self._watch_response
        if response is None:
            return

        # urllib3 2.3+ can interrupt a read blocked in another thread
        shutdown = getattr(response, "shutdown", None)
        try:
            if shutdown is not None:
                shutdown()
            else:
                response.close()
        except Exception as e:
            logger.debug(f"Error closing service watch response: {e}")

    def _capture_response(self, list_func: Callable[..., Any]) -> Callable[..., Any]:
        """Wrap a list call so the streaming response can be closed on stop.

        functools.wraps keeps the docstring the watch reads the return type from.
        """

        @functools.wraps(list_func)
        def call(*args, **kwargs):
            response = list_func(*args, **kwargs)
            self._watch_response = response
            return response

        return call

    def _stream_events(self) -> None:
        """Blocking watch loop, run in a worker thread."""
        scope = self.context.watch_scope
        namespace = scope.single_namespace
        kwargs: builtins.dict[str, Any] = {"timeout_seconds": self.watch_timeout}
        if self._resource_version:
            kwargs["resource_version"] = self._resource_version

        self._watch = self.watch_factory()
        try:
            if namespace is not None:
                stream = self._watch.stream(
                    self._capture_response(self.core_api.list_namespaced_service),
                    namespace=namespace,
                    **kwargs,
                )
            else:
                stream = self._watch.stream(
                    self._capture_response(self.core_api.list_service_for_all_namespaces),
                    **kwargs,
                )

            for event in stream:
                if not self.running:
                    break
                self._loop.call_soon_threadsafe(self.handle_event, event)
        finally:
            self._watch_response = None

    def handle_event(self, event: builtins.dict[str, Any]) -> None:
        event_type = event.get("type")
        obj = event.get("object")

        if event_type == "ERROR" or obj is None or getattr(obj, "metadata", None) is None:
            logger.warning(f"Ignoring unexpected watch event: {event_type}")
            return

        metadata = obj.metadata
        if metadata.resource_version:
            self._resource_version = metadata.resource_version

        key = EntryKey(metadata.namespace or "", metadata.name)
        logger.debug(f"Service event: {event_type} - {key}")
        self.enqueue(key)
