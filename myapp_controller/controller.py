"""
MyApp controller: the scheduling loop around AppReconciler.

This module implements a Kubernetes-style controller pattern that
periodically lists every MyApp (desired state), queues its key, and lets a
pool of workers reconcile the dependents (actual state). Failed reconciles
are retried with exponential backoff; a key is never reconciled by two
workers at once.
"""

import asyncio
import logging

from myapp_common.models import MyApp, ResourceKey
from myapp_common.store import ClusterStore

from .drift import SnapshotPolicy
from .reconciler import AppReconciler, ReconcileResult
from .workqueue import WorkQueue

logger = logging.getLogger(__name__)


class AppController:
    """
    Controller that keeps every MyApp converged.

    This controller runs:
    1. A resync loop that relists MyApps and queues their keys
    2. A pool of workers that pull keys and run one reconcile each
    3. Backoff requeueing of keys whose reconcile raised
    """

    def __init__(
        self,
        store: ClusterStore,
        reconciler: AppReconciler | None = None,
        namespace: str | None = None,
        resync_interval: float = 10.0,
        workers: int = 4,
        snapshot_policy: SnapshotPolicy = SnapshotPolicy.FAIL,
        queue: WorkQueue | None = None,
    ):
        """
        Initialize the controller.

        Args:
            store: Cluster store to watch and write
            reconciler: Reconciler to run per key (built from store if omitted)
            namespace: Only reconcile apps in this namespace (None for all)
            resync_interval: Seconds between full relists
            workers: Number of reconciles that may run concurrently
            snapshot_policy: Passed to the default reconciler
            queue: Work queue (a default one is created if omitted)
        """
        self.store = store
        self.reconciler = reconciler or AppReconciler(store, snapshot_policy=snapshot_policy)
        self.namespace = namespace or None
        self.resync_interval = resync_interval
        self.workers = max(1, workers)
        self.queue = queue or WorkQueue()

        self._running = False
        self._task: asyncio.Task | None = None
        self._worker_tasks: list[asyncio.Task] = []

    async def start(self) -> None:
        """Start the resync loop and the worker pool."""
        if self._running:
            logger.warning("Controller already running")
            return

        self._running = True
        self._worker_tasks = [
            asyncio.create_task(self._worker(i), name=f"myapp-worker-{i}")
            for i in range(self.workers)
        ]
        self._task = asyncio.create_task(self._run_loop(), name="myapp-resync")
        logger.info(f"MyApp controller started with {self.workers} workers")

    async def stop(self) -> None:
        """Stop the controller, cancelling any in-flight reconciles."""
        if not self._running:
            return

        logger.info("Stopping MyApp controller...")
        self._running = False
        self.queue.shut_down()

        tasks = [t for t in [self._task, *self._worker_tasks] if t is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        self._task = None
        self._worker_tasks = []
        logger.info("MyApp controller stopped")

    async def _run_loop(self) -> None:
        """Relist loop."""
        while self._running:
            try:
                await self.enqueue_all()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error listing MyApps: {e}", exc_info=True)
            await asyncio.sleep(self.resync_interval)

    async def _worker(self, index: int) -> None:
        while self._running:
            key = await self.queue.get()
            try:
                await self.process(key)
            finally:
                self.queue.done(key)

    async def enqueue_all(self) -> int:
        """
        Queue the key of every MyApp in scope.

        Returns:
            Number of keys listed
        """
        apps = await self.store.list(MyApp, self.namespace)
        for app in apps:
            self.queue.add(app.key)
        logger.debug(f"Resync: queued {len(apps)} MyApps")
        return len(apps)

    def enqueue(self, key: ResourceKey) -> None:
        self.queue.add(key)

    async def process(self, key: ResourceKey) -> ReconcileResult | None:
        """
        Reconcile one key, scheduling a retry if it fails.

        Returns:
            The reconcile result, or None if the reconcile raised
        """
        try:
            result = await self.reconciler.reconcile(key)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            delay = self.queue.add_rate_limited(key)
            logger.error(
                f"Error reconciling myapp={key} "
                f"(attempt {self.queue.num_requeues(key)}, retry in {delay:.1f}s): {e}",
                exc_info=True,
            )
            return None

        self.queue.forget(key)
        return result

    async def reconcile_once(self) -> dict[ResourceKey, ReconcileResult | None]:
        """
        Relist and reconcile every queued key inline, without workers.

        Keys that fail are scheduled for retry as usual but not waited on.

        Returns:
            Mapping of key to result (None for keys whose reconcile raised)
        """
        await self.enqueue_all()
        results: dict[ResourceKey, ReconcileResult | None] = {}
        while (key := self.queue.get_nowait()) is not None:
            try:
                results[key] = await self.process(key)
            finally:
                self.queue.done(key)
        return results
