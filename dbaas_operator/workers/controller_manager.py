"""
Controller manager: runs one controller per record kind.

Each controller feeds its work queue from the store's watch stream and from
the requeue requests returned by reconciles, and drains it with a fixed
number of workers. Failed reconciles are requeued with per-key backoff.
"""
import asyncio
from typing import Dict, List, Optional

from dbaas_operator.config.logging import get_logger
from dbaas_operator.config.settings import Settings
from dbaas_operator.controllers import build_reconcilers
from dbaas_operator.core.reconciler import Reconciler
from dbaas_operator.exceptions import OperatorException
from dbaas_operator.models.resources import ResourceKey, ResourceKind
from dbaas_operator.services import metrics
from dbaas_operator.services.gateway import ProvisioningGateway
from dbaas_operator.store.base import ResourceStore
from dbaas_operator.workers.leader_election import LeaderElection
from dbaas_operator.workers.work_queue import WorkQueue

logger = get_logger(__name__)

# Seconds to wait before re-opening a failed watch stream
WATCH_RETRY_DELAY = 5.0


class Controller:
    """
    Watch loop plus workers for one kind.

    Args:
        reconciler: Reconciler for the kind
        store: Store to watch
        settings: Operator settings (concurrency, backoff)
    """

    def __init__(self, reconciler: Reconciler, store: ResourceStore, settings: Settings):
        self.reconciler = reconciler
        self.kind: ResourceKind = reconciler.KIND
        self.store = store
        self.workers = settings.max_concurrent_reconciles
        self.queue = WorkQueue(self.kind.value, settings.backoff_base_delay, settings.backoff_max_delay)
        self.running = False
        self._watch_task: Optional[asyncio.Task] = None
        self._worker_tasks: List[asyncio.Task] = []

    async def start(self) -> None:
        self.running = True
        self._watch_task = asyncio.create_task(self._watch_loop(), name=f"watch-{self.kind.value}")
        self._worker_tasks = [
            asyncio.create_task(self._worker(i), name=f"worker-{self.kind.value}-{i}")
            for i in range(self.workers)
        ]
        logger.info("controller_started", kind=self.kind.value, workers=self.workers)

    async def stop(self) -> None:
        """Stop watching and wait for in-flight reconciles to finish."""
        logger.info("stopping_controller", kind=self.kind.value)
        self.running = False
        self.queue.shutdown()

        if self._watch_task and not self._watch_task.done():
            self._watch_task.cancel()
            try:
                await self._watch_task
            except asyncio.CancelledError:
                pass
        self._watch_task = None

        await asyncio.gather(*self._worker_tasks)
        self._worker_tasks = []
        logger.info("controller_stopped", kind=self.kind.value)

    async def _watch_loop(self) -> None:
        while self.running:
            try:
                async for event in self.store.watch(self.kind):
                    logger.debug("watch_event", kind=self.kind.value, event_type=event.type, key=str(event.key))
                    self.queue.add(event.key)
            except OperatorException as e:
                logger.error("watch_failed", kind=self.kind.value, error=str(e))
                await asyncio.sleep(WATCH_RETRY_DELAY)

    async def _worker(self, worker_id: int) -> None:
        while True:
            key = await self.queue.get()
            if key is None:
                return
            try:
                await self.process(key)
            finally:
                self.queue.done(key)

    async def process(self, key: ResourceKey) -> None:
        """Run one reconcile for ``key`` and schedule its next wake-up."""
        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            result = await self.reconciler.reconcile(key)
        except Exception as e:
            metrics.reconcile_total.labels(kind=self.kind.value, result="error").inc()
            metrics.workqueue_retries_total.labels(kind=self.kind.value).inc()
            delay = self.queue.add_rate_limited(key)
            logger.warning(
                "reconcile_requeued_with_backoff",
                kind=self.kind.value,
                key=str(key),
                error_type=type(e).__name__,
                error=str(e),
                retries=self.queue.num_requeues(key),
                delay_seconds=delay,
            )
            return
        finally:
            metrics.reconcile_duration_seconds.labels(kind=self.kind.value).observe(loop.time() - started)

        self.queue.forget(key)
        if result.requeue:
            metrics.reconcile_total.labels(kind=self.kind.value, result="requeue").inc()
            self.queue.add(key)
        elif result.requeue_after:
            metrics.reconcile_total.labels(kind=self.kind.value, result="requeue_after").inc()
            self.queue.add_after(key, result.requeue_after)
        else:
            metrics.reconcile_total.labels(kind=self.kind.value, result="success").inc()


class ControllerManager:
    """
    Runs the five controllers, optionally only while holding leadership.

    Args:
        store: Desired-state store
        gateway: Provisioning API client
        settings: Operator settings
        leader_election: When given, controllers run only while this
            instance holds the lease
    """

    def __init__(
        self,
        store: ResourceStore,
        gateway: ProvisioningGateway,
        settings: Settings,
        leader_election: Optional[LeaderElection] = None,
    ):
        self.settings = settings
        self.leader_election = leader_election
        self.reconcilers: Dict[ResourceKind, Reconciler] = build_reconcilers(store, gateway, settings)
        self.controllers: List[Controller] = [
            Controller(reconciler, store, settings) for reconciler in self.reconcilers.values()
        ]
        self.running = False
        self.controllers_running = False
        self._leader_task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Start controllers now, or start competing for leadership."""
        self.running = True
        if self.leader_election is None:
            await self._start_controllers()
        else:
            self._leader_task = asyncio.create_task(self._lead(), name="leader-election")
        logger.info(
            "controller_manager_started",
            kinds=[c.kind.value for c in self.controllers],
            leader_election=self.leader_election is not None,
        )

    async def stop(self) -> None:
        """Stop controllers gracefully and release leadership."""
        logger.info("stopping_controller_manager")
        self.running = False

        if self._leader_task and not self._leader_task.done():
            self._leader_task.cancel()
            try:
                await self._leader_task
            except asyncio.CancelledError:
                pass
        self._leader_task = None

        await self._stop_controllers()

        if self.leader_election is not None:
            await self.leader_election.release_leadership()
        logger.info("controller_manager_stopped")

    async def _start_controllers(self) -> None:
        if self.controllers_running:
            return
        # Fresh queues; a stopped queue cannot be restarted.
        self.controllers = [
            Controller(c.reconciler, c.store, self.settings) for c in self.controllers
        ]
        for controller in self.controllers:
            await controller.start()
        self.controllers_running = True

    async def _stop_controllers(self) -> None:
        if not self.controllers_running:
            return
        await asyncio.gather(*(controller.stop() for controller in self.controllers))
        self.controllers_running = False

    async def _lead(self) -> None:
        renew_interval = max(self.leader_election.lease_duration / 3, 1)
        while self.running:
            try:
                if await self.leader_election.acquire_leadership():
                    await self._start_controllers()
                else:
                    await self._stop_controllers()
            except Exception as e:
                logger.error("leader_election_error", error=str(e), exc_info=True)
                await self._stop_controllers()
            await asyncio.sleep(renew_interval)
