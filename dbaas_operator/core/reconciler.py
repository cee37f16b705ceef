"""
Reconciler shell shared by every record kind.

One reconcile is a single logical transaction:
1. Load the record (a missing record is a no-op)
2. Snapshot it and run the kind-specific logic on the working copy
3. Persist the finalizer list if it changed
4. Persist the status if it changed

Steps 2-4 are attempted independently. Their errors are collected and
raised together, so a failure in one half never loses the other half.
Nothing is retried here; the controller requeues failed keys with backoff.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from dbaas_operator.config.logging import get_logger
from dbaas_operator.config.settings import Settings
from dbaas_operator.core.artifacts import ArtifactSynchronizer
from dbaas_operator.core.finalizers import has_finalizer, remove_finalizer
from dbaas_operator.core.resolver import ClusterResolver
from dbaas_operator.core.state_machine import ProvisioningStateMachine
from dbaas_operator.exceptions import (
    ReconcileAggregateError,
    RecordNotFoundError,
    ResourceNotFoundError,
)
from dbaas_operator.models.resources import Record, ResourceKey, ResourceKind
from dbaas_operator.services.gateway import ProvisioningGateway
from dbaas_operator.store.base import ResourceStore

logger = get_logger(__name__)


@dataclass
class ReconcileResult:
    """
    Outcome of a successful reconcile.

    Attributes:
        requeue: Reconcile again as soon as possible
        requeue_after: Reconcile again after this many seconds
    """

    requeue: bool = False
    requeue_after: Optional[float] = None


def status_diff(before: Dict[str, Any], after: Dict[str, Any]) -> Dict[str, Any]:
    """Changed status fields as ``{field: [old, new]}``."""
    return {
        field: [before.get(field), after.get(field)]
        for field in sorted(set(before) | set(after))
        if before.get(field) != after.get(field)
    }


class Reconciler(ABC):
    """
    Base class for the per-kind reconcilers.

    Args:
        store: Desired-state store
        gateway: Provisioning API client
        settings: Operator settings (finalizer name, intervals)
        resolver: Cluster reference resolver (built from ``store`` if omitted)
        synchronizer: Artifact synchronizer (built from ``store`` if omitted)
    """

    KIND: ResourceKind

    def __init__(
        self,
        store: ResourceStore,
        gateway: ProvisioningGateway,
        settings: Settings,
        resolver: Optional[ClusterResolver] = None,
        synchronizer: Optional[ArtifactSynchronizer] = None,
    ):
        self.store = store
        self.gateway = gateway
        self.settings = settings
        self.finalizer = settings.finalizer_name
        self.resolver = resolver or ClusterResolver(store)
        self.synchronizer = synchronizer or ArtifactSynchronizer(store, settings.field_manager)

    @abstractmethod
    async def reconcile_record(self, record: Record, log) -> ReconcileResult:
        """Kind-specific logic; mutates ``record`` in place."""

    async def reconcile(self, key: ResourceKey) -> ReconcileResult:
        """
        Reconcile one record.

        Returns:
            ReconcileResult with the requested next wake-up

        Raises:
            OperatorException: The single failure of this reconcile
            ReconcileAggregateError: If more than one step failed
        """
        log = logger.bind(kind=self.KIND.value, namespace=key.namespace, name=key.name)

        try:
            record = await self.store.get(self.KIND, key.namespace, key.name)
        except RecordNotFoundError:
            log.debug("record_not_found")
            return ReconcileResult()

        original = record.model_copy(deep=True)
        errors: List[Exception] = []
        result = ReconcileResult()

        try:
            result = await self.reconcile_record(record, log)
        except Exception as e:
            log.error("reconcile_failed", error_type=type(e).__name__, error=str(e))
            errors.append(e)

        updated = False
        removed = False

        if record.metadata.finalizers != original.metadata.finalizers:
            log.info("updating_finalizers", finalizers=record.metadata.finalizers)
            try:
                if record.USES_FINALIZER:
                    ProvisioningStateMachine.validate_transition(
                        ProvisioningStateMachine.state_of(original, self.finalizer),
                        ProvisioningStateMachine.state_of(record, self.finalizer),
                        str(key),
                    )
                await self.store.patch_finalizers(record)
                updated = True
                removed = record.in_deletion and not record.metadata.finalizers
            except Exception as e:
                log.error("finalizer_update_failed", error_type=type(e).__name__, error=str(e))
                errors.append(e)

        diff = status_diff(original.status.to_dict(), record.status.to_dict())
        if diff and not removed:
            log.info("status_diff_detected", diff=diff)
            try:
                await self.store.patch_status(record)
                updated = True
            except Exception as e:
                log.error("status_update_failed", error_type=type(e).__name__, error=str(e))
                errors.append(e)

        if not errors:
            if updated:
                log.info("record_update_succeeded")
            else:
                log.debug("no_record_update_necessary")

        ReconcileAggregateError.raise_if_any(errors)
        return result

    async def reconcile_deletion(
        self,
        record: Record,
        log,
        delete_remote: Callable[[], Awaitable[None]],
    ) -> ReconcileResult:
        """
        Finalize a record that has a deletion intent.

        A record without an external id was never provisioned, so the
        finalizer is dropped without calling the gateway. Otherwise the
        remote object is deleted first; absence counts as deleted.
        """
        if not has_finalizer(record, self.finalizer):
            return ReconcileResult()

        if not record.external_id:
            log.info("remote_object_never_provisioned")
            remove_finalizer(record, self.finalizer)
            return ReconcileResult()

        try:
            await delete_remote()
            log.info("remote_object_deleted", cluster_uuid=record.external_id)
        except ResourceNotFoundError:
            log.info("remote_object_already_deleted", cluster_uuid=record.external_id)

        remove_finalizer(record, self.finalizer)
        return ReconcileResult()

    async def ensure_cluster_uuid(self, record: Record, log) -> Optional[str]:
        """
        Return the cached cluster id, resolving and caching it on first use.

        Returns None while the referenced cluster is not ready yet.
        """
        if record.status.cluster_uuid:
            return record.status.cluster_uuid

        resolved = await self.resolver.resolve(record.namespace, record.spec.cluster)
        if not resolved.ready:
            log.info(
                "cluster_not_ready",
                cluster_kind=record.spec.cluster.kind,
                cluster_name=record.spec.cluster.name,
                cluster_status=resolved.status,
            )
            return None

        record.status.cluster_uuid = resolved.external_id
        return resolved.external_id

    def wait_for_cluster(self) -> ReconcileResult:
        return ReconcileResult(requeue_after=self.settings.dependency_retry_interval)
