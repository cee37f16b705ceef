"""
DatabaseClusterReference reconciler.

Mirrors a pre-existing cluster into the record's status and keeps its
connection artifacts current. Never creates, resizes or deletes anything.
"""
from dbaas_operator.core.artifacts import cluster_artifacts
from dbaas_operator.core.reconciler import ReconcileResult, Reconciler
from dbaas_operator.models.resources import DatabaseClusterReference, ResourceKind


class DatabaseClusterReferenceReconciler(Reconciler):
    """Refreshes DatabaseClusterReference records."""

    KIND = ResourceKind.DATABASE_CLUSTER_REFERENCE

    async def reconcile_record(self, ref: DatabaseClusterReference, log) -> ReconcileResult:
        if ref.in_deletion:
            return ReconcileResult()

        remote = await self.gateway.get_cluster(ref.spec.uuid)

        status = ref.status
        status.engine = remote.engine
        status.name = remote.name
        status.version = remote.version
        status.num_nodes = remote.num_nodes
        status.size = remote.size
        status.region = remote.region
        status.status = remote.status
        status.created_at = remote.created_at

        await self.synchronizer.sync(ref, cluster_artifacts(ref, remote))

        return ReconcileResult(requeue_after=self.settings.reference_refresh_interval)
