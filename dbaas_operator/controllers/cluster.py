"""
DatabaseCluster reconciler.

Owns the remote cluster: creates it, resizes it when the desired node count
or size changes, and deletes it once the record is deleted.
"""
from dbaas_operator.core.artifacts import cluster_artifacts
from dbaas_operator.core.finalizers import add_finalizer
from dbaas_operator.core.reconciler import ReconcileResult, Reconciler
from dbaas_operator.models.resources import DatabaseCluster, ResourceKind

CREATING_STATUS = "creating"
ONLINE_STATUS = "online"


class DatabaseClusterReconciler(Reconciler):
    """Converges DatabaseCluster records."""

    KIND = ResourceKind.DATABASE_CLUSTER

    async def reconcile_record(self, cluster: DatabaseCluster, log) -> ReconcileResult:
        if cluster.in_deletion:
            log.info("deleting_cluster", cluster_uuid=cluster.status.uuid)
            return await self.reconcile_deletion(
                cluster, log, lambda: self.gateway.delete_cluster(cluster.status.uuid)
            )
        if cluster.status.uuid:
            log = log.bind(cluster_uuid=cluster.status.uuid)
            log.debug("reconciling_existing_cluster")
            return await self._reconcile_existing(cluster, log)
        log.info("reconciling_new_cluster")
        return await self._reconcile_new(cluster, log)

    async def _reconcile_new(self, cluster: DatabaseCluster, log) -> ReconcileResult:
        remote = await self.gateway.create_cluster(cluster.spec.to_create_request())
        log.info("cluster_created", cluster_uuid=remote.id, cluster_status=remote.status)

        # Record the id together with the finalizer so the remote cluster is never orphaned.
        add_finalizer(cluster, self.finalizer)
        cluster.status.uuid = remote.id
        cluster.status.created_at = remote.created_at
        cluster.status.status = remote.status

        ca = await self.gateway.get_cluster_ca(remote.id)
        await self.synchronizer.sync(cluster, cluster_artifacts(cluster, remote, ca))

        return ReconcileResult(requeue_after=self.settings.cluster_default_interval)

    async def _reconcile_existing(self, cluster: DatabaseCluster, log) -> ReconcileResult:
        remote = await self.gateway.get_cluster(cluster.status.uuid)
        ca = await self.gateway.get_cluster_ca(remote.id)

        spec = cluster.spec
        if remote.num_nodes != spec.num_nodes or remote.size != spec.size:
            log.info(
                "resizing_cluster",
                current_num_nodes=remote.num_nodes,
                desired_num_nodes=spec.num_nodes,
                current_size=remote.size,
                desired_size=spec.size,
            )
            await self.gateway.resize_cluster(cluster.status.uuid, spec.to_resize_request())
            # Reconcile again right away to pick up the post-resize status.
            return ReconcileResult(requeue=True)

        add_finalizer(cluster, self.finalizer)
        cluster.status.status = remote.status

        await self.synchronizer.sync(cluster, cluster_artifacts(cluster, remote, ca))

        if remote.status == CREATING_STATUS:
            interval = self.settings.cluster_creating_interval
        elif remote.status == ONLINE_STATUS:
            interval = self.settings.cluster_online_interval
        else:
            interval = self.settings.cluster_default_interval
        return ReconcileResult(requeue_after=interval)
