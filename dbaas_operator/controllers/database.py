"""
Database reconciler.

Creates a logical database inside the referenced cluster, adopting a
same-named database that already exists, and drops it on deletion.
"""
from dbaas_operator.core.finalizers import add_finalizer, has_finalizer
from dbaas_operator.core.reconciler import ReconcileResult, Reconciler
from dbaas_operator.exceptions import ResourceNotFoundError
from dbaas_operator.models.resources import Database, ResourceKind


class DatabaseReconciler(Reconciler):
    """Converges Database records."""

    KIND = ResourceKind.DATABASE

    async def reconcile_record(self, database: Database, log) -> ReconcileResult:
        if database.in_deletion:
            log.info("deleting_database", cluster_uuid=database.status.cluster_uuid)
            return await self.reconcile_deletion(
                database,
                log,
                lambda: self.gateway.delete_database(database.status.cluster_uuid, database.spec.name),
            )

        cluster_uuid = await self.ensure_cluster_uuid(database, log)
        if cluster_uuid is None:
            return self.wait_for_cluster()

        log = log.bind(cluster_uuid=cluster_uuid, database_name=database.spec.name)

        # Databases have no identity beyond their name; a same-named database
        # created after admission is adopted as ours.
        try:
            remote = await self.gateway.get_database(cluster_uuid, database.spec.name)
            if not has_finalizer(database, self.finalizer):
                log.warning("adopted_existing_remote_object")
        except ResourceNotFoundError:
            remote = await self.gateway.create_database(cluster_uuid, database.spec.name)
            log.info("database_created")

        add_finalizer(database, self.finalizer)
        database.status.name = remote.name

        return ReconcileResult(requeue_after=self.settings.owned_refresh_interval)
