"""
DatabaseUserReference reconciler.

Publishes credentials of a user that already exists. The user is never
created or deleted by the operator.
"""
from dbaas_operator.core.artifacts import user_credentials_artifact
from dbaas_operator.core.reconciler import ReconcileResult, Reconciler
from dbaas_operator.models.resources import DatabaseUserReference, ResourceKind


class DatabaseUserReferenceReconciler(Reconciler):
    """Refreshes DatabaseUserReference records."""

    KIND = ResourceKind.DATABASE_USER_REFERENCE

    async def reconcile_record(self, ref: DatabaseUserReference, log) -> ReconcileResult:
        if ref.in_deletion:
            return ReconcileResult()

        cluster_uuid = await self.ensure_cluster_uuid(ref, log)
        if cluster_uuid is None:
            return self.wait_for_cluster()

        cluster = await self.gateway.get_cluster(cluster_uuid)
        # ResourceNotFoundError propagates: the referenced user must exist.
        remote = await self.gateway.get_user(cluster_uuid, ref.spec.username)
        ref.status.role = remote.role

        await self.synchronizer.sync(ref, [user_credentials_artifact(ref, remote, cluster)])

        return ReconcileResult(requeue_after=self.settings.reference_refresh_interval)
