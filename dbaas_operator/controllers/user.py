"""
DatabaseUser reconciler.

Creates a user in the referenced cluster, publishes its credentials and
removes the user when the record is deleted.
"""
from dbaas_operator.core.artifacts import user_credentials_artifact
from dbaas_operator.core.finalizers import add_finalizer, has_finalizer
from dbaas_operator.core.reconciler import ReconcileResult, Reconciler
from dbaas_operator.exceptions import ResourceNotFoundError
from dbaas_operator.models.resources import DatabaseUser, ResourceKind


class DatabaseUserReconciler(Reconciler):
    """Converges DatabaseUser records."""

    KIND = ResourceKind.DATABASE_USER

    async def reconcile_record(self, user: DatabaseUser, log) -> ReconcileResult:
        if user.in_deletion:
            log.info("deleting_user", cluster_uuid=user.status.cluster_uuid)
            return await self.reconcile_deletion(
                user,
                log,
                lambda: self.gateway.delete_user(user.status.cluster_uuid, user.spec.username),
            )

        cluster_uuid = await self.ensure_cluster_uuid(user, log)
        if cluster_uuid is None:
            return self.wait_for_cluster()

        log = log.bind(cluster_uuid=cluster_uuid, user_name=user.spec.username)

        # Fetched before any mutation; its connection URIs go into the credentials.
        cluster = await self.gateway.get_cluster(cluster_uuid)

        # Users have no identity beyond their username; a same-named user
        # created after admission is adopted as ours.
        try:
            remote = await self.gateway.get_user(cluster_uuid, user.spec.username)
            if not has_finalizer(user, self.finalizer):
                log.warning("adopted_existing_remote_object")
        except ResourceNotFoundError:
            remote = await self.gateway.create_user(cluster_uuid, user.spec.username)
            log.info("user_created", role=remote.role)

        add_finalizer(user, self.finalizer)
        user.status.role = remote.role

        await self.synchronizer.sync(user, [user_credentials_artifact(user, remote, cluster)])

        return ReconcileResult(requeue_after=self.settings.owned_refresh_interval)
