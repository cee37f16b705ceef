"""
Dependency Resolver - turns a polymorphic cluster reference into a cluster id.

Databases and users name their cluster with ``{kind, name}`` where kind is
either an owned DatabaseCluster or a DatabaseClusterReference. Only this
module knows how each kind exposes its remote id and readiness.
"""
from dataclasses import dataclass

from dbaas_operator.config.logging import get_logger
from dbaas_operator.exceptions import ConfigurationError, DependencyError, RecordNotFoundError
from dbaas_operator.models.resources import (
    ClusterRef,
    DatabaseCluster,
    DatabaseClusterReference,
    ResourceKind,
)
from dbaas_operator.store.base import ResourceStore

logger = get_logger(__name__)

# Remote statuses during which users and databases cannot be created yet
NOT_READY_STATUSES = frozenset({"", "creating"})


@dataclass(frozen=True)
class ResolvedCluster:
    """Remote id and last observed status of a referenced cluster."""

    external_id: str
    status: str

    @property
    def ready(self) -> bool:
        return bool(self.external_id) and self.status not in NOT_READY_STATUSES


class ClusterResolver:
    """
    Resolves cluster references against the desired-state store.

    Args:
        store: Store holding the cluster records
    """

    def __init__(self, store: ResourceStore):
        self.store = store

    async def resolve(self, namespace: str, ref: ClusterRef) -> ResolvedCluster:
        """
        Resolve ``ref`` within ``namespace``.

        Returns:
            ResolvedCluster; callers requeue without error while not ready

        Raises:
            DependencyError: If the referenced record does not exist
            ConfigurationError: If the reference names an unsupported kind
        """
        if ref.kind == ResourceKind.DATABASE_CLUSTER.value:
            kind = ResourceKind.DATABASE_CLUSTER
        elif ref.kind == ResourceKind.DATABASE_CLUSTER_REFERENCE.value:
            kind = ResourceKind.DATABASE_CLUSTER_REFERENCE
        else:
            raise ConfigurationError(
                f"unexpected kind for cluster reference: {ref.kind!r}",
                details={"namespace": namespace, "name": ref.name, "kind": ref.kind},
            )

        try:
            record = await self.store.get(kind, namespace, ref.name)
        except RecordNotFoundError as e:
            raise DependencyError(
                f"failed to get {kind.value} {namespace}/{ref.name}",
                details={"kind": kind.value, "namespace": namespace, "name": ref.name},
            ) from e

        if isinstance(record, DatabaseCluster):
            resolved = ResolvedCluster(external_id=record.status.uuid, status=record.status.status)
        elif isinstance(record, DatabaseClusterReference):
            resolved = ResolvedCluster(external_id=record.spec.uuid, status=record.status.status)
        else:
            raise ConfigurationError(f"store returned {type(record).__name__} for {kind.value}")

        logger.debug(
            "cluster_reference_resolved",
            namespace=namespace,
            cluster_kind=kind.value,
            cluster_name=ref.name,
            cluster_uuid=resolved.external_id,
            cluster_status=resolved.status,
            ready=resolved.ready,
        )
        return resolved
