from typing import Dict

from dbaas_operator.config.settings import Settings
from dbaas_operator.controllers.cluster import DatabaseClusterReconciler
from dbaas_operator.controllers.cluster_reference import DatabaseClusterReferenceReconciler
from dbaas_operator.controllers.database import DatabaseReconciler
from dbaas_operator.controllers.user import DatabaseUserReconciler
from dbaas_operator.controllers.user_reference import DatabaseUserReferenceReconciler
from dbaas_operator.core.artifacts import ArtifactSynchronizer
from dbaas_operator.core.reconciler import Reconciler
from dbaas_operator.core.resolver import ClusterResolver
from dbaas_operator.models.resources import ResourceKind
from dbaas_operator.services.gateway import ProvisioningGateway
from dbaas_operator.store.base import ResourceStore

RECONCILER_TYPES = (
    DatabaseClusterReconciler,
    DatabaseClusterReferenceReconciler,
    DatabaseReconciler,
    DatabaseUserReconciler,
    DatabaseUserReferenceReconciler,
)


def build_reconcilers(
    store: ResourceStore,
    gateway: ProvisioningGateway,
    settings: Settings,
) -> Dict[ResourceKind, Reconciler]:
    """One reconciler per kind, sharing a resolver and an artifact synchronizer."""
    resolver = ClusterResolver(store)
    synchronizer = ArtifactSynchronizer(store, settings.field_manager)
    return {
        reconciler_type.KIND: reconciler_type(store, gateway, settings, resolver, synchronizer)
        for reconciler_type in RECONCILER_TYPES
    }


__all__ = [
    "DatabaseClusterReconciler",
    "DatabaseClusterReferenceReconciler",
    "DatabaseReconciler",
    "DatabaseUserReconciler",
    "DatabaseUserReferenceReconciler",
    "RECONCILER_TYPES",
    "build_reconcilers",
]
