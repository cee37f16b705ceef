from dbaas_operator.core.artifacts import ArtifactSynchronizer
from dbaas_operator.core.reconciler import ReconcileResult, Reconciler
from dbaas_operator.core.resolver import ClusterResolver, ResolvedCluster
from dbaas_operator.core.state_machine import ProvisioningState, ProvisioningStateMachine

__all__ = [
    "ArtifactSynchronizer",
    "ClusterResolver",
    "ProvisioningState",
    "ProvisioningStateMachine",
    "ReconcileResult",
    "Reconciler",
    "ResolvedCluster",
]
