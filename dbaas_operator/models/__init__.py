from dbaas_operator.models.resources import (
    ClusterRef,
    Database,
    DatabaseCluster,
    DatabaseClusterReference,
    DatabaseUser,
    DatabaseUserReference,
    ObjectMeta,
    Record,
    ResourceKey,
    ResourceKind,
)
from dbaas_operator.models.artifacts import (
    Artifact,
    ArtifactKind,
    ConnectionArtifact,
    CredentialArtifact,
)
# Provisioning API payloads live in dbaas_operator.models.provisioning

__all__ = [
    "Artifact",
    "ArtifactKind",
    "ClusterRef",
    "ConnectionArtifact",
    "CredentialArtifact",
    "Database",
    "DatabaseCluster",
    "DatabaseClusterReference",
    "DatabaseUser",
    "DatabaseUserReference",
    "ObjectMeta",
    "Record",
    "ResourceKey",
    "ResourceKind",
]
