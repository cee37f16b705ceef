"""
Pydantic models for derived artifacts.

Artifacts are never declared by users. They are computed from provisioning
API responses, applied by the artifact synchronizer and owned by exactly one
record, whose deletion removes them by cascade.
"""
from enum import Enum
from typing import ClassVar, Dict

from pydantic import Field

from dbaas_operator.models.resources import CamelModel, ObjectMeta, ResourceKey


class ArtifactKind(str, Enum):
    """Storage shape of an artifact."""

    CONFIG_MAP = "ConfigMap"
    SECRET = "Secret"


class Artifact(CamelModel):
    """A flat key to string map owned by a record."""

    ARTIFACT_KIND: ClassVar[ArtifactKind]

    metadata: ObjectMeta
    data: Dict[str, str] = Field(default_factory=dict)

    @property
    def key(self) -> ResourceKey:
        return ResourceKey(self.metadata.namespace, self.metadata.name)

    @property
    def owner_uids(self) -> set:
        return {ref.uid for ref in self.metadata.owner_references}


class ConnectionArtifact(Artifact):
    """Connection coordinates: host, port, ssl, database."""

    ARTIFACT_KIND: ClassVar[ArtifactKind] = ArtifactKind.CONFIG_MAP


class CredentialArtifact(Artifact):
    """Credentials: username, password and optionally uri / private_uri."""

    ARTIFACT_KIND: ClassVar[ArtifactKind] = ArtifactKind.SECRET

    @property
    def password(self) -> str:
        return self.data.get("password", "")


ARTIFACT_TYPES = {
    ArtifactKind.CONFIG_MAP: ConnectionArtifact,
    ArtifactKind.SECRET: CredentialArtifact,
}
