"""
Desired-state store interface.

The store holds records and their derived artifacts and notifies watchers
of changes. Reconcilers only ever read one record, patch its status and
finalizers, and apply artifacts it owns.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional

from dbaas_operator.models.artifacts import Artifact, ArtifactKind
from dbaas_operator.models.resources import Record, ResourceKey, ResourceKind

ADDED = "ADDED"
MODIFIED = "MODIFIED"
DELETED = "DELETED"


@dataclass(frozen=True)
class WatchEvent:
    """A change notification for one record."""

    type: str
    kind: ResourceKind
    key: ResourceKey


class ResourceStore(ABC):
    """Abstract desired-state store."""

    @abstractmethod
    async def get(self, kind: ResourceKind, namespace: str, name: str) -> Record:
        """
        Load one record.

        Raises:
            RecordNotFoundError: If the record does not exist
            StoreError: If the store could not be read
        """

    @abstractmethod
    async def list(self, kind: ResourceKind, namespace: Optional[str] = None) -> List[Record]:
        """List records of a kind, optionally limited to one namespace."""

    @abstractmethod
    def watch(self, kind: ResourceKind) -> AsyncIterator[WatchEvent]:
        """
        Stream change notifications for a kind.

        Existing records are reported as ADDED first, so a fresh watcher
        sees every record at least once.
        """

    @abstractmethod
    async def create(self, record: Record) -> Record:
        """Declare a new record."""

    @abstractmethod
    async def delete(self, kind: ResourceKind, namespace: str, name: str) -> None:
        """
        Record a deletion intent.

        A record that still carries finalizers only gets a deletion
        timestamp; it is removed once its finalizers are gone.
        """

    @abstractmethod
    async def patch_status(self, record: Record) -> Record:
        """Persist ``record.status`` and nothing else."""

    @abstractmethod
    async def patch_finalizers(self, record: Record) -> Record:
        """Persist ``record.metadata.finalizers`` and nothing else."""

    @abstractmethod
    async def apply_artifact(self, artifact: Artifact, field_manager: str) -> Artifact:
        """Force-apply an artifact; the last writer wins on the fields it sets."""

    @abstractmethod
    async def get_artifact(self, kind: ArtifactKind, namespace: str, name: str) -> Artifact:
        """
        Load one artifact.

        Raises:
            RecordNotFoundError: If the artifact does not exist
        """

    async def ping(self) -> bool:
        """Check that the store is reachable."""
        return True

    async def close(self) -> None:
        """Release connections."""
        return None
