"""
In-memory desired-state store.

Used by the test suite and for local development (STORE_BACKEND=memory).
It implements the parts of the Kubernetes object lifecycle the operator
relies on:
- deletion timestamps with finalizer-gated removal
- cascade deletion of artifacts owned by a removed record
- force-apply of artifacts as read-modify-write, last writer wins; keys a
  field manager applied before but no longer sends are removed
- change notification for watchers
"""
import asyncio
from collections import defaultdict
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, List, Optional, Set, Tuple

from dbaas_operator.config.logging import get_logger
from dbaas_operator.exceptions import RecordNotFoundError, StoreError
from dbaas_operator.models.artifacts import ARTIFACT_TYPES, Artifact, ArtifactKind
from dbaas_operator.models.resources import Record, ResourceKey, ResourceKind
from dbaas_operator.store.base import ADDED, DELETED, MODIFIED, ResourceStore, WatchEvent

logger = get_logger(__name__)

ArtifactId = Tuple[ArtifactKind, ResourceKey]


class InMemoryStore(ResourceStore):
    """Dictionary-backed store with Kubernetes-like lifecycle semantics."""

    def __init__(self):
        self._records: Dict[ResourceKind, Dict[ResourceKey, Record]] = defaultdict(dict)
        self._artifacts: Dict[ArtifactId, Artifact] = {}
        self._field_managers: Dict[ArtifactId, str] = {}
        # data keys owned by each field manager, per artifact
        self._managed_keys: Dict[ArtifactId, Dict[str, Set[str]]] = defaultdict(dict)
        self._subscribers: Dict[ResourceKind, List[asyncio.Queue]] = defaultdict(list)
        self._version = 0

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def _notify(self, event_type: str, kind: ResourceKind, key: ResourceKey) -> None:
        event = WatchEvent(type=event_type, kind=kind, key=key)
        for queue in self._subscribers[kind]:
            queue.put_nowait(event)

    def _stored(self, kind: ResourceKind, namespace: str, name: str) -> Record:
        record = self._records[kind].get(ResourceKey(namespace, name))
        if record is None:
            raise RecordNotFoundError(kind.value, namespace, name)
        return record

    def _remove(self, record: Record) -> None:
        """Drop a record and cascade to the artifacts it owns."""
        kind = record.KIND
        del self._records[kind][record.key]
        owned = [
            artifact_id
            for artifact_id, artifact in self._artifacts.items()
            if record.metadata.uid in artifact.owner_uids
        ]
        for artifact_id in owned:
            del self._artifacts[artifact_id]
            self._field_managers.pop(artifact_id, None)
            self._managed_keys.pop(artifact_id, None)
        logger.debug(
            "record_removed",
            kind=kind.value,
            namespace=record.namespace,
            name=record.name,
            cascaded_artifacts=len(owned),
        )
        self._notify(DELETED, kind, record.key)

    # Records

    async def get(self, kind: ResourceKind, namespace: str, name: str) -> Record:
        return self._stored(kind, namespace, name).model_copy(deep=True)

    async def list(self, kind: ResourceKind, namespace: Optional[str] = None) -> List[Record]:
        return [
            record.model_copy(deep=True)
            for key, record in sorted(self._records[kind].items())
            if namespace is None or key.namespace == namespace
        ]

    async def watch(self, kind: ResourceKind) -> AsyncIterator[WatchEvent]:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers[kind].append(queue)
        try:
            for key in sorted(self._records[kind]):
                yield WatchEvent(type=ADDED, kind=kind, key=key)
            while True:
                yield await queue.get()
        finally:
            self._subscribers[kind].remove(queue)

    async def create(self, record: Record) -> Record:
        kind = record.KIND
        if record.key in self._records[kind]:
            raise StoreError(
                f"{kind.value} '{record.key}' already exists",
                details={"kind": kind.value, "key": str(record.key)},
            )
        stored = record.model_copy(deep=True)
        stored.metadata.resource_version = self._next_version()
        self._records[kind][stored.key] = stored
        self._notify(ADDED, kind, stored.key)
        return stored.model_copy(deep=True)

    async def update_spec(self, record: Record) -> Record:
        """Replace the desired state of an existing record, as a user edit would."""
        stored = self._stored(record.KIND, record.namespace, record.name)
        stored.spec = record.spec.model_copy(deep=True)
        stored.metadata.labels = dict(record.metadata.labels)
        stored.metadata.resource_version = self._next_version()
        self._notify(MODIFIED, record.KIND, stored.key)
        return stored.model_copy(deep=True)

    async def delete(self, kind: ResourceKind, namespace: str, name: str) -> None:
        stored = self._stored(kind, namespace, name)
        if not stored.metadata.finalizers:
            self._remove(stored)
            return
        if stored.metadata.deletion_timestamp is None:
            stored.metadata.deletion_timestamp = datetime.now(timezone.utc)
            stored.metadata.resource_version = self._next_version()
            self._notify(MODIFIED, kind, stored.key)

    async def patch_status(self, record: Record) -> Record:
        stored = self._stored(record.KIND, record.namespace, record.name)
        stored.status = record.status.model_copy(deep=True)
        stored.metadata.resource_version = self._next_version()
        self._notify(MODIFIED, record.KIND, stored.key)
        return stored.model_copy(deep=True)

    async def patch_finalizers(self, record: Record) -> Record:
        stored = self._stored(record.KIND, record.namespace, record.name)
        stored.metadata.finalizers = list(record.metadata.finalizers)
        stored.metadata.resource_version = self._next_version()
        result = stored.model_copy(deep=True)
        if stored.in_deletion and not stored.metadata.finalizers:
            self._remove(stored)
        else:
            self._notify(MODIFIED, record.KIND, stored.key)
        return result

    # Artifacts

    async def apply_artifact(self, artifact: Artifact, field_manager: str) -> Artifact:
        artifact_id = (artifact.ARTIFACT_KIND, artifact.key)
        existing = self._artifacts.get(artifact_id)
        if existing is None:
            stored = artifact.model_copy(deep=True)
        else:
            stored = existing
            previous = self._managed_keys[artifact_id].get(field_manager, set())
            for key in previous - set(artifact.data):
                stored.data.pop(key, None)
            stored.data.update(artifact.data)
            stored.metadata.labels.update(artifact.metadata.labels)
            if artifact.metadata.owner_references:
                stored.metadata.owner_references = [
                    ref.model_copy() for ref in artifact.metadata.owner_references
                ]
        stored.metadata.resource_version = self._next_version()
        self._artifacts[artifact_id] = stored
        self._field_managers[artifact_id] = field_manager
        self._take_ownership(artifact_id, field_manager, set(artifact.data))
        return stored.model_copy(deep=True)

    def _take_ownership(self, artifact_id: ArtifactId, manager: Optional[str], keys: Set[str]) -> None:
        """Record ``manager`` as the sole owner of ``keys``; None means a manual edit."""
        owners = self._managed_keys[artifact_id]
        for other, owned in owners.items():
            if other != manager:
                owned.difference_update(keys)
        if manager is not None:
            owners[manager] = set(keys)

    async def get_artifact(self, kind: ArtifactKind, namespace: str, name: str) -> Artifact:
        artifact = self._artifacts.get((kind, ResourceKey(namespace, name)))
        if artifact is None:
            raise RecordNotFoundError(kind.value, namespace, name)
        return artifact.model_copy(deep=True)

    def list_artifacts(self, namespace: Optional[str] = None) -> List[Artifact]:
        return [
            artifact.model_copy(deep=True)
            for (_, key), artifact in sorted(self._artifacts.items(), key=lambda item: (item[0][0].value, item[0][1]))
            if namespace is None or key.namespace == namespace
        ]

    def field_manager_of(self, kind: ArtifactKind, namespace: str, name: str) -> Optional[str]:
        """Field manager of the last apply, as recorded in managedFields on Kubernetes."""
        return self._field_managers.get((kind, ResourceKey(namespace, name)))

    def put_artifact(self, kind: ArtifactKind, namespace: str, name: str, data: Dict[str, str]) -> Artifact:
        """
        Write an artifact directly, as a manual edit outside the operator would.

        Like an update on Kubernetes, the edit takes ownership of the keys whose
        value it changes, so a later apply no longer removes them.
        """
        artifact = ARTIFACT_TYPES[kind].model_validate({"metadata": {"name": name, "namespace": namespace}, "data": data})
        artifact_id = (kind, artifact.key)
        previous = self._artifacts.get(artifact_id)
        before = previous.data if previous is not None else {}
        self._artifacts[artifact_id] = artifact
        self._take_ownership(artifact_id, None, {key for key, value in data.items() if before.get(key) != value})
        return artifact.model_copy(deep=True)
