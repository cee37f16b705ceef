"""
Pydantic models for desired-state records.

Each record is a desired/observed pair: ``spec`` is declared by the user,
``status`` is written only by the reconcilers. Field aliases follow the
camelCase JSON of the custom resources so the same models round-trip through
the Kubernetes API and the in-memory store.
"""
import uuid
from datetime import datetime
from enum import Enum
from typing import ClassVar, Dict, List, NamedTuple, Optional, Type

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from dbaas_operator.models.provisioning import ClusterCreateRequest, ClusterResizeRequest


class ResourceKind(str, Enum):
    """Kinds of records reconciled by the operator."""

    DATABASE_CLUSTER = "DatabaseCluster"
    DATABASE_CLUSTER_REFERENCE = "DatabaseClusterReference"
    DATABASE = "Database"
    DATABASE_USER = "DatabaseUser"
    DATABASE_USER_REFERENCE = "DatabaseUserReference"

    @property
    def plural(self) -> str:
        """Lower-case plural used in resource URLs."""
        return self.value.lower() + "s"


class ResourceKey(NamedTuple):
    """Identity of one record instance within a kind."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_dict(self) -> Dict:
        """Serialize to the JSON shape used by the store."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class OwnerReference(CamelModel):
    """Link from a derived artifact back to the record that owns it."""

    api_version: str
    kind: str
    name: str
    uid: str
    controller: bool = True
    block_owner_deletion: bool = True


class ObjectMeta(CamelModel):
    """Metadata shared by records and artifacts."""

    name: str
    namespace: str = "default"
    uid: str = Field(default_factory=lambda: str(uuid.uuid4()))
    resource_version: Optional[str] = None
    labels: Dict[str, str] = Field(default_factory=dict)
    finalizers: List[str] = Field(default_factory=list)
    deletion_timestamp: Optional[datetime] = None
    owner_references: List[OwnerReference] = Field(default_factory=list)


class ClusterRef(CamelModel):
    """
    Polymorphic reference to a cluster record in the same namespace.

    ``kind`` is either ``DatabaseCluster`` or ``DatabaseClusterReference``.
    It is kept as a plain string so an unexpected kind reaches the resolver
    and fails there with a clear error.
    """

    kind: str
    name: str
    api_group: Optional[str] = None


class Record(CamelModel):
    """Base class for all desired-state records."""

    KIND: ClassVar[ResourceKind]
    USES_FINALIZER: ClassVar[bool] = False

    api_version: str = "databases.digitalocean.com/v1alpha1"
    kind: str = ""
    metadata: ObjectMeta

    def model_post_init(self, __context) -> None:
        if not self.kind:
            self.kind = self.KIND.value

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def key(self) -> ResourceKey:
        return ResourceKey(self.metadata.namespace, self.metadata.name)

    @property
    def in_deletion(self) -> bool:
        """Whether a deletion intent has been recorded."""
        return self.metadata.deletion_timestamp is not None

    @property
    def external_id(self) -> str:
        """Identifier of the remote counterpart, empty until provisioned."""
        return ""


# DatabaseCluster


class DatabaseClusterSpec(CamelModel):
    engine: str
    # Name of the remote cluster, not of this record.
    name: str
    version: str
    num_nodes: int
    # Node size slug.
    size: str
    region: str

    def to_create_request(self) -> ClusterCreateRequest:
        return ClusterCreateRequest(
            name=self.name,
            engine=self.engine,
            version=self.version,
            size=self.size,
            region=self.region,
            num_nodes=self.num_nodes,
        )

    def to_resize_request(self) -> ClusterResizeRequest:
        return ClusterResizeRequest(size=self.size, num_nodes=self.num_nodes)


class DatabaseClusterStatus(CamelModel):
    uuid: str = ""
    status: str = ""
    created_at: Optional[datetime] = None


class DatabaseCluster(Record):
    """A cluster provisioned and owned by the operator."""

    KIND: ClassVar[ResourceKind] = ResourceKind.DATABASE_CLUSTER
    USES_FINALIZER: ClassVar[bool] = True

    spec: DatabaseClusterSpec
    status: DatabaseClusterStatus = Field(default_factory=DatabaseClusterStatus)

    @property
    def external_id(self) -> str:
        return self.status.uuid


# DatabaseClusterReference


class DatabaseClusterReferenceSpec(CamelModel):
    # UUID of a pre-existing cluster not owned by the operator.
    uuid: str


class DatabaseClusterReferenceStatus(CamelModel):
    engine: str = ""
    name: str = ""
    version: str = ""
    num_nodes: int = 0
    size: str = ""
    region: str = ""
    status: str = ""
    created_at: Optional[datetime] = None


class DatabaseClusterReference(Record):
    """A read-only pointer to a cluster that the operator must never delete."""

    KIND: ClassVar[ResourceKind] = ResourceKind.DATABASE_CLUSTER_REFERENCE

    spec: DatabaseClusterReferenceSpec
    status: DatabaseClusterReferenceStatus = Field(default_factory=DatabaseClusterReferenceStatus)

    @property
    def external_id(self) -> str:
        return self.spec.uuid


# Database


class DatabaseSpec(CamelModel):
    cluster: ClusterRef = Field(alias="databaseCluster")
    name: str


class DatabaseStatus(CamelModel):
    # Kept in status so the database can be deleted after the cluster record is gone.
    cluster_uuid: str = Field(default="", alias="clusterUUID")
    name: str = ""


class Database(Record):
    """A logical database inside a cluster."""

    KIND: ClassVar[ResourceKind] = ResourceKind.DATABASE
    USES_FINALIZER: ClassVar[bool] = True

    spec: DatabaseSpec
    status: DatabaseStatus = Field(default_factory=DatabaseStatus)

    @property
    def external_id(self) -> str:
        return self.status.cluster_uuid


# DatabaseUser


class DatabaseUserSpec(CamelModel):
    cluster: ClusterRef = Field(alias="databaseCluster")
    username: str


class DatabaseUserStatus(CamelModel):
    cluster_uuid: str = Field(default="", alias="clusterUUID")
    role: str = ""


class DatabaseUser(Record):
    """A database user created and owned by the operator."""

    KIND: ClassVar[ResourceKind] = ResourceKind.DATABASE_USER
    USES_FINALIZER: ClassVar[bool] = True

    spec: DatabaseUserSpec
    status: DatabaseUserStatus = Field(default_factory=DatabaseUserStatus)

    @property
    def external_id(self) -> str:
        return self.status.cluster_uuid


class DatabaseUserReference(Record):
    """A pre-existing database user; deleting the record never removes the user."""

    KIND: ClassVar[ResourceKind] = ResourceKind.DATABASE_USER_REFERENCE

    spec: DatabaseUserSpec
    status: DatabaseUserStatus = Field(default_factory=DatabaseUserStatus)

    @property
    def external_id(self) -> str:
        return self.status.cluster_uuid


RECORD_TYPES: Dict[ResourceKind, Type[Record]] = {
    ResourceKind.DATABASE_CLUSTER: DatabaseCluster,
    ResourceKind.DATABASE_CLUSTER_REFERENCE: DatabaseClusterReference,
    ResourceKind.DATABASE: Database,
    ResourceKind.DATABASE_USER: DatabaseUser,
    ResourceKind.DATABASE_USER_REFERENCE: DatabaseUserReference,
}


def record_from_dict(kind: ResourceKind, obj: Dict) -> Record:
    """Build a typed record of ``kind`` from its JSON representation."""
    return RECORD_TYPES[kind].model_validate(obj)
