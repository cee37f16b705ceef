"""
Artifact Synchronizer - derived connection and credential objects.

Builds ConfigMap-like connection artifacts and Secret-like credential
artifacts from provisioning API responses, ties them to their owning record
with a controller owner reference and force-applies them to the store.
Artifacts are never deleted here; the store removes them by cascade when
the owner goes away.
"""
from typing import Iterable, List, Optional
from urllib.parse import quote, urlsplit, urlunsplit

from dbaas_operator.config.logging import get_logger
from dbaas_operator.exceptions import GatewayError, OperatorException, StoreError
from dbaas_operator.models.artifacts import Artifact, ConnectionArtifact, CredentialArtifact
from dbaas_operator.models.provisioning import ClusterCA, ConnectionInfo, RemoteCluster, RemoteUser
from dbaas_operator.models.resources import ObjectMeta, OwnerReference, Record

logger = get_logger(__name__)

MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"

CONNECTION_SUFFIX = "-connection"
PRIVATE_CONNECTION_SUFFIX = "-private-connection"
DEFAULT_CREDENTIALS_SUFFIX = "-default-credentials"
CREDENTIALS_SUFFIX = "-credentials"


def _meta(owner: Record, suffix: str) -> ObjectMeta:
    return ObjectMeta(name=owner.name + suffix, namespace=owner.namespace)


def connection_artifact(owner: Record, suffix: str, connection: ConnectionInfo) -> ConnectionArtifact:
    """Connection coordinates of one network (public or private)."""
    return ConnectionArtifact(
        metadata=_meta(owner, suffix),
        data={
            "host": connection.host,
            "port": str(connection.port),
            "ssl": "true" if connection.ssl else "false",
            "database": connection.database,
        },
    )


def default_credentials_artifact(
    owner: Record,
    cluster: RemoteCluster,
    ca: Optional[ClusterCA] = None,
) -> CredentialArtifact:
    """Credentials of the cluster's default admin user."""
    connection = cluster.connection or ConnectionInfo()
    data = {
        "username": connection.user,
        "password": connection.password,
        "uri": connection.uri,
    }
    if cluster.private_connection is not None:
        data["private_uri"] = cluster.private_connection.uri
    if ca is not None and ca.certificate:
        data["ca.crt"] = ca.certificate
    return CredentialArtifact(metadata=_meta(owner, DEFAULT_CREDENTIALS_SUFFIX), data=data)


def with_user_info(uri: str, username: str, password: str) -> str:
    """
    Replace the user info of a connection URI.

    Raises:
        GatewayError: If the API returned a URI that cannot be parsed
    """
    try:
        parts = urlsplit(uri)
        host = parts.netloc.rpartition("@")[2]
        parts.port  # raises ValueError for an out-of-range port
    except ValueError as e:
        raise GatewayError(f"unable to parse connection uri: {e}") from e
    netloc = f"{quote(username, safe='')}:{quote(password, safe='')}@{host}"
    return urlunsplit(parts._replace(netloc=netloc))


def user_credentials_artifact(
    owner: Record,
    user: RemoteUser,
    cluster: Optional[RemoteCluster] = None,
) -> CredentialArtifact:
    """Credentials of a database user, with connection URIs when the cluster is known."""
    data = {"username": user.name, "password": user.password}
    if cluster is not None:
        if cluster.connection is not None and cluster.connection.uri:
            data["uri"] = with_user_info(cluster.connection.uri, user.name, user.password)
        if cluster.private_connection is not None and cluster.private_connection.uri:
            data["private_uri"] = with_user_info(cluster.private_connection.uri, user.name, user.password)
    return CredentialArtifact(metadata=_meta(owner, CREDENTIALS_SUFFIX), data=data)


def cluster_artifacts(
    owner: Record,
    cluster: RemoteCluster,
    ca: Optional[ClusterCA] = None,
) -> List[Artifact]:
    """All artifacts derived from a cluster: connections and default credentials."""
    artifacts: List[Artifact] = []
    if cluster.connection is not None:
        artifacts.append(connection_artifact(owner, CONNECTION_SUFFIX, cluster.connection))
    if cluster.private_connection is not None:
        artifacts.append(connection_artifact(owner, PRIVATE_CONNECTION_SUFFIX, cluster.private_connection))
    if cluster.connection is not None:
        artifacts.append(default_credentials_artifact(owner, cluster, ca))
    return artifacts


class ArtifactSynchronizer:
    """
    Applies derived artifacts on behalf of an owning record.

    Args:
        store: Desired-state store
        field_manager: Field manager identity used for every apply
    """

    def __init__(self, store, field_manager: str = "dbaas-operator"):
        self.store = store
        self.field_manager = field_manager

    def owner_reference(self, owner: Record) -> OwnerReference:
        return OwnerReference(
            api_version=owner.api_version,
            kind=owner.kind,
            name=owner.name,
            uid=owner.metadata.uid,
        )

    async def sync(self, owner: Record, artifacts: Iterable[Artifact]) -> None:
        """
        Apply each artifact with a controller reference to ``owner``.

        Credential artifacts with an empty password are skipped so a
        previously captured secret is never overwritten.

        Raises:
            StoreError: If an apply fails
        """
        for artifact in artifacts:
            if isinstance(artifact, CredentialArtifact) and not artifact.password:
                logger.info(
                    "credentials_skipped_empty_password",
                    namespace=owner.namespace,
                    owner=owner.name,
                    artifact=artifact.metadata.name,
                )
                continue

            artifact.metadata.owner_references = [self.owner_reference(owner)]
            artifact.metadata.labels[MANAGED_BY_LABEL] = self.field_manager
            try:
                await self.store.apply_artifact(artifact, self.field_manager)
            except OperatorException as e:
                if isinstance(e, StoreError):
                    raise
                raise StoreError(
                    f"applying {artifact.ARTIFACT_KIND.value} {artifact.key}: {e.message}",
                    details={"artifact": str(artifact.key)},
                ) from e
            logger.debug(
                "artifact_applied",
                namespace=owner.namespace,
                owner=owner.name,
                artifact_kind=artifact.ARTIFACT_KIND.value,
                artifact=artifact.metadata.name,
            )
