"""
Provisioning Gateway - typed interface over the managed-database API.

Every operation is a single request. Failures raise GatewayError; an absent
object raises ResourceNotFoundError so callers can branch on absence versus
failure. Implementations must be safe for concurrent use by independent
reconciles.
"""
from abc import ABC, abstractmethod

from dbaas_operator.models.provisioning import (
    ClusterCA,
    ClusterCreateRequest,
    ClusterResizeRequest,
    RemoteCluster,
    RemoteDatabase,
    RemoteUser,
)


class ProvisioningGateway(ABC):
    """Abstract provisioning API client."""

    # Clusters

    @abstractmethod
    async def create_cluster(self, request: ClusterCreateRequest) -> RemoteCluster:
        ...

    @abstractmethod
    async def get_cluster(self, cluster_id: str) -> RemoteCluster:
        ...

    @abstractmethod
    async def resize_cluster(self, cluster_id: str, request: ClusterResizeRequest) -> None:
        ...

    @abstractmethod
    async def delete_cluster(self, cluster_id: str) -> None:
        ...

    @abstractmethod
    async def get_cluster_ca(self, cluster_id: str) -> ClusterCA:
        ...

    # Users

    @abstractmethod
    async def create_user(self, cluster_id: str, username: str) -> RemoteUser:
        ...

    @abstractmethod
    async def get_user(self, cluster_id: str, username: str) -> RemoteUser:
        ...

    @abstractmethod
    async def delete_user(self, cluster_id: str, username: str) -> None:
        ...

    # Databases

    @abstractmethod
    async def create_database(self, cluster_id: str, name: str) -> RemoteDatabase:
        ...

    @abstractmethod
    async def get_database(self, cluster_id: str, name: str) -> RemoteDatabase:
        ...

    @abstractmethod
    async def delete_database(self, cluster_id: str, name: str) -> None:
        ...

    async def close(self) -> None:
        """Release transport resources."""
        return None
