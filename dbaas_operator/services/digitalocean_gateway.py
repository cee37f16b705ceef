"""
DigitalOcean Gateway - httpx client for the /v2/databases API.

Each method issues exactly one request. Nothing is retried here: a failed
call propagates to the reconciler, and retry happens by re-invoking the
reconcile with backoff.
"""
import base64
import binascii
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from dbaas_operator.config.logging import get_logger
from dbaas_operator.exceptions import GatewayError, ResourceNotFoundError
from dbaas_operator.models.provisioning import (
    ClusterCA,
    ClusterCreateRequest,
    ClusterResizeRequest,
    RemoteCluster,
    RemoteDatabase,
    RemoteUser,
)
from dbaas_operator.services import metrics
from dbaas_operator.services.gateway import ProvisioningGateway

logger = get_logger(__name__)


class DigitalOceanGateway(ProvisioningGateway):
    """
    Provisioning gateway backed by the DigitalOcean public API.

    Args:
        token: API token sent as a bearer token
        base_url: API base URL (e.g. https://api.digitalocean.com)
        timeout: Per-request timeout in seconds
        user_agent: User-Agent header value
        transport: Optional httpx transport (used by tests)
    """

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.digitalocean.com",
        timeout: float = 30.0,
        user_agent: str = "dbaas-operator",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "User-Agent": user_agent,
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        resource: str,
        resource_id: str,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Send one request and decode the JSON body.

        Raises:
            ResourceNotFoundError: If the API answered 404
            GatewayError: On transport failures and any other non-2xx answer
        """
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.HTTPError as e:
            metrics.gateway_requests_total.labels(operation=operation, outcome="transport_error").inc()
            logger.warning(
                "gateway_request_failed",
                operation=operation,
                path=path,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise GatewayError(f"{operation} failed: {e}") from e

        if response.status_code == httpx.codes.NOT_FOUND:
            metrics.gateway_requests_total.labels(operation=operation, outcome="not_found").inc()
            raise ResourceNotFoundError(resource, resource_id)

        if response.is_error:
            metrics.gateway_requests_total.labels(operation=operation, outcome="error").inc()
            error_id, message = self._parse_error(response)
            logger.warning(
                "gateway_request_rejected",
                operation=operation,
                path=path,
                status_code=response.status_code,
                error_id=error_id,
                error=message,
            )
            raise GatewayError(
                f"{operation} failed: {message}",
                status_code=response.status_code,
                error_id=error_id,
                details={"operation": operation, "path": path},
            )

        metrics.gateway_requests_total.labels(operation=operation, outcome="success").inc()
        if response.status_code == httpx.codes.NO_CONTENT or not response.content:
            return {}
        return response.json()

    @staticmethod
    def _parse_error(response: httpx.Response):
        """Extract (error_id, message) from an API error body."""
        try:
            body = response.json()
        except ValueError:
            return None, response.text or response.reason_phrase
        if not isinstance(body, dict):
            return None, response.reason_phrase
        return body.get("id"), body.get("message") or response.reason_phrase

    # Clusters

    async def create_cluster(self, request: ClusterCreateRequest) -> RemoteCluster:
        body = await self._request(
            "create_cluster", "POST", "/v2/databases", "cluster", request.name,
            json=request.model_dump(),
        )
        return RemoteCluster.model_validate(body["database"])

    async def get_cluster(self, cluster_id: str) -> RemoteCluster:
        body = await self._request(
            "get_cluster", "GET", f"/v2/databases/{quote(cluster_id)}", "cluster", cluster_id,
        )
        return RemoteCluster.model_validate(body["database"])

    async def resize_cluster(self, cluster_id: str, request: ClusterResizeRequest) -> None:
        await self._request(
            "resize_cluster", "PUT", f"/v2/databases/{quote(cluster_id)}/resize", "cluster", cluster_id,
            json=request.model_dump(),
        )

    async def delete_cluster(self, cluster_id: str) -> None:
        await self._request(
            "delete_cluster", "DELETE", f"/v2/databases/{quote(cluster_id)}", "cluster", cluster_id,
        )

    async def get_cluster_ca(self, cluster_id: str) -> ClusterCA:
        body = await self._request(
            "get_cluster_ca", "GET", f"/v2/databases/{quote(cluster_id)}/ca", "cluster", cluster_id,
        )
        encoded = body.get("ca", {}).get("certificate", "")
        try:
            certificate = base64.b64decode(encoded).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise GatewayError(f"get_cluster_ca returned an undecodable certificate: {e}") from e
        return ClusterCA(certificate=certificate)

    # Users

    async def create_user(self, cluster_id: str, username: str) -> RemoteUser:
        body = await self._request(
            "create_user", "POST", f"/v2/databases/{quote(cluster_id)}/users", "cluster", cluster_id,
            json={"name": username},
        )
        return RemoteUser.model_validate(body["user"])

    async def get_user(self, cluster_id: str, username: str) -> RemoteUser:
        body = await self._request(
            "get_user", "GET", f"/v2/databases/{quote(cluster_id)}/users/{quote(username, safe='')}",
            "user", f"{cluster_id}/{username}",
        )
        return RemoteUser.model_validate(body["user"])

    async def delete_user(self, cluster_id: str, username: str) -> None:
        await self._request(
            "delete_user", "DELETE", f"/v2/databases/{quote(cluster_id)}/users/{quote(username, safe='')}",
            "user", f"{cluster_id}/{username}",
        )

    # Databases

    async def create_database(self, cluster_id: str, name: str) -> RemoteDatabase:
        body = await self._request(
            "create_database", "POST", f"/v2/databases/{quote(cluster_id)}/dbs", "cluster", cluster_id,
            json={"name": name},
        )
        return RemoteDatabase.model_validate(body["db"])

    async def get_database(self, cluster_id: str, name: str) -> RemoteDatabase:
        body = await self._request(
            "get_database", "GET", f"/v2/databases/{quote(cluster_id)}/dbs/{quote(name, safe='')}",
            "database", f"{cluster_id}/{name}",
        )
        return RemoteDatabase.model_validate(body["db"])

    async def delete_database(self, cluster_id: str, name: str) -> None:
        await self._request(
            "delete_database", "DELETE", f"/v2/databases/{quote(cluster_id)}/dbs/{quote(name, safe='')}",
            "database", f"{cluster_id}/{name}",
        )
