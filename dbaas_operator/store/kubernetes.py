"""
Kubernetes desired-state store.

Records are the databases.digitalocean.com custom resources, artifacts are
ConfigMaps (connection info) and Secrets (credentials) written with
server-side apply. Deletion timestamps, finalizer-gated removal and cascade
deletion of owned artifacts are provided natively by the API server.
"""
import asyncio
import base64
from typing import Any, AsyncIterator, Dict, List, Optional

import aiohttp
from kubernetes_asyncio import client, config, watch
from kubernetes_asyncio.client.exceptions import ApiException

from dbaas_operator.config.logging import get_logger
from dbaas_operator.config.settings import Settings
from dbaas_operator.exceptions import RecordNotFoundError, StoreError
from dbaas_operator.models.artifacts import ARTIFACT_TYPES, Artifact, ArtifactKind
from dbaas_operator.models.resources import Record, ResourceKey, ResourceKind, record_from_dict
from dbaas_operator.store.base import ResourceStore, WatchEvent
from dbaas_operator.utils.retry import startup_retry

logger = get_logger(__name__)

APPLY_PATCH = "application/apply-patch+yaml"
MERGE_PATCH = "application/merge-patch+json"

# Failures of a single API call: rejections plus connection and timeout errors
API_ERRORS = (ApiException, aiohttp.ClientError, OSError, asyncio.TimeoutError)

# Seconds to wait before re-opening a watch that failed
WATCH_RETRY_DELAY = 5.0


class KubernetesStore(ResourceStore):
    """
    Store backed by the Kubernetes API via kubernetes_asyncio.

    Args:
        settings: Operator settings (API group/version, kubeconfig, namespace)
    """

    def __init__(self, settings: Settings):
        self.group = settings.api_group
        self.version = settings.api_version
        self.resource_api_version = settings.resource_api_version
        self.kubeconfig_path = settings.kubeconfig_path
        self.namespace = settings.watch_namespace
        self.api_client: Optional[client.ApiClient] = None
        self.custom_api: Optional[client.CustomObjectsApi] = None
        self.core_api: Optional[client.CoreV1Api] = None

    @startup_retry(max_attempts=10, initial_delay=2.0, max_delay=30.0)
    async def connect(self) -> None:
        """Load cluster credentials and verify the API server answers."""
        configuration = client.Configuration()
        if self.kubeconfig_path:
            await config.load_kube_config(
                config_file=self.kubeconfig_path,
                client_configuration=configuration,
            )
        else:
            config.load_incluster_config(client_configuration=configuration)

        self.api_client = client.ApiClient(configuration=configuration)
        self.custom_api = client.CustomObjectsApi(self.api_client)
        self.core_api = client.CoreV1Api(self.api_client)

        version = await client.VersionApi(self.api_client).get_code()
        logger.info(
            "kubernetes_store_connected",
            host=configuration.host,
            server_version=version.git_version,
            namespace=self.namespace or "*",
        )

    async def close(self) -> None:
        if self.api_client is not None:
            await self.api_client.close()
            self.api_client = None
            logger.info("kubernetes_store_closed")

    async def ping(self) -> bool:
        if self.api_client is None:
            return False
        try:
            await client.VersionApi(self.api_client).get_code()
            return True
        except API_ERRORS as e:
            logger.error("kubernetes_ping_failed", error=str(e))
            return False

    def _raise(self, e: Exception, kind: str, namespace: str, name: str, action: str):
        if isinstance(e, ApiException):
            if e.status == 404:
                raise RecordNotFoundError(kind, namespace, name) from e
            status, reason = e.status, e.reason
        else:
            status, reason = None, f"{type(e).__name__}: {e}"
        raise StoreError(
            f"failed to {action} {kind} '{namespace}/{name}': {reason}",
            details={"status": status, "kind": kind, "namespace": namespace, "name": name},
        ) from e

    def _crd_args(self, kind: ResourceKind) -> Dict[str, str]:
        return {"group": self.group, "version": self.version, "plural": kind.plural}

    # Records

    async def get(self, kind: ResourceKind, namespace: str, name: str) -> Record:
        try:
            obj = await self.custom_api.get_namespaced_custom_object(
                namespace=namespace, name=name, **self._crd_args(kind)
            )
        except API_ERRORS as e:
            self._raise(e, kind.value, namespace, name, "get")
        return record_from_dict(kind, obj)

    async def list(self, kind: ResourceKind, namespace: Optional[str] = None) -> List[Record]:
        namespace = namespace or self.namespace
        try:
            if namespace:
                result = await self.custom_api.list_namespaced_custom_object(
                    namespace=namespace, **self._crd_args(kind)
                )
            else:
                result = await self.custom_api.list_cluster_custom_object(**self._crd_args(kind))
        except API_ERRORS as e:
            raise StoreError(
                f"failed to list {kind.value}: {getattr(e, 'reason', None) or e}",
                details={"status": getattr(e, "status", None)},
            ) from e
        return [record_from_dict(kind, item) for item in result.get("items", [])]

    async def watch(self, kind: ResourceKind) -> AsyncIterator[WatchEvent]:
        while True:
            if self.namespace:
                list_fn = self.custom_api.list_namespaced_custom_object
                args = {"namespace": self.namespace, **self._crd_args(kind)}
            else:
                list_fn = self.custom_api.list_cluster_custom_object
                args = self._crd_args(kind)

            try:
                async with watch.Watch() as w:
                    async for event in w.stream(list_fn, **args):
                        obj = event["object"]
                        metadata = obj.get("metadata", {}) if isinstance(obj, dict) else {}
                        if not metadata.get("name"):
                            continue
                        yield WatchEvent(
                            type=event["type"],
                            kind=kind,
                            key=ResourceKey(metadata.get("namespace", "default"), metadata["name"]),
                        )
                logger.debug("watch_stream_ended", kind=kind.value)
            except ApiException as e:
                logger.warning("watch_stream_failed", kind=kind.value, status=e.status, error=e.reason)
                await asyncio.sleep(WATCH_RETRY_DELAY)
            except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as e:
                logger.warning("watch_stream_failed", kind=kind.value, error_type=type(e).__name__, error=str(e))
                await asyncio.sleep(WATCH_RETRY_DELAY)

    async def create(self, record: Record) -> Record:
        body = {
            "apiVersion": self.resource_api_version,
            "kind": record.kind,
            "metadata": {
                "name": record.name,
                "namespace": record.namespace,
                "labels": record.metadata.labels,
            },
            "spec": record.spec.to_dict(),
        }
        try:
            obj = await self.custom_api.create_namespaced_custom_object(
                namespace=record.namespace, body=body, **self._crd_args(record.KIND)
            )
        except API_ERRORS as e:
            self._raise(e, record.kind, record.namespace, record.name, "create")
        return record_from_dict(record.KIND, obj)

    async def delete(self, kind: ResourceKind, namespace: str, name: str) -> None:
        try:
            await self.custom_api.delete_namespaced_custom_object(
                namespace=namespace, name=name, **self._crd_args(kind)
            )
        except API_ERRORS as e:
            self._raise(e, kind.value, namespace, name, "delete")

    async def patch_status(self, record: Record) -> Record:
        try:
            obj = await self.custom_api.patch_namespaced_custom_object_status(
                namespace=record.namespace,
                name=record.name,
                body={"status": record.status.to_dict()},
                _content_type=MERGE_PATCH,
                **self._crd_args(record.KIND),
            )
        except API_ERRORS as e:
            self._raise(e, record.kind, record.namespace, record.name, "patch status of")
        return record_from_dict(record.KIND, obj)

    async def patch_finalizers(self, record: Record) -> Record:
        try:
            obj = await self.custom_api.patch_namespaced_custom_object(
                namespace=record.namespace,
                name=record.name,
                body={"metadata": {"finalizers": list(record.metadata.finalizers)}},
                _content_type=MERGE_PATCH,
                **self._crd_args(record.KIND),
            )
        except API_ERRORS as e:
            self._raise(e, record.kind, record.namespace, record.name, "patch finalizers of")
        return record_from_dict(record.KIND, obj)

    # Artifacts

    def _artifact_body(self, artifact: Artifact) -> Dict[str, Any]:
        metadata = artifact.metadata
        body: Dict[str, Any] = {
            "apiVersion": "v1",
            "kind": artifact.ARTIFACT_KIND.value,
            "metadata": {
                "name": metadata.name,
                "namespace": metadata.namespace,
                "labels": metadata.labels,
                "ownerReferences": [ref.to_dict() for ref in metadata.owner_references],
            },
        }
        if artifact.ARTIFACT_KIND == ArtifactKind.SECRET:
            body["stringData"] = artifact.data
        else:
            body["data"] = artifact.data
        return body

    async def apply_artifact(self, artifact: Artifact, field_manager: str) -> Artifact:
        metadata = artifact.metadata
        patch = (
            self.core_api.patch_namespaced_secret
            if artifact.ARTIFACT_KIND == ArtifactKind.SECRET
            else self.core_api.patch_namespaced_config_map
        )
        try:
            obj = await patch(
                name=metadata.name,
                namespace=metadata.namespace,
                body=self._artifact_body(artifact),
                field_manager=field_manager,
                force=True,
                _content_type=APPLY_PATCH,
            )
        except API_ERRORS as e:
            self._raise(e, artifact.ARTIFACT_KIND.value, metadata.namespace, metadata.name, "apply")
        return self._artifact_from_object(artifact.ARTIFACT_KIND, obj)

    async def get_artifact(self, kind: ArtifactKind, namespace: str, name: str) -> Artifact:
        read = (
            self.core_api.read_namespaced_secret
            if kind == ArtifactKind.SECRET
            else self.core_api.read_namespaced_config_map
        )
        try:
            obj = await read(name=name, namespace=namespace)
        except API_ERRORS as e:
            self._raise(e, kind.value, namespace, name, "get")
        return self._artifact_from_object(kind, obj)

    def _artifact_from_object(self, kind: ArtifactKind, obj) -> Artifact:
        data = dict(obj.data or {})
        if kind == ArtifactKind.SECRET:
            data = {key: base64.b64decode(value).decode("utf-8") for key, value in data.items()}
        metadata = self.api_client.sanitize_for_serialization(obj.metadata)
        return ARTIFACT_TYPES[kind].model_validate({"metadata": metadata, "data": data})
