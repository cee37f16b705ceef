"""
Pytest configuration and fixtures.
"""
import asyncio
from typing import Callable, Optional

import pytest

from dbaas_operator.config.settings import Settings
from dbaas_operator.controllers import build_reconcilers
from dbaas_operator.models.resources import (
    ClusterRef,
    Database,
    DatabaseCluster,
    DatabaseClusterReference,
    DatabaseClusterReferenceSpec,
    DatabaseClusterSpec,
    DatabaseClusterStatus,
    DatabaseSpec,
    DatabaseUser,
    DatabaseUserReference,
    DatabaseUserSpec,
    ObjectMeta,
    ResourceKind,
)
from dbaas_operator.services.fake_gateway import FakeGateway
from dbaas_operator.store.memory import InMemoryStore


@pytest.fixture
def test_settings() -> Settings:
    """Settings for testing: in-memory backends and fast backoff."""
    return Settings(
        environment="testing",
        store_backend="memory",
        use_fake_gateway=True,
        backoff_base_delay=0.01,
        backoff_max_delay=0.05,
    )


@pytest.fixture
def finalizer(test_settings: Settings) -> str:
    return test_settings.finalizer_name


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def reconcilers(store, gateway, test_settings):
    return build_reconcilers(store, gateway, test_settings)


@pytest.fixture
def cluster_reconciler(reconcilers):
    return reconcilers[ResourceKind.DATABASE_CLUSTER]


@pytest.fixture
def cluster_reference_reconciler(reconcilers):
    return reconcilers[ResourceKind.DATABASE_CLUSTER_REFERENCE]


@pytest.fixture
def database_reconciler(reconcilers):
    return reconcilers[ResourceKind.DATABASE]


@pytest.fixture
def user_reconciler(reconcilers):
    return reconcilers[ResourceKind.DATABASE_USER]


@pytest.fixture
def user_reference_reconciler(reconcilers):
    return reconcilers[ResourceKind.DATABASE_USER_REFERENCE]


@pytest.fixture
def make_cluster() -> Callable[..., DatabaseCluster]:
    """Factory for DatabaseCluster records."""

    def _make(
        name: str = "sample-cluster",
        namespace: str = "default",
        uuid: str = "",
        cluster_status: str = "",
        finalizers: Optional[list] = None,
        **spec,
    ) -> DatabaseCluster:
        fields = {
            "engine": "mongodb",
            "name": name,
            "version": "6",
            "num_nodes": 1,
            "size": "size-slug",
            "region": "nyc3",
        }
        fields.update(spec)
        return DatabaseCluster(
            metadata=ObjectMeta(name=name, namespace=namespace, finalizers=finalizers or []),
            spec=DatabaseClusterSpec(**fields),
            status=DatabaseClusterStatus(uuid=uuid, status=cluster_status),
        )

    return _make


@pytest.fixture
def make_cluster_reference() -> Callable[..., DatabaseClusterReference]:
    """Factory for DatabaseClusterReference records."""

    def _make(uuid: str, name: str = "existing-cluster", namespace: str = "default") -> DatabaseClusterReference:
        return DatabaseClusterReference(
            metadata=ObjectMeta(name=name, namespace=namespace),
            spec=DatabaseClusterReferenceSpec(uuid=uuid),
        )

    return _make


@pytest.fixture
def make_database() -> Callable[..., Database]:
    """Factory for Database records."""

    def _make(
        name: str = "appdb",
        cluster_name: str = "sample-cluster",
        cluster_kind: str = "DatabaseCluster",
        namespace: str = "default",
    ) -> Database:
        return Database(
            metadata=ObjectMeta(name=name, namespace=namespace),
            spec=DatabaseSpec(cluster=ClusterRef(kind=cluster_kind, name=cluster_name), name=name),
        )

    return _make


@pytest.fixture
def make_user() -> Callable[..., DatabaseUser]:
    """Factory for DatabaseUser records."""

    def _make(
        name: str = "app-user",
        username: str = "appuser",
        cluster_name: str = "sample-cluster",
        cluster_kind: str = "DatabaseCluster",
        namespace: str = "default",
    ) -> DatabaseUser:
        return DatabaseUser(
            metadata=ObjectMeta(name=name, namespace=namespace),
            spec=DatabaseUserSpec(cluster=ClusterRef(kind=cluster_kind, name=cluster_name), username=username),
        )

    return _make


@pytest.fixture
def make_user_reference() -> Callable[..., DatabaseUserReference]:
    """Factory for DatabaseUserReference records."""

    def _make(
        name: str = "admin-user",
        username: str = "admin",
        cluster_name: str = "sample-cluster",
        cluster_kind: str = "DatabaseCluster",
        namespace: str = "default",
    ) -> DatabaseUserReference:
        return DatabaseUserReference(
            metadata=ObjectMeta(name=name, namespace=namespace),
            spec=DatabaseUserSpec(cluster=ClusterRef(kind=cluster_kind, name=cluster_name), username=username),
        )

    return _make


@pytest.fixture
def online_cluster(store, gateway, make_cluster, finalizer):
    """Seed an online remote cluster and a provisioned DatabaseCluster record for it."""

    async def _seed(name: str = "sample-cluster", cluster_status: str = "online"):
        remote = gateway.add_cluster(
            cluster_status=cluster_status,
            name=name,
            engine="mongodb",
            version="6",
            num_nodes=1,
            size="size-slug",
            region="nyc3",
        )
        record = make_cluster(
            name=name,
            uuid=remote.id,
            cluster_status=cluster_status,
            finalizers=[finalizer],
        )
        await store.create(record)
        return remote

    return _seed


async def eventually(predicate, timeout: float = 3.0, interval: float = 0.01):
    """Poll an async predicate until it returns a truthy value."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        value = await predicate()
        if value:
            return value
        if loop.time() >= deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)


@pytest.fixture
def wait_for():
    return eventually
