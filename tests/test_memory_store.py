"""
Tests for the in-memory desired-state store.
"""
import pytest

from dbaas_operator.exceptions import RecordNotFoundError, StoreError
from dbaas_operator.models.artifacts import ArtifactKind, ConnectionArtifact
from dbaas_operator.models.resources import ObjectMeta, OwnerReference, ResourceKind
from dbaas_operator.store.base import ADDED, DELETED, MODIFIED

KIND = ResourceKind.DATABASE_CLUSTER


def _owned_artifact(owner) -> ConnectionArtifact:
    return ConnectionArtifact(
        metadata=ObjectMeta(
            name=f"{owner.name}-connection",
            namespace=owner.namespace,
            owner_references=[
                OwnerReference(api_version=owner.api_version, kind=owner.kind, name=owner.name, uid=owner.metadata.uid)
            ],
        ),
        data={"host": "host"},
    )


@pytest.mark.asyncio
async def test_create_rejects_duplicates(store, make_cluster):
    await store.create(make_cluster())

    with pytest.raises(StoreError):
        await store.create(make_cluster())


@pytest.mark.asyncio
async def test_reads_are_copies(store, make_cluster):
    """Test mutating a loaded record does not change the store."""
    await store.create(make_cluster())

    record = await store.get(KIND, "default", "sample-cluster")
    record.status.uuid = "changed"
    record.metadata.finalizers.append("x")

    stored = await store.get(KIND, "default", "sample-cluster")
    assert stored.status.uuid == ""
    assert stored.metadata.finalizers == []


@pytest.mark.asyncio
async def test_list_filters_by_namespace(store, make_cluster):
    await store.create(make_cluster(name="a", namespace="one"))
    await store.create(make_cluster(name="b", namespace="two"))

    assert [r.name for r in await store.list(KIND)] == ["a", "b"]
    assert [r.name for r in await store.list(KIND, namespace="two")] == ["b"]


@pytest.mark.asyncio
async def test_delete_without_finalizers_removes_and_cascades(store, make_cluster):
    owner = await store.create(make_cluster())
    await store.apply_artifact(_owned_artifact(owner), "test")

    await store.delete(KIND, "default", "sample-cluster")

    with pytest.raises(RecordNotFoundError):
        await store.get(KIND, "default", "sample-cluster")
    assert store.list_artifacts() == []


@pytest.mark.asyncio
async def test_finalizers_gate_removal(store, make_cluster):
    """Test a finalized record is only marked, and removed when its finalizers are cleared."""
    owner = await store.create(make_cluster(finalizers=["example.com/finalizer"]))
    await store.apply_artifact(_owned_artifact(owner), "test")

    await store.delete(KIND, "default", "sample-cluster")

    record = await store.get(KIND, "default", "sample-cluster")
    assert record.in_deletion
    assert len(store.list_artifacts()) == 1

    record.metadata.finalizers = []
    await store.patch_finalizers(record)

    with pytest.raises(RecordNotFoundError):
        await store.get(KIND, "default", "sample-cluster")
    assert store.list_artifacts() == []


@pytest.mark.asyncio
async def test_patch_status_only_touches_status(store, make_cluster):
    await store.create(make_cluster())
    record = await store.get(KIND, "default", "sample-cluster")
    record.status.uuid = "cluster-1"
    record.spec.num_nodes = 5
    record.metadata.finalizers = ["example.com/finalizer"]

    await store.patch_status(record)

    stored = await store.get(KIND, "default", "sample-cluster")
    assert stored.status.uuid == "cluster-1"
    assert stored.spec.num_nodes == 1
    assert stored.metadata.finalizers == []


@pytest.mark.asyncio
async def test_every_write_bumps_resource_version(store, make_cluster):
    created = await store.create(make_cluster())
    record = await store.get(KIND, "default", "sample-cluster")
    record.status.status = "online"

    patched = await store.patch_status(record)

    assert int(patched.metadata.resource_version) > int(created.metadata.resource_version)


@pytest.mark.asyncio
async def test_watch_reports_existing_then_changes(store, make_cluster):
    """Test a watcher sees existing records first, then later changes."""
    await store.create(make_cluster(name="existing"))
    events = store.watch(KIND)

    first = await events.__anext__()
    assert (first.type, first.key.name) == (ADDED, "existing")

    await store.create(make_cluster(name="new"))
    await store.delete(KIND, "default", "existing")
    record = await store.get(KIND, "default", "new")
    record.status.status = "online"
    await store.patch_status(record)

    observed = [await events.__anext__() for _ in range(3)]
    await events.aclose()

    assert [(e.type, e.key.name) for e in observed] == [
        (ADDED, "new"),
        (DELETED, "existing"),
        (MODIFIED, "new"),
    ]


@pytest.mark.asyncio
async def test_get_missing_artifact(store):
    with pytest.raises(RecordNotFoundError):
        await store.get_artifact(ArtifactKind.SECRET, "default", "nothing")


def _artifact(**data) -> ConnectionArtifact:
    return ConnectionArtifact(metadata=ObjectMeta(name="shared", namespace="default"), data=data)


@pytest.mark.asyncio
async def test_apply_removes_keys_the_manager_stopped_sending(store):
    await store.apply_artifact(_artifact(host="host", private_host="private-host"), "dbaas-operator")

    applied = await store.apply_artifact(_artifact(host="host"), "dbaas-operator")

    assert applied.data == {"host": "host"}


@pytest.mark.asyncio
async def test_apply_keeps_keys_owned_by_others(store):
    """Test manual edits and other managers' keys survive an apply that omits them."""
    await store.apply_artifact(_artifact(host="host", port="25060"), "dbaas-operator")
    await store.apply_artifact(_artifact(owner="platform-team"), "other-tool")
    current = await store.get_artifact(ArtifactKind.CONFIG_MAP, "default", "shared")
    store.put_artifact(ArtifactKind.CONFIG_MAP, "default", "shared", {**current.data, "port": "5432", "note": "kept"})

    applied = await store.apply_artifact(_artifact(host="host"), "dbaas-operator")

    assert applied.data == {"host": "host", "port": "5432", "owner": "platform-team", "note": "kept"}
    assert store.field_manager_of(ArtifactKind.CONFIG_MAP, "default", "shared") == "dbaas-operator"
