"""
Unit tests for SQLiteClusterStore.
"""

import dataclasses
import json

import pytest
from conftest import make_app

from myapp_common.errors import (
    AlreadyExistsError,
    ConflictError,
    InvalidError,
    NotFoundError,
)
from myapp_common.models import MyApp, NetworkEndpoint, ResourceKey, Workload
from myapp_controller.synthesizer import new_endpoint, new_workload
from myapp_persistence.sqlite_store import SQLiteClusterStore


class TestSQLiteClusterStore:
    async def test_initialize_creates_tables(self, sqlite_store):
        conn = await sqlite_store._get_connection()
        cursor = await conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
        )
        tables = [row[0] for row in await cursor.fetchall()]
        assert "resources" in tables
        assert "allocations" in tables

    async def test_initialize_is_idempotent(self, sqlite_store):
        await sqlite_store.initialize()

    async def test_create_and_get(self, sqlite_store):
        created = await sqlite_store.create(make_app())

        assert created.metadata.uid
        assert created.metadata.resource_version == "1"

        fetched = await sqlite_store.get(MyApp, ResourceKey("default", "web"))
        assert fetched == created

    async def test_create_does_not_mutate_input(self, sqlite_store):
        app = make_app()
        await sqlite_store.create(app)
        assert app.metadata.uid is None

    async def test_get_missing_returns_none(self, sqlite_store):
        assert await sqlite_store.get(MyApp, ResourceKey("default", "nope")) is None

    async def test_same_name_different_kind_is_independent(self, sqlite_store):
        app = await sqlite_store.create(make_app())
        await sqlite_store.create(new_workload(app))

        assert await sqlite_store.get(NetworkEndpoint, app.key) is None
        assert await sqlite_store.get(Workload, app.key) is not None

    async def test_create_duplicate_raises(self, sqlite_store):
        await sqlite_store.create(make_app())
        with pytest.raises(AlreadyExistsError):
            await sqlite_store.create(make_app(image="other:v1"))

    async def test_list_sorted_and_filtered(self, sqlite_store):
        await sqlite_store.create(make_app(name="b", namespace="ns1"))
        await sqlite_store.create(make_app(name="a", namespace="ns2"))
        await sqlite_store.create(make_app(name="a", namespace="ns1"))

        all_apps = await sqlite_store.list(MyApp)
        assert [str(a.key) for a in all_apps] == ["ns1/a", "ns1/b", "ns2/a"]

        ns2 = await sqlite_store.list(MyApp, "ns2")
        assert [str(a.key) for a in ns2] == ["ns2/a"]

    async def test_update_bumps_resource_version(self, sqlite_store):
        app = await sqlite_store.create(make_app())
        app.spec = dataclasses.replace(app.spec, replica_count=4)

        updated = await sqlite_store.update(app)

        assert updated.metadata.resource_version == "2"
        assert updated.metadata.uid == app.metadata.uid
        fetched = await sqlite_store.get(MyApp, app.key)
        assert fetched.spec.replica_count == 4

    async def test_update_stale_resource_version_conflicts(self, sqlite_store):
        app = await sqlite_store.create(make_app())
        first = await sqlite_store.get(MyApp, app.key)
        second = await sqlite_store.get(MyApp, app.key)

        await sqlite_store.update(first)
        with pytest.raises(ConflictError):
            await sqlite_store.update(second)

    async def test_update_without_resource_version_overwrites(self, sqlite_store):
        app = await sqlite_store.create(make_app())
        await sqlite_store.update(app)

        app.metadata.resource_version = None
        updated = await sqlite_store.update(app)
        assert updated.metadata.resource_version == "3"

    async def test_update_missing_raises(self, sqlite_store):
        with pytest.raises(NotFoundError):
            await sqlite_store.update(make_app())

    async def test_update_preserves_deletion_timestamp(self, sqlite_store):
        app = await sqlite_store.create(make_app())
        conn = await sqlite_store._get_connection()
        marked = app.to_dict()
        marked["metadata"]["deletionTimestamp"] = "2024-01-01T00:00:00Z"
        await conn.execute(
            "UPDATE resources SET manifest = ? WHERE uid = ?",
            (json.dumps(marked), app.metadata.uid),
        )
        await conn.commit()

        current = await sqlite_store.get(MyApp, app.key)
        current.metadata.deletion_timestamp = None
        updated = await sqlite_store.update(current)
        assert updated.is_being_deleted

    async def test_workload_selector_is_immutable(self, sqlite_store):
        app = await sqlite_store.create(make_app())
        workload = await sqlite_store.create(new_workload(app))

        workload.spec.selector = {"app": "other"}
        with pytest.raises(InvalidError, match="selector"):
            await sqlite_store.update(workload)

    async def test_endpoint_gets_cluster_ip(self, sqlite_store):
        app = await sqlite_store.create(make_app())
        endpoint = await sqlite_store.create(new_endpoint(app))

        assert endpoint.spec.cluster_ip == "10.96.0.10"
        api = await sqlite_store.create(make_app(name="api"))
        other = await sqlite_store.create(new_endpoint(api))
        assert other.spec.cluster_ip == "10.96.0.11"

    async def test_endpoint_keeps_requested_cluster_ip(self, sqlite_store):
        app = await sqlite_store.create(make_app())
        endpoint = new_endpoint(app)
        endpoint.spec.cluster_ip = "10.96.1.1"

        created = await sqlite_store.create(endpoint)
        assert created.spec.cluster_ip == "10.96.1.1"

    async def test_endpoint_cluster_ip_is_immutable(self, sqlite_store):
        app = await sqlite_store.create(make_app())
        endpoint = await sqlite_store.create(new_endpoint(app))

        endpoint.spec.cluster_ip = None
        with pytest.raises(InvalidError, match="clusterIP"):
            await sqlite_store.update(endpoint)

    async def test_delete(self, sqlite_store):
        app = await sqlite_store.create(make_app())
        await sqlite_store.delete(MyApp, app.key)
        assert await sqlite_store.get(MyApp, app.key) is None

    async def test_delete_missing_raises(self, sqlite_store):
        with pytest.raises(NotFoundError):
            await sqlite_store.delete(MyApp, ResourceKey("default", "nope"))

    async def test_delete_cascades_to_owned_resources(self, sqlite_store):
        app = await sqlite_store.create(make_app())
        await sqlite_store.create(new_workload(app))
        await sqlite_store.create(new_endpoint(app))
        unrelated = await sqlite_store.create(make_app(name="api"))
        await sqlite_store.create(new_workload(unrelated))

        await sqlite_store.delete(MyApp, app.key)

        assert await sqlite_store.get(Workload, app.key) is None
        assert await sqlite_store.get(NetworkEndpoint, app.key) is None
        assert await sqlite_store.get(Workload, unrelated.key) is not None

    async def test_dangling_owner_reference_is_stored(self, sqlite_store):
        app = make_app()
        app.metadata.uid = "missing-owner"
        workload = await sqlite_store.create(new_workload(app))

        assert workload.metadata.owner_references[0].uid == "missing-owner"

    async def test_data_survives_reopen(self, db_path):
        store = SQLiteClusterStore(db_path)
        await store.initialize()
        await store.create(make_app())
        await store.close()

        reopened = SQLiteClusterStore(db_path)
        await reopened.initialize()
        try:
            fetched = await reopened.get(MyApp, ResourceKey("default", "web"))
            assert fetched.spec.image == "app:v1"
        finally:
            await reopened.close()
