"""Shared fixtures for MyApp operator tests."""

import os
import tempfile

import pytest
import pytest_asyncio

from myapp_common.models import MyApp, MyAppSpec, ObjectMeta
from myapp_common.store import ClusterStore
from myapp_persistence.sqlite_store import SQLiteClusterStore


def make_app(
    name: str = "web",
    namespace: str = "default",
    image: str = "app:v1",
    replicas: int = 2,
    container_port: int = 8080,
    service_port: int = 80,
) -> MyApp:
    """Build an unsaved MyApp."""
    return MyApp(
        metadata=ObjectMeta(name=name, namespace=namespace),
        spec=MyAppSpec(
            image=image,
            replica_count=replicas,
            container_port=container_port,
            service_port=service_port,
        ),
    )


class RecordingStore(ClusterStore):
    """
    Delegating store that records every call.

    ``calls`` holds (method, kind, key) tuples in call order.
    """

    MUTATING = ("create", "update", "delete")

    def __init__(self, inner: ClusterStore):
        self.inner = inner
        self.calls: list[tuple[str, str, str]] = []

    def reset(self) -> None:
        self.calls.clear()

    def mutating_calls(self) -> list[tuple[str, str, str]]:
        return [c for c in self.calls if c[0] in self.MUTATING]

    async def get(self, kind, key):
        self.calls.append(("get", kind.KIND, str(key)))
        return await self.inner.get(kind, key)

    async def list(self, kind, namespace=None):
        self.calls.append(("list", kind.KIND, namespace or ""))
        return await self.inner.list(kind, namespace)

    async def create(self, obj):
        self.calls.append(("create", obj.KIND, str(obj.key)))
        return await self.inner.create(obj)

    async def update(self, obj):
        self.calls.append(("update", obj.KIND, str(obj.key)))
        return await self.inner.update(obj)

    async def delete(self, kind, key):
        self.calls.append(("delete", kind.KIND, str(key)))
        return await self.inner.delete(kind, key)

    async def initialize(self):
        await self.inner.initialize()

    async def close(self):
        await self.inner.close()


@pytest.fixture
def db_path():
    """Path to a temporary database file, removed afterwards."""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    yield path
    if os.path.exists(path):
        os.unlink(path)


@pytest_asyncio.fixture
async def sqlite_store(db_path):
    """Initialized SQLite cluster store on a temporary file."""
    store = SQLiteClusterStore(db_path)
    await store.initialize()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def store(sqlite_store):
    """Recording wrapper around the SQLite store."""
    return RecordingStore(sqlite_store)
