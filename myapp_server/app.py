import logging
import os
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Response
from pydantic import BaseModel, Field

from myapp_common.errors import AlreadyExistsError, ConflictError, InvalidError, NotFoundError
from myapp_common.models import (
    MyApp,
    MyAppSpec,
    NetworkEndpoint,
    ObjectMeta,
    ResourceKey,
    Workload,
)
from myapp_common.store import ClusterStore
from myapp_persistence.sqlite_store import SQLiteClusterStore

logger = logging.getLogger(__name__)

# Global instance (initialized at startup)
store: ClusterStore | None = None


def get_database_path() -> str:
    """
    Get the database path from environment or use default.

    Environment variables:
    - MYAPP_DB_PATH: Custom database path (useful for testing)
    """
    return os.environ.get("MYAPP_DB_PATH", "myapp_cluster.db")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI app.

    - Startup: Open the SQLite cluster store and ensure its schema
    - Shutdown: Close the store
    """
    global store

    store = SQLiteClusterStore(get_database_path())
    await store.initialize()

    yield

    if store:
        await store.close()
        store = None


app = FastAPI(title="MyApp API", lifespan=lifespan)


def get_store() -> ClusterStore:
    """
    Get the global store instance.

    Raises:
        RuntimeError: If the store is not initialized
    """
    if store is None:
        raise RuntimeError("Cluster store not initialized")
    return store


class MyAppSpecBody(BaseModel):
    """Request body for PUT /apps/{namespace}/{name}."""

    image: str = Field(..., min_length=1)
    replicaCount: int = Field(..., ge=0, strict=True)
    containerPort: int = Field(..., ge=1, le=65535, strict=True)
    servicePort: int = Field(..., ge=1, le=65535, strict=True)

    def to_spec(self) -> MyAppSpec:
        return MyAppSpec.from_dict(self.model_dump())


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (ConflictError, AlreadyExistsError)):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, InvalidError):
        return HTTPException(status_code=422, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/apps")
async def list_apps(
    namespace: str | None = None,
    cluster: ClusterStore = Depends(get_store),
) -> list[dict[str, Any]]:
    """List MyApps, optionally filtered by namespace."""
    apps = await cluster.list(MyApp, namespace)
    return [a.to_dict() for a in apps]


@app.get("/apps/{namespace}/{name}")
async def get_app(
    namespace: str,
    name: str,
    cluster: ClusterStore = Depends(get_store),
) -> dict[str, Any]:
    """
    Get one MyApp.

    Raises:
        HTTPException: 404 if the app does not exist
    """
    obj = await cluster.get(MyApp, ResourceKey(namespace, name))
    if obj is None:
        raise HTTPException(status_code=404, detail="MyApp not found")
    return obj.to_dict()


@app.put("/apps/{namespace}/{name}")
async def apply_app(
    namespace: str,
    name: str,
    body: MyAppSpecBody,
    response: Response,
    cluster: ClusterStore = Depends(get_store),
) -> dict[str, Any]:
    """
    Create a MyApp or replace the spec of an existing one.

    Annotations on an existing app (including the applied-spec snapshot)
    are kept; the controller notices the new spec on its next pass.

    Returns:
        The stored MyApp (201 when created, 200 when updated)
    """
    key = ResourceKey(namespace, name)
    spec = body.to_spec()

    try:
        existing = await cluster.get(MyApp, key)
        if existing is None:
            stored = await cluster.create(
                MyApp(metadata=ObjectMeta(name=name, namespace=namespace), spec=spec)
            )
            response.status_code = 201
            logger.info(f"Created MyApp {key}")
        else:
            existing.spec = spec
            stored = await cluster.update(existing)
            logger.info(f"Updated spec of MyApp {key}")
    except (NotFoundError, ConflictError, AlreadyExistsError, InvalidError) as e:
        raise _http_error(e) from e

    return stored.to_dict()


@app.delete("/apps/{namespace}/{name}")
async def delete_app(
    namespace: str,
    name: str,
    cluster: ClusterStore = Depends(get_store),
) -> dict[str, str]:
    """
    Delete a MyApp. Its Deployment and Service are removed with it.

    Raises:
        HTTPException: 404 if the app does not exist
    """
    key = ResourceKey(namespace, name)
    try:
        await cluster.delete(MyApp, key)
    except NotFoundError as e:
        raise _http_error(e) from e
    logger.info(f"Deleted MyApp {key}")
    return {"deleted": str(key)}


@app.get("/apps/{namespace}/{name}/status")
async def app_status(
    namespace: str,
    name: str,
    cluster: ClusterStore = Depends(get_store),
) -> dict[str, Any]:
    """
    Get a MyApp together with its dependents.

    Returns:
        Dictionary with app, workload and endpoint manifests (null if absent)
        and ``synced``: whether the applied-spec snapshot matches the spec
    """
    key = ResourceKey(namespace, name)
    obj = await cluster.get(MyApp, key)
    if obj is None:
        raise HTTPException(status_code=404, detail="MyApp not found")

    workload = await cluster.get(Workload, key)
    endpoint = await cluster.get(NetworkEndpoint, key)
    return {
        "app": obj.to_dict(),
        "workload": workload.to_dict() if workload else None,
        "endpoint": endpoint.to_dict() if endpoint else None,
        "synced": obj.applied_snapshot == obj.spec.to_json(),
    }
