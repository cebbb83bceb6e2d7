"""
SQLite implementation of the cluster store.

Uses aiosqlite for async operations. Behaves like a minimal API server:
assigns uids, resource versions and Service cluster IPs, enforces
optimistic concurrency and immutable fields, and cascades deletion of
owned resources through a foreign key.
"""

import asyncio
import ipaddress
import json
import logging
import uuid

import aiosqlite

from myapp_common.errors import (
    AlreadyExistsError,
    ConflictError,
    InvalidError,
    NotFoundError,
)
from myapp_common.models import NetworkEndpoint, Resource, ResourceKey, Workload
from myapp_common.store import ClusterStore, R

logger = logging.getLogger(__name__)

SERVICE_CIDR = ipaddress.ip_network("10.96.0.0/12")

# Low addresses are reserved for cluster infrastructure services.
FIRST_ALLOCATABLE_OFFSET = 10


class SQLiteClusterStore(ClusterStore):
    """
    SQLite-based cluster store implementation.

    Uses a single database file with two tables:
    - resources: One row per object (kind, namespace, name) holding its manifest
    - allocations: Counters for server-assigned values (cluster IPs)
    """

    def __init__(self, db_path: str = "myapp_cluster.db"):
        """
        Initialize the SQLite store.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = db_path
        self._connection: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create database connection."""
        if self._connection is None:
            self._connection = await aiosqlite.connect(self.db_path)
            # Ownership cascade relies on foreign key enforcement
            await self._connection.execute("PRAGMA foreign_keys = ON")
        return self._connection

    async def initialize(self) -> None:
        """
        Create database tables if they don't exist.

        Schema:
        - resources table: manifests keyed by uid, unique per (kind, namespace, name),
          with owner_uid referencing the controlling resource
        - allocations table: named monotonically increasing counters
        """
        conn = await self._get_connection()

        await conn.execute("""
            CREATE TABLE IF NOT EXISTS resources (
                uid TEXT PRIMARY KEY,
                kind TEXT NOT NULL,
                namespace TEXT NOT NULL,
                name TEXT NOT NULL,
                resource_version INTEGER NOT NULL,
                owner_uid TEXT,
                manifest TEXT NOT NULL,
                UNIQUE (kind, namespace, name),
                FOREIGN KEY (owner_uid) REFERENCES resources(uid) ON DELETE CASCADE
            )
        """)

        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_resources_owner_uid
            ON resources(owner_uid)
        """)

        await conn.execute("""
            CREATE TABLE IF NOT EXISTS allocations (
                name TEXT PRIMARY KEY,
                value INTEGER NOT NULL
            )
        """)

        await conn.commit()

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    def _from_row(self, kind: type[R], row: tuple) -> R:
        uid, resource_version, manifest = row
        obj = kind.from_dict(json.loads(manifest))
        obj.metadata.uid = uid
        obj.metadata.resource_version = str(resource_version)
        return obj

    async def get(self, kind: type[R], key: ResourceKey) -> R | None:
        conn = await self._get_connection()

        cursor = await conn.execute(
            "SELECT uid, resource_version, manifest FROM resources "
            "WHERE kind = ? AND namespace = ? AND name = ?",
            (kind.KIND, key.namespace, key.name),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._from_row(kind, row)

    async def list(self, kind: type[R], namespace: str | None = None) -> list[R]:
        conn = await self._get_connection()

        if namespace:
            cursor = await conn.execute(
                "SELECT uid, resource_version, manifest FROM resources "
                "WHERE kind = ? AND namespace = ? ORDER BY namespace, name",
                (kind.KIND, namespace),
            )
        else:
            cursor = await conn.execute(
                "SELECT uid, resource_version, manifest FROM resources "
                "WHERE kind = ? ORDER BY namespace, name",
                (kind.KIND,),
            )
        rows = await cursor.fetchall()
        return [self._from_row(kind, row) for row in rows]

    async def _allocate_cluster_ip(self, conn: aiosqlite.Connection) -> str:
        cursor = await conn.execute(
            "SELECT value FROM allocations WHERE name = 'cluster_ip'"
        )
        row = await cursor.fetchone()
        offset = row[0] + 1 if row else FIRST_ALLOCATABLE_OFFSET
        if offset >= SERVICE_CIDR.num_addresses - 1:
            raise InvalidError(f"Service CIDR {SERVICE_CIDR} exhausted")

        await conn.execute(
            "INSERT INTO allocations (name, value) VALUES ('cluster_ip', ?) "
            "ON CONFLICT(name) DO UPDATE SET value = excluded.value",
            (offset,),
        )
        return str(SERVICE_CIDR.network_address + offset)

    async def _resolve_owner_uid(
        self, conn: aiosqlite.Connection, obj: Resource
    ) -> str | None:
        """Owner uid for the cascade, if the controlling owner is stored."""
        for ref in obj.metadata.owner_references:
            if not ref.controller or ref.uid is None:
                continue
            cursor = await conn.execute(
                "SELECT 1 FROM resources WHERE uid = ?", (ref.uid,)
            )
            if await cursor.fetchone() is not None:
                return ref.uid
        return None

    async def create(self, obj: R) -> R:
        conn = await self._get_connection()

        async with self._write_lock:
            key = obj.key
            cursor = await conn.execute(
                "SELECT 1 FROM resources WHERE kind = ? AND namespace = ? AND name = ?",
                (obj.KIND, key.namespace, key.name),
            )
            if await cursor.fetchone() is not None:
                raise AlreadyExistsError(f"{obj.KIND} {key} already exists")

            stored = type(obj).from_dict(obj.to_dict())
            stored.metadata.uid = str(uuid.uuid4())
            stored.metadata.resource_version = "1"
            stored.metadata.deletion_timestamp = None

            try:
                if isinstance(stored, NetworkEndpoint) and stored.spec.cluster_ip is None:
                    stored.spec.cluster_ip = await self._allocate_cluster_ip(conn)
                owner_uid = await self._resolve_owner_uid(conn, stored)

                await conn.execute(
                    """
                    INSERT INTO resources (uid, kind, namespace, name, resource_version, owner_uid, manifest)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        stored.metadata.uid,
                        stored.KIND,
                        key.namespace,
                        key.name,
                        1,
                        owner_uid,
                        json.dumps(stored.to_dict()),
                    ),
                )
                await conn.commit()
            except aiosqlite.IntegrityError as e:
                await conn.rollback()
                raise AlreadyExistsError(f"{obj.KIND} {key} already exists: {e}") from e
            except Exception:
                await conn.rollback()
                raise

        logger.debug(f"Created {stored.KIND} {key} (uid={stored.metadata.uid})")
        return stored

    def _check_immutable(self, current: Resource, new: Resource) -> None:
        if isinstance(current, Workload) and isinstance(new, Workload):
            if new.spec.selector != current.spec.selector:
                raise InvalidError(
                    f"Deployment {current.key}: spec.selector: field is immutable"
                )
        if isinstance(current, NetworkEndpoint) and isinstance(new, NetworkEndpoint):
            if new.spec.cluster_ip != current.spec.cluster_ip:
                raise InvalidError(
                    f"Service {current.key}: spec.clusterIP: field is immutable"
                )

    async def update(self, obj: R) -> R:
        conn = await self._get_connection()
        key = obj.key

        async with self._write_lock:
            cursor = await conn.execute(
                "SELECT uid, resource_version, manifest FROM resources "
                "WHERE kind = ? AND namespace = ? AND name = ?",
                (obj.KIND, key.namespace, key.name),
            )
            row = await cursor.fetchone()
            if row is None:
                raise NotFoundError(f"{obj.KIND} {key} not found")

            current = self._from_row(type(obj), row)
            if (
                obj.metadata.resource_version is not None
                and obj.metadata.resource_version != current.metadata.resource_version
            ):
                raise ConflictError(
                    f"{obj.KIND} {key}: the object has been modified "
                    f"(resourceVersion {obj.metadata.resource_version} != "
                    f"{current.metadata.resource_version})"
                )
            self._check_immutable(current, obj)

            stored = type(obj).from_dict(obj.to_dict())
            stored.metadata.uid = current.metadata.uid
            stored.metadata.resource_version = str(int(current.metadata.resource_version) + 1)
            stored.metadata.deletion_timestamp = current.metadata.deletion_timestamp

            try:
                owner_uid = await self._resolve_owner_uid(conn, stored)
                await conn.execute(
                    "UPDATE resources SET resource_version = ?, owner_uid = ?, manifest = ? "
                    "WHERE uid = ?",
                    (
                        int(stored.metadata.resource_version),
                        owner_uid,
                        json.dumps(stored.to_dict()),
                        stored.metadata.uid,
                    ),
                )
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise

        logger.debug(
            f"Updated {stored.KIND} {key} to resourceVersion {stored.metadata.resource_version}"
        )
        return stored

    async def delete(self, kind: type[R], key: ResourceKey) -> None:
        conn = await self._get_connection()

        async with self._write_lock:
            cursor = await conn.execute(
                "DELETE FROM resources WHERE kind = ? AND namespace = ? AND name = ?",
                (kind.KIND, key.namespace, key.name),
            )
            await conn.commit()
            if cursor.rowcount == 0:
                raise NotFoundError(f"{kind.KIND} {key} not found")

        logger.debug(f"Deleted {kind.KIND} {key}")
