"""
Abstract cluster store interface.

This module defines the contract that any cluster state backend must follow,
allowing the reconciler to run against a real Kubernetes API server or the
SQLite-backed local store without change.
"""

from abc import ABC, abstractmethod
from typing import TypeVar

from .models import Resource, ResourceKey

R = TypeVar("R", bound=Resource)


class ClusterStore(ABC):
    """
    Abstract base class for cluster state operations.

    The store is the single source of truth and the only serialization point
    between concurrent reconciles. Implementations must be async-safe and
    handle their own connection management.
    """

    @abstractmethod
    async def get(self, kind: type[R], key: ResourceKey) -> R | None:
        """
        Retrieve a resource by kind and key.

        Args:
            kind: Resource class (MyApp, Workload or NetworkEndpoint)
            key: Namespace-qualified name

        Returns:
            The resource if found, None otherwise

        Raises:
            StoreError: On any failure other than NotFound
        """
        pass

    @abstractmethod
    async def list(self, kind: type[R], namespace: str | None = None) -> list[R]:
        """
        List resources of a kind, optionally restricted to one namespace.

        Returns:
            Resources ordered by key
        """
        pass

    @abstractmethod
    async def create(self, obj: R) -> R:
        """
        Create a resource.

        Args:
            obj: Resource to persist (uid and resourceVersion are ignored)

        Returns:
            The stored resource with server-assigned fields populated

        Raises:
            AlreadyExistsError: If a resource with the same kind and key exists
        """
        pass

    @abstractmethod
    async def update(self, obj: R) -> R:
        """
        Replace a resource.

        Args:
            obj: Resource carrying the resourceVersion it was read at

        Returns:
            The stored resource with the new resourceVersion

        Raises:
            NotFoundError: If the resource does not exist
            ConflictError: If the resourceVersion is stale
            InvalidError: If an immutable field was changed
        """
        pass

    @abstractmethod
    async def delete(self, kind: type[R], key: ResourceKey) -> None:
        """
        Delete a resource.

        Raises:
            NotFoundError: If the resource does not exist
        """
        pass

    @abstractmethod
    async def initialize(self) -> None:
        """
        Prepare the backend (create tables, load credentials, etc.).

        Called once at application startup.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """
        Close connections and cleanup resources.

        Called at application shutdown.
        """
        pass
