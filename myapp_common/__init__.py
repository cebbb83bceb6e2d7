"""
MyApp Common module.

This module contains shared domain models, the cluster store interface and
the error taxonomy used across the operator components (controller,
persistence, server, admin).

The common module has no dependencies on other myapp_* modules, making it
a pure domain layer that can be imported by any component.
"""

from .errors import (
    AlreadyExistsError,
    ConflictError,
    InvalidError,
    NotFoundError,
    SnapshotDecodeError,
    StoreError,
)
from .models import (
    MyApp,
    MyAppSpec,
    NetworkEndpoint,
    ObjectMeta,
    OwnerReference,
    ResourceKey,
    Workload,
)
from .store import ClusterStore

__all__ = [
    "AlreadyExistsError",
    "ClusterStore",
    "ConflictError",
    "InvalidError",
    "MyApp",
    "MyAppSpec",
    "NetworkEndpoint",
    "NotFoundError",
    "ObjectMeta",
    "OwnerReference",
    "ResourceKey",
    "SnapshotDecodeError",
    "StoreError",
    "Workload",
]
