"""
MyApp Persistence module.

This module contains the cluster store implementations: a SQLite-backed
local store and a Kubernetes API-backed store.

The persistence layer depends on myapp_common for domain models and
interfaces, and can be used by the controller, server and admin CLI.
"""

from .kubernetes_store import KubernetesClusterStore
from .sqlite_store import SQLiteClusterStore

__all__ = ["KubernetesClusterStore", "SQLiteClusterStore"]
