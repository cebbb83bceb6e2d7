"""
MyApp Controller module.

This module contains the reconciler and the controller loop that drive each
MyApp's Deployment and Service toward the MyApp's declared spec.

The controller runs as its own process against a cluster store (the local
SQLite store or a Kubernetes API server).
"""

from .controller import AppController
from .drift import SnapshotPolicy, has_drifted
from .reconciler import AppReconciler, ReconcilePath, ReconcileResult
from .synthesizer import new_endpoint, new_workload
from .workqueue import WorkQueue

__all__ = [
    "AppController",
    "AppReconciler",
    "ReconcilePath",
    "ReconcileResult",
    "SnapshotPolicy",
    "WorkQueue",
    "has_drifted",
    "new_endpoint",
    "new_workload",
]
