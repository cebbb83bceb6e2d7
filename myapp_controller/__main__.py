"""
Standalone entrypoint for running the MyApp controller.

Usage:
    python -m myapp_controller [OPTIONS]
    myapp-controller [OPTIONS]  (after pip install)

Environment Variables:
    MYAPP_STORE: Cluster store backend, "sqlite" or "kubernetes" (default: sqlite)
    MYAPP_DB_PATH: SQLite store path (default: myapp_cluster.db)
    MYAPP_NAMESPACE: Namespace to reconcile (default: all namespaces)
    MYAPP_RESYNC_INTERVAL: Seconds between full relists (default: 10.0)
    MYAPP_WORKERS: Concurrent reconciles (default: 4)
    MYAPP_SNAPSHOT_POLICY: "fail" or "resync" on a missing snapshot (default: fail)
    MYAPP_KUBE_IN_CLUSTER: Use in-cluster credentials when set to 1/true
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from typing import Any

from myapp_common.store import ClusterStore
from myapp_controller.controller import AppController
from myapp_controller.drift import SnapshotPolicy
from myapp_persistence.kubernetes_store import KubernetesClusterStore
from myapp_persistence.sqlite_store import SQLiteClusterStore

logger = logging.getLogger(__name__)

DEFAULT_RESYNC_INTERVAL = 10.0
DEFAULT_WORKERS = 4


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="MyApp Controller - reconciles MyApp resources into Deployments and Services",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
  MYAPP_STORE             sqlite or kubernetes (default: sqlite)
  MYAPP_DB_PATH           SQLite store path (default: myapp_cluster.db)
  MYAPP_NAMESPACE         Namespace to reconcile (default: all)
  MYAPP_RESYNC_INTERVAL   Seconds between full relists (default: 10.0)
  MYAPP_WORKERS           Concurrent reconciles (default: 4)
  MYAPP_SNAPSHOT_POLICY   fail or resync (default: fail)
  MYAPP_KUBE_IN_CLUSTER   Use in-cluster credentials (default: off)

Note: Command-line arguments override environment variables.

Examples:
  # Run against the local SQLite store
  myapp-controller --db-path /tmp/cluster.db

  # Run against the current kubeconfig context, one namespace
  myapp-controller --store kubernetes --namespace demo

  # Repair apps whose snapshot annotation is missing
  myapp-controller --snapshot-policy resync
        """,
    )

    parser.add_argument(
        "--store",
        choices=["sqlite", "kubernetes"],
        default=None,
        help="Cluster store backend (default: MYAPP_STORE env or sqlite)",
    )
    parser.add_argument(
        "--db-path",
        type=str,
        default=None,
        help="Path to SQLite store file (default: MYAPP_DB_PATH env or myapp_cluster.db)",
    )
    parser.add_argument(
        "--namespace",
        type=str,
        default=None,
        help="Namespace to reconcile (default: MYAPP_NAMESPACE env or all namespaces)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between full relists (default: MYAPP_RESYNC_INTERVAL env or 10.0)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Concurrent reconciles (default: MYAPP_WORKERS env or 4)",
    )
    parser.add_argument(
        "--snapshot-policy",
        choices=[p.value for p in SnapshotPolicy],
        default=None,
        help="Handling of a missing applied-spec snapshot (default: MYAPP_SNAPSHOT_POLICY env or fail)",
    )
    parser.add_argument(
        "--in-cluster",
        action="store_true",
        default=None,
        help="Use in-cluster Kubernetes credentials (kubernetes store only)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO)",
    )

    return parser.parse_args(argv)


def get_store_kind(args: argparse.Namespace) -> str:
    if args.store:
        return args.store
    kind = os.environ.get("MYAPP_STORE", "sqlite").strip().lower()
    if kind not in ("sqlite", "kubernetes"):
        logger.warning(f"Invalid MYAPP_STORE={kind}, using sqlite")
        return "sqlite"
    return kind


def get_database_path(args: argparse.Namespace) -> str:
    if args.db_path:
        return args.db_path
    return os.environ.get("MYAPP_DB_PATH", "myapp_cluster.db")


def get_namespace(args: argparse.Namespace) -> str | None:
    if args.namespace is not None:
        return args.namespace or None
    return os.environ.get("MYAPP_NAMESPACE") or None


def get_resync_interval(args: argparse.Namespace) -> float:
    """
    Get the relist interval from CLI args or environment.

    Returns:
        Seconds between relists (falls back to the default on bad input)
    """
    if args.interval is not None:
        if args.interval <= 0:
            logger.warning(
                f"Invalid interval={args.interval}, using default {DEFAULT_RESYNC_INTERVAL}"
            )
            return DEFAULT_RESYNC_INTERVAL
        return args.interval

    raw = os.environ.get("MYAPP_RESYNC_INTERVAL", str(DEFAULT_RESYNC_INTERVAL))
    try:
        interval = float(raw)
    except ValueError:
        logger.warning(
            f"Invalid MYAPP_RESYNC_INTERVAL={raw}, using default {DEFAULT_RESYNC_INTERVAL}"
        )
        return DEFAULT_RESYNC_INTERVAL
    if interval <= 0:
        logger.warning(
            f"Invalid MYAPP_RESYNC_INTERVAL={interval}, using default {DEFAULT_RESYNC_INTERVAL}"
        )
        return DEFAULT_RESYNC_INTERVAL
    return interval


def get_workers(args: argparse.Namespace) -> int:
    raw: Any = args.workers if args.workers is not None else os.environ.get(
        "MYAPP_WORKERS", str(DEFAULT_WORKERS)
    )
    try:
        workers = int(raw)
    except ValueError:
        logger.warning(f"Invalid MYAPP_WORKERS={raw}, using default {DEFAULT_WORKERS}")
        return DEFAULT_WORKERS
    if workers < 1:
        logger.warning(f"Invalid workers={workers}, using default {DEFAULT_WORKERS}")
        return DEFAULT_WORKERS
    return workers


def get_snapshot_policy(args: argparse.Namespace) -> SnapshotPolicy:
    raw = args.snapshot_policy or os.environ.get("MYAPP_SNAPSHOT_POLICY", "fail")
    try:
        return SnapshotPolicy(raw.strip().lower())
    except ValueError:
        logger.warning(f"Invalid MYAPP_SNAPSHOT_POLICY={raw}, using fail")
        return SnapshotPolicy.FAIL


def get_in_cluster(args: argparse.Namespace) -> bool:
    if args.in_cluster is not None:
        return args.in_cluster
    return os.environ.get("MYAPP_KUBE_IN_CLUSTER", "").strip().lower() in {"1", "true", "yes", "on"}


def build_store(args: argparse.Namespace) -> ClusterStore:
    if get_store_kind(args) == "kubernetes":
        return KubernetesClusterStore(in_cluster=get_in_cluster(args))
    return SQLiteClusterStore(get_database_path(args))


async def run_controller(args: argparse.Namespace) -> None:
    """
    Initialize and run the controller until SIGINT or SIGTERM.

    Args:
        args: Parsed command-line arguments
    """
    namespace = get_namespace(args)
    resync_interval = get_resync_interval(args)
    workers = get_workers(args)
    snapshot_policy = get_snapshot_policy(args)
    store = build_store(args)

    logger.info("Starting MyApp Controller")
    logger.info(f"  Store: {type(store).__name__}")
    if isinstance(store, SQLiteClusterStore):
        logger.info(f"  Database: {store.db_path}")
    logger.info(f"  Namespace: {namespace or '(all)'}")
    logger.info(f"  Resync interval: {resync_interval}s")
    logger.info(f"  Workers: {workers}")
    logger.info(f"  Snapshot policy: {snapshot_policy.value}")

    await store.initialize()
    logger.info("Cluster store initialized")

    controller = AppController(
        store=store,
        namespace=namespace,
        resync_interval=resync_interval,
        workers=workers,
        snapshot_policy=snapshot_policy,
    )

    shutdown_event = asyncio.Event()

    def signal_handler(sig: Any, _frame: Any) -> None:
        logger.info(f"Received signal {sig}, initiating graceful shutdown...")
        shutdown_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        await controller.start()
        await shutdown_event.wait()
    except Exception as e:
        logger.error(f"Controller error: {e}", exc_info=True)
        raise
    finally:
        logger.info("Stopping controller...")
        await controller.stop()
        logger.info("Closing cluster store...")
        await store.close()
        logger.info("Controller stopped cleanly")


def main() -> int:
    """
    Main entrypoint for the controller.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        asyncio.run(run_controller(args))
        return 0
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
