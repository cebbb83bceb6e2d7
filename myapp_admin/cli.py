"""
Admin CLI for the local MyApp cluster store.

Operates directly on the SQLite store, bypassing the API server: inspect
apps with their dependents and run one-shot reconciles.
"""

import asyncio
import json
import os
import sys
from pathlib import Path

import click

from myapp_common.errors import SnapshotDecodeError, StoreError
from myapp_common.models import MyApp, NetworkEndpoint, ResourceKey, Workload
from myapp_controller.drift import SnapshotPolicy
from myapp_controller.reconciler import AppReconciler
from myapp_persistence.sqlite_store import SQLiteClusterStore


def get_db_path() -> str:
    """Get the database path from environment variable or default."""
    return os.environ.get("MYAPP_DB_PATH", str(Path.home() / ".myapp" / "cluster.db"))


def get_store() -> SQLiteClusterStore:
    """Get the store instance."""
    return SQLiteClusterStore(get_db_path())


def run_async(coro):
    """Helper to run async functions in CLI commands."""
    return asyncio.run(coro)


@click.group()
def cli():
    """MyApp Admin - Inspect and reconcile the local cluster store."""
    pass


@cli.group()
def apps():
    """Inspect MyApps."""
    pass


@cli.command("init")
def init():
    """Create the store schema."""

    async def create():
        db_path = Path(get_db_path())
        db_path.parent.mkdir(parents=True, exist_ok=True)
        store = get_store()
        try:
            await store.initialize()
        finally:
            await store.close()
        click.echo(f"✓ Store initialized at {db_path}")

    run_async(create())


@apps.command("list")
@click.option("--namespace", "-n", default=None, help="Only list this namespace")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def apps_list(namespace: str | None, json_output: bool):
    """List all MyApps."""

    async def list_apps():
        store = get_store()
        await store.initialize()

        try:
            items = await store.list(MyApp, namespace)

            if json_output:
                click.echo(json.dumps([a.to_dict() for a in items], indent=2))
                return

            if not items:
                click.echo("No apps found.")
                return

            click.echo(
                f"{'NAMESPACE':<16} {'NAME':<24} {'IMAGE':<32} {'REPLICAS':<9} {'SYNCED':<6}"
            )
            click.echo("-" * 90)
            for a in items:
                synced = "yes" if a.applied_snapshot == a.spec.to_json() else "no"
                click.echo(
                    f"{a.metadata.namespace:<16} {a.metadata.name:<24} "
                    f"{a.spec.image:<32} {a.spec.replica_count:<9} {synced:<6}"
                )
        finally:
            await store.close()

    run_async(list_apps())


@apps.command("show")
@click.argument("namespace")
@click.argument("name")
def apps_show(namespace: str, name: str):
    """Show a MyApp with its Deployment and Service."""

    async def show():
        store = get_store()
        await store.initialize()

        try:
            key = ResourceKey(namespace, name)
            app = await store.get(MyApp, key)
            if app is None:
                click.echo(f"Error: MyApp {key} not found", err=True)
                sys.exit(1)

            workload = await store.get(Workload, key)
            endpoint = await store.get(NetworkEndpoint, key)
            click.echo(
                json.dumps(
                    {
                        "app": app.to_dict(),
                        "workload": workload.to_dict() if workload else None,
                        "endpoint": endpoint.to_dict() if endpoint else None,
                    },
                    indent=2,
                )
            )
        finally:
            await store.close()

    run_async(show())


@cli.command("reconcile")
@click.argument("namespace")
@click.argument("name")
@click.option(
    "--policy",
    type=click.Choice([p.value for p in SnapshotPolicy]),
    default=SnapshotPolicy.FAIL.value,
    show_default=True,
    help="Handling of a missing applied-spec snapshot",
)
def reconcile(namespace: str, name: str, policy: str):
    """Run one reconcile pass for a MyApp."""

    async def run():
        store = get_store()
        await store.initialize()

        try:
            reconciler = AppReconciler(store, snapshot_policy=SnapshotPolicy(policy))
            try:
                result = await reconciler.reconcile(ResourceKey(namespace, name))
            except (StoreError, SnapshotDecodeError) as e:
                click.echo(f"Error: reconcile failed: {e}", err=True)
                sys.exit(1)

            click.echo(f"✓ Reconciled {result.key}")
            click.echo(f"  Path:     {result.path.value}")
            click.echo(f"  Drifted:  {'yes' if result.drifted else 'no'}")
            for kind, action in result.actions.items():
                click.echo(f"  {kind + ':':<12}{action.value}")
            click.echo(f"  Snapshot: {'written' if result.snapshot_written else 'unchanged'}")
        finally:
            await store.close()

    run_async(run())


if __name__ == "__main__":
    cli()
