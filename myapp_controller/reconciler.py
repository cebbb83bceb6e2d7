"""
Reconcile logic for a single MyApp.

One call to AppReconciler.reconcile is one pass of the state machine:

    Absent     - app missing or being deleted: nothing to do
    Bootstrap  - workload missing: create both dependents
    Converge   - workload present: update dependents only if the spec drifted
    Persist    - record the applied spec on the app (every non-terminal path)

Store errors other than NotFound propagate unchanged; retrying is the
caller's job. The two dependent writes and the final Persist are not
atomic, so a failure part-way leaves an intermediate state that the next
reconcile repairs.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from myapp_common.models import SPEC_ANNOTATION, MyApp, Resource, ResourceKey
from myapp_common.store import ClusterStore

from .dependents import DEPENDENTS, WORKLOAD, Dependent
from .drift import SnapshotPolicy, detect_drift

logger = logging.getLogger(__name__)


class ReconcilePath(str, Enum):
    ABSENT = "absent"
    BOOTSTRAP = "bootstrap"
    CONVERGE = "converge"


class Action(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass
class ReconcileResult:
    """Outcome of one successful reconcile. Failures are raised instead."""

    key: ResourceKey
    path: ReconcilePath
    drifted: bool = False
    actions: dict[str, Action] = field(default_factory=dict)  # kind -> action
    snapshot_written: bool = False

    @property
    def mutated(self) -> bool:
        """Whether any create or update call was issued."""
        return self.snapshot_written or any(
            action is not Action.UNCHANGED for action in self.actions.values()
        )


class AppReconciler:
    """
    Drives one MyApp's dependents toward its declared spec.

    Holds no per-app state between calls, so any number of reconciles for
    different apps may run concurrently against the same instance.
    """

    def __init__(
        self,
        store: ClusterStore,
        snapshot_policy: SnapshotPolicy = SnapshotPolicy.FAIL,
    ):
        """
        Initialize the reconciler.

        Args:
            store: Cluster store holding apps and their dependents
            snapshot_policy: Handling of an absent or undecodable snapshot
        """
        self.store = store
        self.snapshot_policy = snapshot_policy

    async def reconcile(self, key: ResourceKey) -> ReconcileResult:
        """
        Run one reconcile pass for the app identified by ``key``.

        Returns:
            ReconcileResult describing the path taken and the writes issued

        Raises:
            StoreError: If any store call fails (other than NotFound on a read)
            SnapshotDecodeError: If the snapshot is unusable under SnapshotPolicy.FAIL
        """
        logger.debug(f"Reconciling myapp={key}")

        app = await self.store.get(MyApp, key)
        if app is None:
            logger.debug(f"myapp={key} not found, nothing to do")
            return ReconcileResult(key=key, path=ReconcilePath.ABSENT)
        if app.is_being_deleted:
            logger.debug(f"myapp={key} is being deleted, nothing to do")
            return ReconcileResult(key=key, path=ReconcilePath.ABSENT)

        workload = await self.store.get(WORKLOAD.kind, key)

        if workload is None:
            result = ReconcileResult(key=key, path=ReconcilePath.BOOTSTRAP)
            logger.info(f"Bootstrapping myapp={key}")
            await self._sync_dependents(app, workload, result)
        else:
            result = ReconcileResult(key=key, path=ReconcilePath.CONVERGE)
            result.drifted = detect_drift(
                app.spec, app.applied_snapshot, self.snapshot_policy
            )
            if result.drifted:
                logger.info(f"Spec drift detected for myapp={key}, updating dependents")
                await self._sync_dependents(app, workload, result)
            else:
                logger.debug(f"No drift for myapp={key}")

        result.snapshot_written = await self._persist(app)

        if result.mutated:
            actions = ", ".join(f"{k}={a.value}" for k, a in result.actions.items())
            logger.info(
                f"Reconciled myapp={key} path={result.path.value} [{actions or 'snapshot only'}]"
            )
        return result

    async def _sync_dependents(
        self, app: MyApp, workload: Resource | None, result: ReconcileResult
    ) -> None:
        for dependent in DEPENDENTS:
            if dependent is WORKLOAD:
                live = workload
            else:
                live = await self.store.get(dependent.kind, app.key)
            result.actions[dependent.kind.KIND] = await self._apply(dependent, app, live)

    async def _apply(self, dependent: Dependent, app: MyApp, live: Resource | None) -> Action:
        """Create ``dependent`` if missing, otherwise update its mutable portion."""
        desired = dependent.synthesize(app)
        kind = dependent.kind.KIND

        if live is None:
            await self.store.create(desired)
            logger.info(f"Created {kind} {app.key}")
            return Action.CREATED

        updated = dependent.apply_update(live, desired)
        if updated == live:
            logger.debug(f"{kind} {app.key} already up to date")
            return Action.UNCHANGED

        await self.store.update(updated)
        logger.info(f"Updated {kind} {app.key}")
        return Action.UPDATED

    async def _persist(self, app: MyApp) -> bool:
        """Write the applied-spec snapshot unless it is already current."""
        snapshot = app.spec.to_json()
        if app.applied_snapshot == snapshot:
            return False

        app.metadata.annotations[SPEC_ANNOTATION] = snapshot
        await self.store.update(app)
        logger.debug(f"Recorded applied spec on myapp={app.key}")
        return True
