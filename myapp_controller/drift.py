"""
Drift detection against the applied-spec snapshot.

The snapshot annotation is the only persisted baseline; the live dependents
are never diffed directly.
"""

import logging
from enum import Enum

from myapp_common.errors import SnapshotDecodeError
from myapp_common.models import MyAppSpec

logger = logging.getLogger(__name__)


class SnapshotPolicy(str, Enum):
    """What to do when the snapshot is absent or cannot be decoded."""

    FAIL = "fail"  # Abort the reconcile with SnapshotDecodeError
    RESYNC = "resync"  # Treat as drift and rewrite both dependents


def has_drifted(current: MyAppSpec, snapshot: str | None) -> bool:
    """
    Compare the declared spec with the last applied one.

    Args:
        current: Spec currently declared on the MyApp
        snapshot: Raw annotation value (None if the annotation is absent)

    Returns:
        True if any field differs

    Raises:
        SnapshotDecodeError: If the snapshot is absent or malformed
    """
    return MyAppSpec.from_json(snapshot) != current


def detect_drift(
    current: MyAppSpec, snapshot: str | None, policy: SnapshotPolicy = SnapshotPolicy.FAIL
) -> bool:
    """has_drifted with the missing-snapshot policy applied."""
    try:
        return has_drifted(current, snapshot)
    except SnapshotDecodeError as e:
        if policy is SnapshotPolicy.RESYNC:
            logger.warning(f"{e}; forcing full resync")
            return True
        raise
