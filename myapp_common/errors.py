"""
Error taxonomy for cluster store and reconcile failures.

NotFound on a read is not an error: store ``get`` calls return None.
Everything here is raised and propagated to the caller of a reconcile.
"""


class StoreError(Exception):
    """Base class for cluster store failures (treated as transient)."""


class NotFoundError(StoreError):
    """Raised when a write targets a resource that does not exist."""


class AlreadyExistsError(StoreError):
    """Raised when creating a resource whose key is already taken."""


class ConflictError(StoreError):
    """Raised when an update carries a stale resourceVersion."""


class InvalidError(StoreError):
    """Raised when the store rejects an object (e.g. an immutable field changed)."""


class SnapshotDecodeError(ValueError):
    """
    Raised when the applied-spec snapshot annotation is absent or malformed.

    The reconciler never reads an undecodable snapshot as "no drift".
    """
