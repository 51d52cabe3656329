"""Errors raised by object store backends."""


class StoreError(Exception):
    """Base class for object store failures."""


class NotFoundError(StoreError):
    """The requested object does not exist (or was garbage collected)."""


class ConflictError(StoreError):
    """An optimistic write lost against a concurrent modification."""


class TransientStoreError(StoreError):
    """A retryable failure such as a timeout or an unavailable API server."""
