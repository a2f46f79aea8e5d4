"""Errors surfaced by remote store operations."""


class StoreError(Exception):
    """A remote store call was rejected or could not be completed."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(StoreError):
    """The record id is unknown to the store (update and delete only)."""


class ConflictError(StoreError):
    """The store rejected the payload, e.g. a duplicate non-closed link."""


class TransportError(StoreError):
    """The store could not be reached or failed to answer."""
