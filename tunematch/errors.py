"""Exception types raised by tunematch."""


class TunematchError(Exception):
    """Base class for all tunematch errors."""


class InvalidInput(TunematchError, ValueError):
    """Malformed or empty arguments. Caller error, never retried."""


class StoreError(TunematchError):
    """Failure reported by a fingerprint store.

    Retrying is left to the caller; ``put`` is idempotent so re-running a
    whole ingestion is safe.
    """
