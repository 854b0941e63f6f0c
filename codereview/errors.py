"""
Failure types raised below the HTTP layer.
"""


class StorageError(Exception):
    """Persisted session state could not be loaded or saved."""


class InferenceError(Exception):
    """The inference service failed to produce a review."""
