"""
Error taxonomy for the Tidemark baseline engine.

Lower layers (hasher, differ, comparators, store) raise these typed errors;
the orchestrator decides what is fatal and the CLI/API map them to exit codes
and HTTP statuses.
"""
from typing import Optional


class TidemarkError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.hint = hint

    def __str__(self) -> str:
        return self.message


class TransportError(TidemarkError):
    """Device or network unreachable while acquiring a tree."""


class InsufficientPrivilegeError(TidemarkError, PermissionError):
    """The source tree cannot be read with the available privileges."""


class NotFoundError(TidemarkError, LookupError):
    """A requested baseline (or target on the device) does not exist."""


class ConflictError(TidemarkError):
    """A baseline already exists and overwrite was not confirmed."""


class StorageError(TidemarkError, OSError):
    """Local disk failure while hashing or persisting."""


class TreeHashError(StorageError):
    """The tree could not be fingerprinted in full."""


class InvalidTargetError(TidemarkError, ValueError):
    """Target name cannot be used as a storage namespace."""


class RunCancelledError(TidemarkError):
    """A cancellation signal was observed between run states."""
