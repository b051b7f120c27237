"""Error taxonomy shared by the ledger, pipelines, and dispatcher."""

from __future__ import annotations


class ChatTaskError(RuntimeError):
    """Base task error with retryability hint."""

    default_transient = False

    def __init__(self, message: str, *, transient: bool | None = None) -> None:
        super().__init__(message)
        self.transient = self.default_transient if transient is None else transient


class MediaError(ChatTaskError):
    """Input media is missing, unreadable, corrupt, or has no audio."""


class SegmentationError(ChatTaskError):
    """Audio extraction, probing, or splitting tool failure."""

    default_transient = True


class ProviderError(ChatTaskError):
    """External speech-to-text, detection, or translation call failure."""

    default_transient = True


class StorageError(ChatTaskError):
    """Ledger store is unavailable or rejected the statement."""

    default_transient = True


class KeyDerivationError(ChatTaskError):
    """A stable task key cannot be derived from the inbound event."""


class TaskStateError(ChatTaskError):
    """Ledger transition requested on a missing or non-processing record."""
