"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class TwspaceError(Exception):
    """Base exception for all application-specific errors."""


class CredentialError(TwspaceError):
    """Raised when no guest token could be obtained within the retry budget."""


class ResolutionError(TwspaceError):
    """Raised when a resolver stage cannot produce its value."""

    def __init__(self, stage: str, reason: str):
        super().__init__(reason)
        self.stage = stage
        self.reason = reason


class BroadcastEndedError(ResolutionError):
    """
    Raised when a Space has ended and no replay is available.

    This is an expected terminal state, not a transport failure.
    """


class ExtensionAbort(TwspaceError):
    """Raised when an extension hook vetoes the current download."""

    def __init__(self, stage: str, reason: str | None = None):
        super().__init__(reason or f"Download stopped by extension at '{stage}'.")
        self.stage = stage
        self.reason = reason

    @property
    def silent(self) -> bool:
        return self.reason is None


class JobFailedError(TwspaceError):
    """Raised when an FFmpeg job exits non-zero and fail-fast is enabled."""

    def __init__(self, kind: str, status: int):
        super().__init__(f"FFmpeg {kind} job exited with status {status}.")
        self.kind = kind
        self.status = status


class FFmpegNotFoundError(TwspaceError):
    """Raised when the FFmpeg executable cannot be located."""


class ConfigurationError(TwspaceError):
    """Raised for issues related to configuration loading or validation."""
