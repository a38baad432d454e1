"""Exception types for the dependency manager.

Every failure mode of the update cycle maps onto one of these classes. They are
raised by the component that detects the problem and handled by the
orchestrator, which turns them into an ``EnsureResult`` status.
"""

from __future__ import annotations


class DependencyError(Exception):
    """Base class for all dependency manager errors."""


class NetworkError(DependencyError):
    """Raised when the release feed or a download cannot be reached."""


class DownloadError(NetworkError):
    """Exception raised when an archive download fails."""

    def __init__(self, message: str, retryable: bool = True) -> None:
        """Initialize download error.

        Args:
            message: Error message.
            retryable: Whether the error is retryable.
        """
        super().__init__(message)
        self.retryable = retryable


class ParseError(DependencyError):
    """Raised when a release feed body is malformed."""


class ProcessError(DependencyError):
    """Raised when the installed binary cannot report its version."""


class ExtractError(DependencyError):
    """Raised when an archive is corrupt or cannot be written to disk."""


class LockTimeoutError(DependencyError):
    """Raised when the install lock cannot be acquired in time."""

    def __init__(self, path: str, wait_time: float) -> None:
        """Initialize the lock timeout error.

        Args:
            path: Lock file that could not be acquired.
            wait_time: How long the caller waited in seconds.
        """
        self.path = path
        self.wait_time = wait_time
        super().__init__(f"Timed out after {wait_time:.1f}s waiting for install lock {path}")
