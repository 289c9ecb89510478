"""Custom exceptions for k2d.

All exceptions inherit from K2DError, allowing callers to catch every
k2d-specific failure with a single except clause.

Exception hierarchy:
    K2DError (base)
    ├── TranscriptError
    │   └── TranscriptNotFoundError
    ├── StoreError
    │   └── StoreOpenError
    ├── ConfigurationError
    └── HookInputError

Expected absence (missing config files, git not installed, unreadable
project files) is never raised; those paths degrade to None or empty
results. Only structural failures surface as exceptions.
"""

from pathlib import Path
from typing import Any


class K2DError(Exception):
    """Base exception for all k2d errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize k2d error.

        Args:
            message: Error description.
            details: Optional dictionary with additional context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation."""
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


# =============================================================================
# Transcript Errors
# =============================================================================


class TranscriptError(K2DError):
    """Raised when a transcript cannot be processed as a whole.

    Individual malformed lines never raise; they are skipped.
    """

    def __init__(self, message: str, transcript_path: Path | str | None = None):
        """Initialize transcript error.

        Args:
            message: Error description.
            transcript_path: Path of the transcript that failed.
        """
        details = {}
        if transcript_path is not None:
            details["transcript_path"] = str(transcript_path)
        super().__init__(message, details)
        self.transcript_path = transcript_path


class TranscriptNotFoundError(TranscriptError):
    """Raised when the transcript file is missing or unreadable.

    This signals a caller error (wrong path in the hook payload), so it
    propagates instead of degrading to an empty turn.
    """


# =============================================================================
# Store Errors
# =============================================================================


class StoreError(K2DError):
    """Raised when the relational store fails."""

    def __init__(
        self,
        message: str,
        db_path: Path | None = None,
        operation: str | None = None,
    ):
        """Initialize store error.

        Args:
            message: Error description.
            db_path: Database file involved.
            operation: The operation that failed.
        """
        details = {}
        if db_path is not None:
            details["db_path"] = str(db_path)
        if operation:
            details["operation"] = operation
        super().__init__(message, details)
        self.db_path = db_path
        self.operation = operation


class StoreOpenError(StoreError):
    """Raised when the database cannot be opened or initialized."""


# =============================================================================
# Configuration / Input Errors
# =============================================================================


class ConfigurationError(K2DError):
    """Raised when a configuration or pattern file is invalid.

    Examples:
        - Skill keyword file that is not a mapping
        - Redaction pattern file with invalid YAML
    """

    def __init__(self, message: str, config_file: Path | None = None, key: str | None = None):
        """Initialize configuration error.

        Args:
            message: Error description.
            config_file: Path to the problematic file.
            key: The configuration key that caused the error.
        """
        details = {}
        if config_file:
            details["config_file"] = str(config_file)
        if key:
            details["key"] = key
        super().__init__(message, details)
        self.config_file = config_file
        self.key = key


class HookInputError(K2DError):
    """Raised when the hook payload on stdin is unusable."""

    def __init__(self, message: str, field: str | None = None):
        """Initialize hook input error.

        Args:
            message: Error description.
            field: Payload field that was missing or invalid.
        """
        details = {"field": field} if field else {}
        super().__init__(message, details)
        self.field = field
