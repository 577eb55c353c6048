"""
Custom exceptions for the Manifestor application.

This module defines domain-specific exceptions so callers can tell apart
per-asset failures, which are skipped, from fatal conditions that abort a run
without touching persisted files.
"""


class ManifestorError(Exception):
    """
    Base exception for all Manifestor errors.

    All custom exceptions in Manifestor inherit from this class to allow for
    easy catching of all application-specific errors.
    """

    def __init__(self, message: str, details: str | None = None) -> None:
        """
        Initialize the exception.

        Args:
            message: The primary error message.
            details: Optional additional context about the error.
        """
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(ManifestorError):
    """Exception raised when configuration is invalid or missing."""

    pass


class ConfigFileError(ConfigurationError):
    """Exception raised when the configuration file cannot be read or parsed."""

    pass


# =============================================================================
# Artifact Pipeline Errors
# =============================================================================


class ArtifactError(ManifestorError):
    """
    Base exception for a failed artifact pipeline stage.

    These are recoverable: the affected asset is skipped and the channel
    continues with the next one.

    Attributes:
        asset_name: Upstream asset the stage was working on.
    """

    def __init__(
        self,
        message: str,
        asset_name: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.asset_name = asset_name


class TransferError(ArtifactError):
    """Exception raised when an asset cannot be downloaded."""

    pass


class ExtractionError(ArtifactError):
    """Exception raised when a downloaded archive cannot be unpacked."""

    pass


class BinaryNotFoundError(ArtifactError):
    """Exception raised when the core binary is missing from an unpacked archive."""

    pass


class PackagingError(ArtifactError):
    """Exception raised when the canonical archive cannot be written."""

    pass


# =============================================================================
# Fatal Errors
# =============================================================================


class FatalUpdateError(ManifestorError):
    """
    Base exception for conditions that abort a run.

    Raised before anything is written, so persisted files stay untouched.
    """

    pass


class NoReleaseDataError(FatalUpdateError):
    """Exception raised when no usable upstream release metadata is available."""

    pass


class NoRulesFoundError(FatalUpdateError):
    """Exception raised when no rule records are discovered in any scope."""

    pass


# =============================================================================
# File System Errors
# =============================================================================


class FileSystemError(ManifestorError):
    """
    Exception raised when a persisted document cannot be written.

    Attributes:
        path: The file path that caused the error.
    """

    def __init__(
        self,
        message: str,
        path: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.path = path
