"""
Custom exceptions for the SpotlightDL application.

This module defines domain-specific exceptions that provide better error
categorization and more informative error messages for users and developers.
"""


class SpotlightError(Exception):
    """
    Base exception for all SpotlightDL errors.

    All custom exceptions in SpotlightDL should inherit from this class
    to allow for easy catching of all application-specific errors.
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


class ConfigurationError(SpotlightError):
    """
    Exception raised when configuration is invalid or missing.

    This includes:
    - Invalid configuration values
    - Configuration file parsing errors
    """

    pass


class ConfigFileError(ConfigurationError):
    """Exception raised when configuration file cannot be read or parsed."""

    pass


class ConfigValidationError(ConfigurationError):
    """
    Exception raised when configuration validation fails.

    Attributes:
        key: The configuration key holding the rejected value.
    """

    def __init__(
        self, message: str, key: str | None = None, details: str | None = None
    ) -> None:
        super().__init__(message, details)
        self.key = key


# =============================================================================
# Download Errors
# =============================================================================


class DownloadError(SpotlightError):
    """
    Base exception for download-related errors.

    Attributes:
        url: The URL that was being downloaded when the error occurred.
        is_retryable: Whether the error could be retried.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        is_retryable: bool = False,
        details: str | None = None,
    ) -> None:
        """
        Initialize the download exception.

        Args:
            message: The primary error message.
            url: The URL that was being downloaded.
            is_retryable: Whether this error could be retried.
            details: Optional additional context.
        """
        super().__init__(message, details)
        self.url = url
        self.is_retryable = is_retryable


class NetworkError(DownloadError):
    """
    Exception raised for transport-level failures.

    This includes:
    - Connection timeouts and refused connections
    - DNS resolution failures
    - SSL/TLS errors
    - Non-success HTTP status codes
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, url=url, is_retryable=True, details=details)
        self.status_code = status_code


class IntegrityError(DownloadError):
    """
    Exception raised when a downloaded file fails verification.

    Attributes:
        check: Name of the failed check (content-length, size, sha256, image).
        expected: The expected value, when the check has one.
        actual: The observed value, when the check has one.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        check: str | None = None,
        expected: object = None,
        actual: object = None,
    ) -> None:
        details = None
        if expected is not None or actual is not None:
            details = f"Expected: {expected}, Actual: {actual}"
        super().__init__(message, url=url, is_retryable=True, details=details)
        self.check = check
        self.expected = expected
        self.actual = actual


# =============================================================================
# API Errors
# =============================================================================


class ProtocolError(SpotlightError):
    """
    Exception raised when the API response envelope is malformed.

    Retryable at the call boundary, but a persistent failure may mean the
    requested locale is not served by the API.

    Attributes:
        endpoint: The API URL that was requested.
        locale: The locale used for the request.
    """

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        locale: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.endpoint = endpoint
        self.locale = locale
        self.is_retryable = True


class EmptyFeedError(SpotlightError):
    """Exception raised when the API returned a valid envelope without any usable image."""

    def __init__(self, message: str, locale: str | None = None) -> None:
        super().__init__(message)
        self.locale = locale


# =============================================================================
# Metadata Errors
# =============================================================================


class FormatError(SpotlightError):
    """
    Exception raised when a metadata sidecar cannot be decoded.

    Attributes:
        path: The sidecar file path, when loading from disk.
    """

    def __init__(
        self, message: str, path: str | None = None, details: str | None = None
    ) -> None:
        super().__init__(message, details)
        self.path = path


# =============================================================================
# Collaborator Errors
# =============================================================================


class ApplyError(SpotlightError):
    """
    Exception raised when the wallpaper/lockscreen collaborator reports failure.

    Attributes:
        path: The image file that could not be applied.
    """

    def __init__(
        self, message: str, path: str | None = None, details: str | None = None
    ) -> None:
        super().__init__(message, details)
        self.path = path
