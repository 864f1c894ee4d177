"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class SoaperDlError(Exception):
    """
    Base exception for all application-specific errors.

    `retryable` tells the caller whether the same job may succeed if run again
    (transient network conditions) or is structurally doomed (bad manifest,
    missing media).
    """

    def __init__(self, message: str = "", retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class ResolutionError(SoaperDlError):
    """Raised when the pass-token exchange fails or returns unusable JSON."""


class ManifestError(SoaperDlError):
    """Raised when the HLS manifest is unreachable, empty, or lists no segments."""


class FetchError(SoaperDlError):
    """Raised when segment downloads leave the sequence incomplete."""


class AssemblyError(SoaperDlError):
    """Raised when segments cannot be concatenated into the output file."""


class ConfigurationError(SoaperDlError):
    """Raised for issues related to configuration loading or validation."""


class ScrapeError(SoaperDlError):
    """Raised when a site page cannot be fetched or does not contain the expected data."""


class SelectionError(SoaperDlError):
    """Raised for an invalid episode expression or an episode not in the list."""
