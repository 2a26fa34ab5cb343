"""
Core business exceptions for the bundle downloader.

This module defines a hierarchy of custom exceptions to allow for granular
error handling and clear separation of failure domains. The two bundle error
kinds are the only failures a caller of the downloader ever sees for a
failed fetch; raw transport errors are classified into one of them.
"""


class BundleDownloaderError(Exception):
    """Base exception for all component-specific errors."""
    pass


# --- Configuration Errors ---

class ConfigurationError(BundleDownloaderError):
    """Raised for errors related to application configuration."""
    pass


# --- Infrastructure Errors ---

class InfrastructureError(BundleDownloaderError):
    """Base class for errors related to external systems (network, tools)."""
    pass


class FetchError(InfrastructureError):
    """Raised by a fetcher when pulling a bundle fails."""
    pass


# --- Domain/Business Logic Errors ---

class DomainError(BundleDownloaderError):
    """Base class for errors related to business logic failures."""
    pass


class BundleKeyError(DomainError):
    """Raised when an OS or Kubernetes version cannot name a cache entry."""
    pass


class BundleError(DomainError):
    """
    Base class for the stable, classified bundle errors.

    Every subclass has a fixed message, so instances of the same kind compare
    equal and callers never need to parse message text.
    """

    message = "Error with bundle"

    def __init__(self):
        super().__init__(self.message)

    def __eq__(self, other):
        return type(self) is type(other)

    def __hash__(self):
        return hash(type(self))


class BundleDownloadError(BundleError):
    """Raised when a bundle could not be obtained from the repository."""

    message = "Error downloading bundle"


class BundleExtractError(BundleError):
    """Raised when a bundle could not be written out due to lack of space."""

    message = "Error extracting bundle"
