"""Exception hierarchy for the redirect middleware.

Construction-time problems raise ConfigError and abort middleware setup.
Range refresh problems raise RangeSourceError subclasses, which the
refresher contains. Signing problems raise SigningError, which propagates
to the caller of the redirect operation.
"""

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from cdnredirect.fetch.models import FetchError


class CdnRedirectError(Exception):
    """Base exception for all middleware errors."""


class ConfigError(CdnRedirectError):
    """Raised when a middleware option is missing or invalid."""

    def __init__(self, key: str, message: str) -> None:
        """Initialize the error.

        Args:
            key: Option key that failed validation.
            message: Human-readable error message.
        """
        self.key = key
        super().__init__(f"{key}: {message}")


class RangeSourceError(CdnRedirectError):
    """Base exception for failures while obtaining a range document."""


class RangeFetchError(RangeSourceError):
    """Raised when the range document cannot be retrieved."""

    def __init__(self, url: str, error: "FetchError") -> None:
        """Initialize the error.

        Args:
            url: Document URL (credentials redacted).
            error: Classified fetch error.
        """
        self.url = url
        self.error = error
        super().__init__(
            f"Failed to fetch {url}: {error.error_class.value}: {error.message}"
        )


class RangeParseError(RangeSourceError):
    """Raised when the range document does not have the expected structure."""


class SigningError(CdnRedirectError):
    """Raised when a signed edge URL cannot be produced."""


class CapabilityUnsupportedError(CdnRedirectError):
    """Raised when a storage driver lacks the edge keying capability."""

    def __init__(self, driver: object) -> None:
        """Initialize the error.

        Args:
            driver: The storage driver that was queried.
        """
        self.driver_type = type(driver).__name__
        super().__init__(
            f"Storage driver {self.driver_type} does not support edge keying"
        )
