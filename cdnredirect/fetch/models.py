"""Results and error classes of range document fetches."""

from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from cdnredirect.fetch.constants import HTTP_STATUS_OK_MAX, HTTP_STATUS_OK_MIN


class FetchErrorClass(str, Enum):
    """Why a document fetch failed.

    The value doubles as the metrics label of a failed refresh.
    """

    NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    RESPONSE_SIZE_EXCEEDED = "RESPONSE_SIZE_EXCEEDED"
    HTTP_4XX = "HTTP_4XX"
    HTTP_5XX = "HTTP_5XX"
    HTTP_OTHER = "HTTP_OTHER"
    UNKNOWN = "UNKNOWN"


# Failures likely to clear up by the next refresh
TRANSIENT_ERROR_CLASSES = frozenset(
    {
        FetchErrorClass.NETWORK_TIMEOUT,
        FetchErrorClass.CONNECTION_ERROR,
        FetchErrorClass.HTTP_5XX,
    }
)


class FetchError(BaseModel):
    """Classified fetch failure."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    error_class: FetchErrorClass
    message: Annotated[str, Field(min_length=1)]
    status_code: int | None = None

    @property
    def is_transient(self) -> bool:
        """Check whether the failure is expected to be temporary.

        Permanent failures (4xx, oversized documents) usually point at a
        misconfigured document URL.
        """
        return self.error_class in TRANSIENT_ERROR_CLASSES


class FetchResult(BaseModel):
    """Outcome of a single GET.

    A status code of 0 means no response was received.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    status_code: int = Field(ge=0)
    final_url: Annotated[str, Field(min_length=1)]
    body_bytes: bytes = b""
    error: FetchError | None = None

    @property
    def is_success(self) -> bool:
        """Check for a 2xx response without error."""
        return (
            self.error is None
            and HTTP_STATUS_OK_MIN <= self.status_code < HTTP_STATUS_OK_MAX
        )

    @property
    def body_size(self) -> int:
        """Get the body length in bytes."""
        return len(self.body_bytes)


class ResponseSizeExceededError(Exception):
    """Raised while streaming a body past the configured size limit."""


class FetchDeadlineExceededError(Exception):
    """Raised while streaming a body past the overall request deadline."""
