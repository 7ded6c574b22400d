"""HTTP fetch layer for provider range documents.

This module provides bounded HTTP fetch operations with:
- Per-request deadlines covering the whole download
- Maximum response size enforcement
- Classified failures instead of raised transport errors
- Credential redaction for logged URLs
"""

from cdnredirect.fetch.client import HttpFetcher
from cdnredirect.fetch.config import FetchConfig
from cdnredirect.fetch.models import (
    TRANSIENT_ERROR_CLASSES,
    FetchDeadlineExceededError,
    FetchError,
    FetchErrorClass,
    FetchResult,
    ResponseSizeExceededError,
)
from cdnredirect.fetch.redact import redact_url_credentials


__all__ = [
    # Client
    "HttpFetcher",
    # Config
    "FetchConfig",
    # Models
    "FetchDeadlineExceededError",
    "FetchError",
    "FetchErrorClass",
    "FetchResult",
    "ResponseSizeExceededError",
    "TRANSIENT_ERROR_CLASSES",
    # Redaction
    "redact_url_credentials",
]
