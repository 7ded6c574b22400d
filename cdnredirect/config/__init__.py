"""Middleware configuration: option validation and YAML loading."""

from cdnredirect.config.durations import parse_duration
from cdnredirect.config.loader import load_middleware_options
from cdnredirect.config.options import (
    LEGACY_UPDATE_FREQUENCY_KEY,
    MiddlewareOptions,
)
from cdnredirect.config.policies import IPFilter, UnpopulatedPolicy


__all__ = [
    "LEGACY_UPDATE_FREQUENCY_KEY",
    "IPFilter",
    "MiddlewareOptions",
    "UnpopulatedPolicy",
    "load_middleware_options",
    "parse_duration",
]
