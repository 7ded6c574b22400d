"""IP range subsystem: provider documents, snapshots, and refresh.

- RangeSource fetches and parses a provider document
- RangeSet is an immutable snapshot with CIDR membership queries
- RangeRefresher keeps the current snapshot fresh in the background
"""

from cdnredirect.ipranges.constants import (
    DEFAULT_IP_RANGES_URL,
    DEFAULT_UPDATE_FREQUENCY,
)
from cdnredirect.ipranges.models import NetworkRange, RefreshPolicy
from cdnredirect.ipranges.rangeset import RangeSet, parse_address
from cdnredirect.ipranges.refresher import RangeRefresher, RefresherState
from cdnredirect.ipranges.source import (
    RangeFetcher,
    RangeSource,
    parse_body,
    parse_document,
)


__all__ = [
    "DEFAULT_IP_RANGES_URL",
    "DEFAULT_UPDATE_FREQUENCY",
    "NetworkRange",
    "RangeFetcher",
    "RangeRefresher",
    "RangeSet",
    "RangeSource",
    "RefreshPolicy",
    "RefresherState",
    "parse_address",
    "parse_body",
    "parse_document",
]
