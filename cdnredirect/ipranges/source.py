"""Range source: fetch and parse provider IP range documents."""

import json
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any, Protocol

import structlog

from cdnredirect.errors import RangeFetchError, RangeParseError
from cdnredirect.fetch.client import HttpFetcher
from cdnredirect.fetch.models import FetchError, FetchErrorClass
from cdnredirect.fetch.redact import redact_url_credentials
from cdnredirect.ipranges.constants import (
    COMPONENT_IPRANGES,
    IPV4_PREFIX_FIELD,
    IPV4_PREFIXES_KEY,
    IPV6_PREFIX_FIELD,
    IPV6_PREFIXES_KEY,
    REGION_FIELD,
    SERVICE_FIELD,
)
from cdnredirect.ipranges.models import NetworkRange, normalize_region
from cdnredirect.ipranges.rangeset import RangeSet
from cdnredirect.observability.metrics import RefreshMetrics


logger = structlog.get_logger()


class RangeFetcher(Protocol):
    """Anything that can produce a RangeSet for a document and region filter.

    Allows dependency injection of the source for testing the refresher.
    """

    def fetch(self, document_url: str, regions: Iterable[str] = ()) -> RangeSet:
        """Fetch and parse a range document.

        Args:
            document_url: Provider document URL.
            regions: Region labels to keep (empty keeps all).

        Returns:
            Parsed RangeSet.
        """
        ...


def _parse_entries(
    entries: list[Any],
    prefix_field: str,
    regions: frozenset[str],
) -> tuple[list[NetworkRange], int]:
    """Parse one prefix list of the document.

    Args:
        entries: Raw entries.
        prefix_field: Key holding the CIDR in each entry.
        regions: Normalized region filter (empty keeps all).

    Returns:
        Tuple of (kept ranges, number of malformed entries skipped).
    """
    kept: list[NetworkRange] = []
    skipped = 0

    for entry in entries:
        if not isinstance(entry, Mapping):
            skipped += 1
            continue

        prefix = entry.get(prefix_field)
        region = entry.get(REGION_FIELD) or ""
        service = entry.get(SERVICE_FIELD) or ""
        if not isinstance(prefix, str) or not isinstance(region, str):
            skipped += 1
            continue

        if regions and normalize_region(region) not in regions:
            continue

        try:
            network_range = NetworkRange.parse(
                prefix, region=region, service=str(service)
            )
        except ValueError as e:
            logger.debug(
                "ip_range_entry_skipped",
                component=COMPONENT_IPRANGES,
                prefix=prefix,
                error=str(e),
            )
            skipped += 1
            continue

        kept.append(network_range)

    return kept, skipped


def parse_document(
    document: object,
    regions: Iterable[str] = (),
    fetched_at: datetime | None = None,
) -> RangeSet:
    """Build a RangeSet from a decoded provider document.

    The document must be an object holding a ``prefixes`` and/or an
    ``ipv6_prefixes`` list. Individual malformed entries are dropped.

    Args:
        document: Decoded JSON document.
        regions: Region labels to keep (case-insensitive; empty keeps all).
        fetched_at: When the document was retrieved.

    Returns:
        RangeSet of the matching entries.

    Raises:
        RangeParseError: If the document does not have the expected shape.
    """
    if not isinstance(document, Mapping):
        msg = f"Expected a JSON object, got {type(document).__name__}"
        raise RangeParseError(msg)

    if IPV4_PREFIXES_KEY not in document and IPV6_PREFIXES_KEY not in document:
        msg = f"Document has neither '{IPV4_PREFIXES_KEY}' nor '{IPV6_PREFIXES_KEY}'"
        raise RangeParseError(msg)

    region_filter = frozenset(
        normalize_region(region) for region in regions if normalize_region(region)
    )

    ranges: list[NetworkRange] = []
    skipped_total = 0
    for key, prefix_field in (
        (IPV4_PREFIXES_KEY, IPV4_PREFIX_FIELD),
        (IPV6_PREFIXES_KEY, IPV6_PREFIX_FIELD),
    ):
        entries = document.get(key, [])
        if not isinstance(entries, list):
            msg = f"'{key}' must be a list, got {type(entries).__name__}"
            raise RangeParseError(msg)
        kept, skipped = _parse_entries(entries, prefix_field, region_filter)
        ranges.extend(kept)
        skipped_total += skipped

    if skipped_total:
        RefreshMetrics.get_instance().record_skipped(skipped_total)
        logger.warning(
            "ip_range_entries_skipped",
            component=COMPONENT_IPRANGES,
            skipped=skipped_total,
        )

    return RangeSet(ranges, regions=region_filter, fetched_at=fetched_at)


def parse_body(
    body: bytes,
    regions: Iterable[str] = (),
    fetched_at: datetime | None = None,
) -> RangeSet:
    """Decode a JSON document body and build a RangeSet.

    Args:
        body: Raw response body.
        regions: Region labels to keep.
        fetched_at: When the document was retrieved.

    Returns:
        Parsed RangeSet.

    Raises:
        RangeParseError: If the body is not valid JSON of the expected shape.
    """
    try:
        document = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        msg = f"Invalid JSON document: {e}"
        raise RangeParseError(msg) from e
    return parse_document(document, regions=regions, fetched_at=fetched_at)


class RangeSource:
    """Fetches a provider range document over HTTP and parses it."""

    def __init__(self, fetcher: HttpFetcher | None = None) -> None:
        """Initialize the source.

        Args:
            fetcher: HTTP fetcher; a default one is created if omitted.
        """
        self._fetcher = fetcher or HttpFetcher()

    def fetch(self, document_url: str, regions: Iterable[str] = ()) -> RangeSet:
        """Fetch and parse a range document.

        Args:
            document_url: Provider document URL.
            regions: Region labels to keep (empty keeps all).

        Returns:
            Parsed RangeSet.

        Raises:
            RangeFetchError: On timeout, connection failure, or non-2xx status.
            RangeParseError: If the document cannot be parsed.
        """
        result = self._fetcher.get(document_url)
        if not result.is_success:
            error = result.error or FetchError(
                error_class=FetchErrorClass.UNKNOWN,
                message=f"Unexpected status ({result.status_code})",
                status_code=result.status_code,
            )
            raise RangeFetchError(redact_url_credentials(document_url), error)

        return parse_body(
            result.body_bytes, regions=regions, fetched_at=datetime.now(UTC)
        )
