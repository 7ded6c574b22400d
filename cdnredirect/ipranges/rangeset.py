"""Immutable snapshot of network ranges with membership queries."""

import bisect
import ipaddress
from collections.abc import Iterable
from datetime import datetime

from cdnredirect.ipranges.models import IPAddress, NetworkRange


# Sorted, disjoint [first, last] address intervals of one family
IntervalIndex = tuple[tuple[int, ...], tuple[int, ...]]


def parse_address(text: str) -> IPAddress | None:
    """Parse a client address from its textual form.

    Accepts bare IPv4/IPv6 addresses as well as the forms found in request
    metadata: ``1.2.3.4:8080``, ``[2001:db8::1]:443``, ``[::1]`` and
    zone-qualified ``fe80::1%eth0``. IPv4-mapped IPv6 addresses are
    unwrapped to IPv4.

    Args:
        text: Address text.

    Returns:
        The parsed address, or None if the text is not an address.
    """
    host = text.strip()
    if not host:
        return None

    if host.startswith("["):
        end = host.find("]")
        if end == -1:
            return None
        host = host[1:end]
    elif host.count(":") == 1:
        # IPv4 with port
        host = host.split(":", 1)[0]

    host = host.split("%", 1)[0]

    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return None

    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped:
        return address.ipv4_mapped
    return address


def build_interval_index(ranges: Iterable[NetworkRange]) -> IntervalIndex:
    """Collapse same-family ranges into disjoint integer intervals.

    Nested and overlapping blocks merge, so at most one interval can hold a
    given address and a lookup is a single bisect.

    Args:
        ranges: Ranges of a single address family.

    Returns:
        Interval start and end addresses, both ascending.
    """
    starts: list[int] = []
    ends: list[int] = []
    for network in ipaddress.collapse_addresses(r.network for r in ranges):
        starts.append(int(network.network_address))
        ends.append(int(network.broadcast_address))
    return tuple(starts), tuple(ends)


class RangeSet:
    """Point-in-time set of network ranges.

    A RangeSet is never mutated after construction; refreshing produces a
    new instance. Ranges are kept per address family and sorted; each family
    also gets an interval index so that membership, which is exact CIDR
    containment, costs one binary search.
    """

    __slots__ = (
        "_fetched_at",
        "_ipv4",
        "_ipv4_index",
        "_ipv6",
        "_ipv6_index",
        "_regions",
    )

    def __init__(
        self,
        ranges: Iterable[NetworkRange] = (),
        regions: Iterable[str] = (),
        fetched_at: datetime | None = None,
    ) -> None:
        """Initialize the range set.

        Args:
            ranges: Ranges to include.
            regions: Region filter the ranges were selected with (empty
                means unfiltered).
            fetched_at: When the source document was retrieved.
        """
        ipv4: list[NetworkRange] = []
        ipv6: list[NetworkRange] = []
        for network_range in ranges:
            if network_range.version == 4:
                ipv4.append(network_range)
            else:
                ipv6.append(network_range)

        def sort_key(r: NetworkRange) -> tuple[int, int, str]:
            return (int(r.network.network_address), r.network.prefixlen, r.region)

        self._ipv4: tuple[NetworkRange, ...] = tuple(sorted(ipv4, key=sort_key))
        self._ipv6: tuple[NetworkRange, ...] = tuple(sorted(ipv6, key=sort_key))
        self._ipv4_index = build_interval_index(self._ipv4)
        self._ipv6_index = build_interval_index(self._ipv6)
        self._regions = frozenset(regions)
        self._fetched_at = fetched_at

    @classmethod
    def empty(cls) -> "RangeSet":
        """Create a RangeSet that contains no address."""
        return cls()

    @property
    def ranges(self) -> tuple[NetworkRange, ...]:
        """All ranges, IPv4 first."""
        return self._ipv4 + self._ipv6

    @property
    def ipv4_ranges(self) -> tuple[NetworkRange, ...]:
        """IPv4 ranges."""
        return self._ipv4

    @property
    def ipv6_ranges(self) -> tuple[NetworkRange, ...]:
        """IPv6 ranges."""
        return self._ipv6

    @property
    def regions(self) -> frozenset[str]:
        """Region filter the set was built with."""
        return self._regions

    @property
    def fetched_at(self) -> datetime | None:
        """When the source document was retrieved, if known."""
        return self._fetched_at

    def contains(self, address: str | IPAddress) -> bool:
        """Check whether an address falls inside any range.

        Unparsable addresses are never contained.

        Args:
            address: Address text (optionally with port) or address object.

        Returns:
            True if at least one range contains the address.
        """
        parsed = parse_address(address) if isinstance(address, str) else address
        if parsed is None:
            return False

        starts, ends = self._ipv4_index if parsed.version == 4 else self._ipv6_index
        value = int(parsed)
        position = bisect.bisect_right(starts, value) - 1
        return position >= 0 and value <= ends[position]

    def __contains__(self, address: object) -> bool:
        """Support ``address in range_set``."""
        if isinstance(address, str | ipaddress.IPv4Address | ipaddress.IPv6Address):
            return self.contains(address)
        return False

    def __len__(self) -> int:
        """Get the number of ranges."""
        return len(self._ipv4) + len(self._ipv6)

    def __bool__(self) -> bool:
        """A RangeSet is truthy when it holds at least one range."""
        return len(self) > 0

    def __repr__(self) -> str:
        """Summarize the set."""
        return (
            f"RangeSet(ipv4={len(self._ipv4)}, ipv6={len(self._ipv6)}, "
            f"regions={sorted(self._regions)})"
        )
