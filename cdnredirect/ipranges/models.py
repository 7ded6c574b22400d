"""Data models for network ranges and refresh policy."""

import ipaddress
from dataclasses import dataclass
from datetime import timedelta
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cdnredirect.ipranges.constants import (
    DEFAULT_IP_RANGES_URL,
    DEFAULT_UPDATE_FREQUENCY,
)


IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network
IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


def normalize_region(region: str) -> str:
    """Normalize a region label for comparison.

    Args:
        region: Raw region label.

    Returns:
        Trimmed, lower-cased label.
    """
    return region.strip().lower()


@dataclass(frozen=True)
class NetworkRange:
    """A CIDR block with an optional region label.

    The network is always canonical: host bits are zeroed when the range
    is parsed, so ``10.1.2.3/8`` becomes ``10.0.0.0/8``.

    Attributes:
        network: Canonical network block.
        region: Normalized region label, empty if unknown.
        service: Provider service label, empty if unknown.
    """

    network: IPNetwork
    region: str = ""
    service: str = ""

    @classmethod
    def parse(cls, prefix: str, region: str = "", service: str = "") -> "NetworkRange":
        """Parse a CIDR string into a NetworkRange.

        Args:
            prefix: CIDR notation (e.g. "10.0.0.0/8", "2600::/32").
            region: Region label.
            service: Service label.

        Returns:
            The parsed range.

        Raises:
            ValueError: If the prefix is not a valid CIDR block.
        """
        network = ipaddress.ip_network(prefix.strip(), strict=False)
        return cls(network=network, region=normalize_region(region), service=service)

    @property
    def version(self) -> int:
        """Get the IP version of the block (4 or 6)."""
        return self.network.version

    def __contains__(self, address: IPAddress) -> bool:
        """Check whether an address falls inside the block."""
        return address.version == self.network.version and address in self.network

    def __str__(self) -> str:
        """Render the range as CIDR text."""
        return str(self.network)


class RefreshPolicy(BaseModel):
    """Configuration for a range refresher.

    An empty region set keeps every published range.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    document_url: Annotated[str, Field(min_length=1)] = DEFAULT_IP_RANGES_URL
    regions: frozenset[str] = Field(default_factory=frozenset)
    interval: timedelta = DEFAULT_UPDATE_FREQUENCY
    timeout_seconds: Annotated[float, Field(gt=0.0, le=300.0)] = 30.0

    @field_validator("regions")
    @classmethod
    def normalize_regions(cls, v: frozenset[str]) -> frozenset[str]:
        """Normalize region labels and drop empty ones."""
        return frozenset(
            normalize_region(region) for region in v if normalize_region(region)
        )

    @field_validator("interval")
    @classmethod
    def validate_interval(cls, v: timedelta) -> timedelta:
        """Ensure the refresh interval is positive."""
        if v <= timedelta(0):
            msg = "Refresh interval must be positive"
            raise ValueError(msg)
        return v
