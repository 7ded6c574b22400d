"""Storage driver interfaces consumed by the middleware.

The base interface only promises a redirect URL. Edge keying is a
separate, optional capability that is queried explicitly with
edge_keyer_for() instead of being assumed.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from cdnredirect.errors import CapabilityUnsupportedError


@dataclass(frozen=True)
class ClientRequest:
    """The parts of an incoming request the middleware looks at.

    Attributes:
        remote_addr: Peer address of the connection, usually "host:port".
        headers: Request headers (names matched case-insensitively).
    """

    remote_addr: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)

    def header(self, name: str) -> str | None:
        """Get a header value by case-insensitive name.

        Args:
            name: Header name.

        Returns:
            The header value, or None if absent.
        """
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None


def remote_ip(request: ClientRequest) -> str:
    """Determine the originating client address of a request.

    Proxy headers win over the connection peer: the first X-Forwarded-For
    entry, then X-Real-Ip, then remote_addr with its port stripped.

    Args:
        request: The request.

    Returns:
        Address text; header values are returned as sent and may be
        unparsable.
    """
    forwarded = request.header("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",", 1)[0].strip()
        if first:
            return first

    real_ip = request.header("X-Real-Ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    return strip_port(request.remote_addr)


def strip_port(address: str) -> str:
    """Remove the port from a "host:port" or "[v6host]:port" peer address.

    Bare IPv6 addresses (more than one colon, no brackets) are returned
    unchanged.

    Args:
        address: Peer address text.

    Returns:
        The host part.
    """
    address = address.strip()
    if address.startswith("["):
        end = address.find("]")
        return address[1:end] if end != -1 else address
    if address.count(":") == 1:
        return address.split(":", 1)[0]
    return address


class StorageDriver(Protocol):
    """Minimal storage driver interface wrapped by the middleware."""

    def redirect_url(self, request: ClientRequest, path: str) -> str | None:
        """Get a URL the client may be redirected to for a stored path.

        Args:
            request: The incoming request.
            path: Content path in the store.

        Returns:
            Redirect URL, or None if the driver does not redirect.
        """
        ...


@runtime_checkable
class EdgeKeyer(Protocol):
    """Capability of deriving the edge-cacheable object key for a path."""

    def edge_key(self, path: str) -> str:
        """Get the bucket key cached by the edge for a content path.

        Args:
            path: Content path in the store.

        Returns:
            Object key relative to the distribution root.
        """
        ...


class EdgeKeyerProvider(Protocol):
    """Drivers that answer the capability query themselves."""

    def edge_keyer(self) -> EdgeKeyer | None:
        """Get the driver's edge keyer, or None if unsupported."""
        ...


def edge_keyer_for(driver: object) -> EdgeKeyer | None:
    """Query a storage driver for the edge keying capability.

    A driver may answer through an ``edge_keyer()`` method (returning None
    to opt out), or by implementing ``edge_key(path)`` itself.

    Args:
        driver: The storage driver.

    Returns:
        The edge keyer, or None if the capability is absent.
    """
    provider = getattr(driver, "edge_keyer", None)
    if callable(provider):
        keyer = provider()
        return keyer if isinstance(keyer, EdgeKeyer) else None
    if isinstance(driver, EdgeKeyer):
        return driver
    return None


def require_edge_keyer(driver: object) -> EdgeKeyer:
    """Query a storage driver for the edge keying capability, or fail.

    Args:
        driver: The storage driver.

    Returns:
        The edge keyer.

    Raises:
        CapabilityUnsupportedError: If the capability is absent.
    """
    keyer = edge_keyer_for(driver)
    if keyer is None:
        raise CapabilityUnsupportedError(driver)
    return keyer
