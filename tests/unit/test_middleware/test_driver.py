"""Unit tests for storage driver interfaces."""

import pytest

from cdnredirect.errors import CapabilityUnsupportedError
from cdnredirect.middleware.driver import (
    ClientRequest,
    edge_keyer_for,
    remote_ip,
    require_edge_keyer,
)


class PlainDriver:
    """Driver without edge keying."""

    def redirect_url(self, request: ClientRequest, path: str) -> str | None:
        return f"https://bucket.s3.amazonaws.com{path}"


class KeyingDriver(PlainDriver):
    """Driver implementing edge keying directly."""

    def edge_key(self, path: str) -> str:
        return "registry" + path


class ProvidingDriver(PlainDriver):
    """Driver answering the capability query itself."""

    def __init__(self, keyer: object) -> None:
        self._keyer = keyer

    def edge_keyer(self) -> object:
        return self._keyer


class TestRemoteIP:
    """Tests for originating address resolution."""

    @pytest.mark.unit
    def test_forwarded_for_first_entry(self) -> None:
        """Test that the first X-Forwarded-For entry wins."""
        request = ClientRequest(
            remote_addr="10.0.0.1:5000",
            headers={"x-forwarded-for": " 54.239.0.5 , 10.0.0.2", "X-Real-Ip": "1.1.1.1"},
        )
        assert remote_ip(request) == "54.239.0.5"

    @pytest.mark.unit
    def test_real_ip(self) -> None:
        """Test X-Real-Ip when X-Forwarded-For is absent."""
        request = ClientRequest(
            remote_addr="10.0.0.1:5000", headers={"X-Real-IP": "3.5.140.7"}
        )
        assert remote_ip(request) == "3.5.140.7"

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("remote_addr", "expected"),
        [
            ("[2600:1f18::1]:443", "2600:1f18::1"),
            ("[2600:1f18::1]", "2600:1f18::1"),
            ("54.239.0.5:51000", "54.239.0.5"),
            ("54.239.0.5", "54.239.0.5"),
            ("2600:1f18::1", "2600:1f18::1"),
            ("", ""),
        ],
    )
    def test_peer_address_port_stripped(self, remote_addr: str, expected: str) -> None:
        """Test the connection peer as last resort, without its port."""
        request = ClientRequest(remote_addr=remote_addr, headers={})
        assert remote_ip(request) == expected

    @pytest.mark.unit
    def test_header_values_returned_as_sent(self) -> None:
        """Test that proxy header values are not rewritten."""
        request = ClientRequest(
            remote_addr="10.0.0.1:5000", headers={"X-Real-Ip": "3.5.140.7:8080"}
        )
        assert remote_ip(request) == "3.5.140.7:8080"

    @pytest.mark.unit
    def test_blank_headers_ignored(self) -> None:
        """Test that empty proxy headers fall through."""
        request = ClientRequest(
            remote_addr="8.8.8.8",
            headers={"X-Forwarded-For": " ", "X-Real-Ip": ""},
        )
        assert remote_ip(request) == "8.8.8.8"


class TestEdgeKeyerFor:
    """Tests for the edge keying capability query."""

    @pytest.mark.unit
    def test_driver_implements_capability(self) -> None:
        """Test a driver that is its own edge keyer."""
        driver = KeyingDriver()
        assert edge_keyer_for(driver) is driver
        assert require_edge_keyer(driver).edge_key("/blobs") == "registry/blobs"

    @pytest.mark.unit
    def test_driver_without_capability(self) -> None:
        """Test a driver without edge keying."""
        assert edge_keyer_for(PlainDriver()) is None

        with pytest.raises(CapabilityUnsupportedError, match="PlainDriver") as exc_info:
            require_edge_keyer(PlainDriver())
        assert exc_info.value.driver_type == "PlainDriver"

    @pytest.mark.unit
    def test_provider_returns_keyer(self) -> None:
        """Test a driver handing out a separate keyer."""
        keyer = KeyingDriver()
        assert edge_keyer_for(ProvidingDriver(keyer)) is keyer

    @pytest.mark.unit
    @pytest.mark.parametrize("keyer", [None, "not a keyer"])
    def test_provider_opts_out(self, keyer: object) -> None:
        """Test a provider returning no usable keyer."""
        assert edge_keyer_for(ProvidingDriver(keyer)) is None
