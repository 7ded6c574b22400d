"""Signed CloudFront URLs with canned expiry policies."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from urllib.parse import urlsplit

import structlog
from botocore.exceptions import BotoCoreError
from botocore.signers import CloudFrontSigner
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from cdnredirect.errors import ConfigError, SigningError


logger = structlog.get_logger()

DEFAULT_SIGNED_URL_DURATION = timedelta(minutes=20)


@dataclass(frozen=True)
class SigningContext:
    """Key material and expiry settings for signed URLs.

    Attributes:
        key_pair_id: CloudFront key pair (public key) identifier.
        private_key: RSA private key matching the key pair.
        duration: Lifetime of each signed URL.
    """

    key_pair_id: str
    private_key: rsa.RSAPrivateKey
    duration: timedelta = DEFAULT_SIGNED_URL_DURATION


def load_private_key(path: Path) -> rsa.RSAPrivateKey:
    """Load an unencrypted PEM RSA private key.

    Both PKCS#1 ("RSA PRIVATE KEY") and PKCS#8 ("PRIVATE KEY") encodings
    are accepted.

    Args:
        path: Path to the PEM file.

    Returns:
        The RSA private key.

    Raises:
        ConfigError: If the file cannot be read or is not an RSA key.
    """
    try:
        pem = path.read_bytes()
    except OSError as e:
        raise ConfigError("privatekey", f"failed to read privatekey file: {e}") from e

    try:
        key = serialization.load_pem_private_key(pem, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise ConfigError(
            "privatekey", f"failed to decode private key as an rsa private key: {e}"
        ) from e

    if not isinstance(key, rsa.RSAPrivateKey):
        raise ConfigError(
            "privatekey",
            f"private key must be an RSA key, got {type(key).__name__}",
        )
    return key


class URLSigner:
    """Produces time-limited signed URLs for a CloudFront distribution.

    Signatures use RSA PKCS#1 v1.5 over SHA-1, as CloudFront requires, so the
    same URL, expiry, and key always yield the same signed URL.
    """

    def __init__(self, context: SigningContext) -> None:
        """Initialize the signer.

        Args:
            context: Key material and expiry settings.
        """
        self._context = context
        self._signer = CloudFrontSigner(context.key_pair_id, self._rsa_sign)

    @classmethod
    def from_key_file(
        cls,
        path: str | Path,
        key_pair_id: str,
        duration: timedelta = DEFAULT_SIGNED_URL_DURATION,
    ) -> "URLSigner":
        """Create a signer from a PEM key file.

        Args:
            path: Path to the PEM RSA private key.
            key_pair_id: CloudFront key pair identifier.
            duration: Lifetime of each signed URL.

        Returns:
            Configured signer.

        Raises:
            ConfigError: If the key cannot be loaded.
        """
        private_key = load_private_key(Path(path))
        return cls(
            SigningContext(
                key_pair_id=key_pair_id,
                private_key=private_key,
                duration=duration,
            )
        )

    @property
    def key_pair_id(self) -> str:
        """Get the key pair identifier."""
        return self._context.key_pair_id

    @property
    def duration(self) -> timedelta:
        """Get the signed URL lifetime."""
        return self._context.duration

    def expiry(self, now: datetime) -> datetime:
        """Compute the expiry instant for a URL signed at ``now``."""
        return now + self._context.duration

    def _rsa_sign(self, message: bytes) -> bytes:
        return self._context.private_key.sign(
            message, padding.PKCS1v15(), hashes.SHA1()  # noqa: S303
        )

    def sign(self, resource_url: str, expires_at: datetime) -> str:
        """Sign a resource URL with a canned policy.

        Args:
            resource_url: Absolute URL of the resource on the distribution.
            expires_at: Timezone-aware instant after which the URL is invalid.

        Returns:
            The URL with Expires, Signature, and Key-Pair-Id parameters.

        Raises:
            SigningError: If the URL is malformed or signing fails.
        """
        parts = urlsplit(resource_url)
        if not parts.scheme or not parts.netloc:
            msg = f"resource URL must be absolute: {resource_url!r}"
            raise SigningError(msg)
        if expires_at.tzinfo is None:
            msg = "expiry must be timezone-aware"
            raise SigningError(msg)

        try:
            return self._signer.generate_presigned_url(
                resource_url, date_less_than=expires_at
            )
        except (ValueError, TypeError, BotoCoreError) as e:
            logger.warning(
                "url_signing_failed",
                component="signing",
                key_pair_id=self._context.key_pair_id,
                error=str(e),
            )
            msg = f"failed to sign {resource_url}: {e}"
            raise SigningError(msg) from e
