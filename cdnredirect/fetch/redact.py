"""Redaction of secrets in URLs before they are logged."""

import re


REDACTED_VALUE = "[REDACTED]"

# userinfo part of an http(s) URL: user:password@ or token@
_USERINFO_PATTERN = re.compile(r"(https?://)[^/@\s]+@")

# Signature parameter of a signed CloudFront URL
_SIGNATURE_PATTERN = re.compile(r"([?&]Signature=)[^&#\s]*")


def redact_url_credentials(url: str) -> str:
    """Mask credentials and signatures in a URL.

    Args:
        url: URL that may carry userinfo or a ``Signature`` parameter.

    Returns:
        The URL with those parts replaced by a placeholder.
    """
    url = _USERINFO_PATTERN.sub(rf"\1{REDACTED_VALUE}@", url)
    return _SIGNATURE_PATTERN.sub(rf"\1{REDACTED_VALUE}", url)
