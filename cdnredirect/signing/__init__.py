"""Signed URL generation for edge redirects."""

from cdnredirect.signing.signer import (
    DEFAULT_SIGNED_URL_DURATION,
    SigningContext,
    URLSigner,
    load_private_key,
)


__all__ = [
    "DEFAULT_SIGNED_URL_DURATION",
    "SigningContext",
    "URLSigner",
    "load_private_key",
]
