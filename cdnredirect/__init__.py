"""CloudFront redirect middleware with IP-range based origin bypass."""

__version__ = "0.1.0"
