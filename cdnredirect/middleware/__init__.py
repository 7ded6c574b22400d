"""Storage middleware: redirect decisions and the CloudFront wrapper."""

from cdnredirect.middleware.cloudfront import (
    CloudFrontMiddleware,
    new_cloudfront_middleware,
)
from cdnredirect.middleware.decider import (
    RedirectDecider,
    RedirectDecision,
    RedirectKind,
)
from cdnredirect.middleware.driver import (
    ClientRequest,
    EdgeKeyer,
    StorageDriver,
    edge_keyer_for,
    remote_ip,
    require_edge_keyer,
)
from cdnredirect.middleware.registry import (
    MiddlewareRegistrationError,
    MiddlewareRegistry,
    create,
    register,
)


__all__ = [
    "ClientRequest",
    "CloudFrontMiddleware",
    "EdgeKeyer",
    "MiddlewareRegistrationError",
    "MiddlewareRegistry",
    "RedirectDecider",
    "RedirectDecision",
    "RedirectKind",
    "StorageDriver",
    "create",
    "edge_keyer_for",
    "new_cloudfront_middleware",
    "register",
    "remote_ip",
    "require_edge_keyer",
]
