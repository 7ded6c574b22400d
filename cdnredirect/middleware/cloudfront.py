"""CloudFront wrapper for storage drivers.

Constructs temporary signed CloudFront URLs from the storage driver's
object keys, so callers can issue temporary redirects to the edge instead
of the origin store. Clients inside the configured IP ranges keep getting
the store's own redirect.
"""

import threading
from collections.abc import Mapping
from typing import Any

import structlog

from cdnredirect.config.options import MiddlewareOptions
from cdnredirect.config.policies import UnpopulatedPolicy
from cdnredirect.errors import CapabilityUnsupportedError, SigningError
from cdnredirect.ipranges.refresher import ErrorHook, RangeRefresher
from cdnredirect.ipranges.source import RangeFetcher
from cdnredirect.middleware.decider import (
    Clock,
    RedirectDecider,
    RedirectDecision,
    utc_now,
)
from cdnredirect.middleware.driver import (
    ClientRequest,
    EdgeKeyer,
    StorageDriver,
    remote_ip,
    require_edge_keyer,
)
from cdnredirect.observability.metrics import RedirectMetrics
from cdnredirect.signing.signer import URLSigner


logger = structlog.get_logger()

COMPONENT_MIDDLEWARE = "cloudfront"


class CloudFrontMiddleware:
    """Storage driver wrapper that redirects reads through CloudFront.

    Attribute access not handled here is delegated to the wrapped driver,
    so the middleware can be used wherever the driver is.
    """

    def __init__(
        self,
        driver: StorageDriver,
        decider: RedirectDecider,
        refresher: RangeRefresher | None = None,
    ) -> None:
        """Initialize the middleware.

        Args:
            driver: Wrapped storage driver.
            decider: Redirect decision logic.
            refresher: Range refresher owned by this middleware, if any.
        """
        self._driver = driver
        self._decider = decider
        self._refresher = refresher
        self._capability_warned = threading.Event()
        self._metrics = RedirectMetrics.get_instance()
        self._log = logger.bind(component=COMPONENT_MIDDLEWARE)

    @property
    def driver(self) -> StorageDriver:
        """Get the wrapped storage driver."""
        return self._driver

    @property
    def decider(self) -> RedirectDecider:
        """Get the redirect decider."""
        return self._decider

    @property
    def refresher(self) -> RangeRefresher | None:
        """Get the range refresher, None when filtering is disabled."""
        return self._refresher

    def __getattr__(self, name: str) -> Any:
        """Delegate unknown attributes to the wrapped driver."""
        if name.startswith("_"):
            raise AttributeError(name)
        return getattr(self._driver, name)

    def decide(self, request: ClientRequest, path: str) -> RedirectDecision:
        """Decide where a request for a path should be redirected.

        Args:
            request: The incoming request.
            path: Content path in the store.

        Returns:
            The redirect decision.
        """
        keyer: EdgeKeyer | None
        try:
            keyer = require_edge_keyer(self._driver)
        except CapabilityUnsupportedError as e:
            self._report_capability_unsupported(e)
            keyer = None

        decision = self._decider.decide(remote_ip(request), path, keyer)
        self._metrics.record_decision(decision.kind.value)
        return decision

    def redirect_url(self, request: ClientRequest, path: str) -> str | None:
        """Get the URL a client should be redirected to for a path.

        Args:
            request: The incoming request.
            path: Content path in the store.

        Returns:
            A signed CloudFront URL, or the store's own redirect URL.

        Raises:
            SigningError: If the CloudFront URL cannot be signed.
        """
        decision = self.decide(request, path)
        if decision.is_origin:
            return self._driver.redirect_url(request, path)

        try:
            return self._decider.sign(decision)
        except SigningError:
            self._metrics.record_signing_failure()
            raise

    def _report_capability_unsupported(self, error: CapabilityUnsupportedError) -> None:
        """Count a pass-through and warn about it the first time."""
        self._metrics.record_capability_unsupported()
        if not self._capability_warned.is_set():
            self._capability_warned.set()
            self._log.warning(
                "edge_keying_unsupported",
                driver=error.driver_type,
                error=str(error),
            )

    def close(self) -> None:
        """Stop the background range refresher, if any."""
        if self._refresher is not None:
            self._refresher.stop()


def new_cloudfront_middleware(
    driver: StorageDriver,
    options: Mapping[str, Any],
    source: RangeFetcher | None = None,
    on_refresh_error: ErrorHook | None = None,
    clock: Clock = utc_now,
) -> CloudFrontMiddleware:
    """Construct a CloudFront middleware from an option map.

    Required options: baseurl, privatekey, keypairid.
    Optional options: duration, updatefrequency, iprangesurl, ipfilteredby
    ("none", "aws", or "awsregion"), awsregion (comma separated regions,
    required for "awsregion"), unpopulatedpolicy ("failclosed" or "failopen").

    When IP filtering is enabled the range refresher is started before this
    function returns; a failed initial fetch does not prevent construction.

    Args:
        driver: Storage driver to wrap.
        options: Raw option map.
        source: Range source override, mainly for tests.
        on_refresh_error: Hook called with every range refresh failure.
        clock: Source of the current time.

    Returns:
        The middleware.

    Raises:
        ConfigError: If any option is missing or invalid.
    """
    parsed = MiddlewareOptions.from_options(options)
    signer = URLSigner.from_key_file(
        parsed.private_key, parsed.key_pair_id, parsed.duration
    )

    refresher: RangeRefresher | None = None
    policy = parsed.refresh_policy()
    if policy is not None:
        refresher = RangeRefresher(policy, source=source, on_error=on_refresh_error)
        refresher.start()

    decider = RedirectDecider(
        base_url=parsed.base_url,
        signer=signer,
        refresher=refresher,
        unpopulated_policy=parsed.unpopulated_policy,
        clock=clock,
    )

    logger.info(
        "cloudfront_middleware_created",
        component=COMPONENT_MIDDLEWARE,
        base_url=parsed.base_url,
        ip_filtered_by=parsed.ip_filtered_by.value,
        regions=sorted(parsed.aws_regions),
        duration_seconds=parsed.duration.total_seconds(),
        unpopulated_policy=parsed.unpopulated_policy.value,
    )
    if parsed.unpopulated_policy == UnpopulatedPolicy.FAIL_OPEN and refresher is None:
        logger.warning(
            "cloudfront_unpopulated_policy_unused",
            component=COMPONENT_MIDDLEWARE,
            reason="ip filtering is disabled",
        )

    return CloudFrontMiddleware(driver, decider, refresher)
