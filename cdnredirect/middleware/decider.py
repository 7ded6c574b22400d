"""Per-request redirect decision between origin and signed edge URLs."""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from cdnredirect.config.policies import UnpopulatedPolicy
from cdnredirect.ipranges.refresher import RangeRefresher
from cdnredirect.middleware.driver import EdgeKeyer
from cdnredirect.signing.signer import URLSigner


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Get the current UTC time."""
    return datetime.now(UTC)


class RedirectKind(str, Enum):
    """Where a request is redirected to."""

    ORIGIN = "origin"
    EDGE = "edge"


@dataclass(frozen=True)
class RedirectDecision:
    """Outcome of a redirect decision.

    Attributes:
        kind: Origin or edge.
        target: Unsigned edge resource URL (edge decisions only).
        expires_at: Expiry of the signed URL (edge decisions only).
    """

    kind: RedirectKind
    target: str | None = None
    expires_at: datetime | None = None

    @classmethod
    def origin(cls) -> "RedirectDecision":
        """Decision to use the origin store's own redirect."""
        return cls(kind=RedirectKind.ORIGIN)

    @classmethod
    def edge(cls, target: str, expires_at: datetime) -> "RedirectDecision":
        """Decision to use a signed edge URL."""
        return cls(kind=RedirectKind.EDGE, target=target, expires_at=expires_at)

    @property
    def is_origin(self) -> bool:
        """Check whether the origin store's redirect should be used."""
        return self.kind == RedirectKind.ORIGIN


class RedirectDecider:
    """Decides, per request, between an origin redirect and a signed edge URL.

    Reads the refresher's current snapshot once per decision and never
    mutates shared state.
    """

    def __init__(
        self,
        base_url: str,
        signer: URLSigner,
        refresher: RangeRefresher | None = None,
        unpopulated_policy: UnpopulatedPolicy = UnpopulatedPolicy.FAIL_CLOSED,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the decider.

        Args:
            base_url: Absolute distribution URL ending in "/".
            signer: Signer for edge URLs.
            refresher: Range refresher; None disables filtering.
            unpopulated_policy: Decision while the refresher has no data.
            clock: Source of the current time.
        """
        self._base_url = base_url
        self._signer = signer
        self._refresher = refresher
        self._unpopulated_policy = unpopulated_policy
        self._clock = clock

    @property
    def base_url(self) -> str:
        """Get the distribution base URL."""
        return self._base_url

    @property
    def filtering_enabled(self) -> bool:
        """Check whether requests are classified by range membership."""
        return self._refresher is not None

    @property
    def unpopulated_policy(self) -> UnpopulatedPolicy:
        """Get the policy for a never-populated refresher."""
        return self._unpopulated_policy

    def is_close_to_origin(self, origin_address: str) -> bool:
        """Check whether a client should bypass the edge.

        Args:
            origin_address: Originating client address.

        Returns:
            True if the client is inside the configured ranges.
        """
        refresher = self._refresher
        if refresher is None:
            return False
        if not refresher.populated:
            return self._unpopulated_policy == UnpopulatedPolicy.FAIL_OPEN
        return refresher.current().contains(origin_address)

    def decide(
        self,
        origin_address: str,
        content_path: str,
        edge_keyer: EdgeKeyer | None,
    ) -> RedirectDecision:
        """Decide where to redirect a request.

        Args:
            origin_address: Originating client address.
            content_path: Content path in the store.
            edge_keyer: The store's edge keying capability, or None.

        Returns:
            The redirect decision.
        """
        if edge_keyer is None:
            return RedirectDecision.origin()

        if self.is_close_to_origin(origin_address):
            return RedirectDecision.origin()

        target = self._base_url + edge_keyer.edge_key(content_path).lstrip("/")
        return RedirectDecision.edge(
            target=target,
            expires_at=self._signer.expiry(self._clock()),
        )

    def sign(self, decision: RedirectDecision) -> str:
        """Mint the signed URL for an edge decision.

        Args:
            decision: An edge decision.

        Returns:
            Signed edge URL.

        Raises:
            ValueError: If the decision is not an edge decision.
            SigningError: If signing fails.
        """
        if decision.target is None or decision.expires_at is None:
            msg = "only edge decisions can be signed"
            raise ValueError(msg)
        return self._signer.sign(decision.target, decision.expires_at)
