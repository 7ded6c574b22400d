"""Background refresher owning the current IP range snapshot."""

import threading
import time
from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum, auto
from types import TracebackType

import structlog

from cdnredirect.errors import RangeFetchError, RangeParseError, RangeSourceError
from cdnredirect.fetch.client import HttpFetcher
from cdnredirect.fetch.config import FetchConfig
from cdnredirect.fetch.redact import redact_url_credentials
from cdnredirect.ipranges.constants import COMPONENT_IPRANGES
from cdnredirect.ipranges.models import RefreshPolicy
from cdnredirect.ipranges.rangeset import RangeSet
from cdnredirect.ipranges.source import RangeFetcher, RangeSource
from cdnredirect.observability.metrics import RefreshMetrics


logger = structlog.get_logger()

ErrorHook = Callable[[RangeSourceError], None]


class RefresherState(Enum):
    """Refresher states.

    State transitions:
        UNINITIALIZED -> POPULATED: First successful refresh
        POPULATED -> POPULATED: Every later successful refresh

    Failed refreshes never change the state.
    """

    UNINITIALIZED = auto()
    POPULATED = auto()


class RangeRefresher:
    """Keeps an up-to-date RangeSet, refreshed on a fixed period.

    The refresher is the only writer of the snapshot reference. Readers call
    current(), which returns whatever immutable RangeSet the reference points
    at without taking a lock; replacing the reference is a single attribute
    assignment, so readers see either the old or the new snapshot. Writers
    are serialized on an internal lock.
    """

    def __init__(
        self,
        policy: RefreshPolicy,
        source: RangeFetcher | None = None,
        on_error: ErrorHook | None = None,
    ) -> None:
        """Initialize the refresher.

        Args:
            policy: Document URL, region filter, and refresh interval.
            source: Range source (an HTTP RangeSource if omitted).
            on_error: Hook called with every refresh failure.
        """
        self._policy = policy
        self._source = source or RangeSource(
            HttpFetcher(FetchConfig(timeout_seconds=policy.timeout_seconds))
        )
        self._on_error = on_error
        self._snapshot = RangeSet.empty()
        self._state = RefresherState.UNINITIALIZED
        self._last_error: RangeSourceError | None = None
        self._last_success_at: datetime | None = None
        self._write_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._metrics = RefreshMetrics.get_instance()
        self._log = logger.bind(
            component=COMPONENT_IPRANGES,
            url=redact_url_credentials(policy.document_url),
            regions=sorted(policy.regions),
        )

    @property
    def policy(self) -> RefreshPolicy:
        """Get the refresh policy."""
        return self._policy

    @property
    def state(self) -> RefresherState:
        """Get the current state."""
        return self._state

    @property
    def populated(self) -> bool:
        """Check whether at least one refresh has succeeded."""
        return self._state == RefresherState.POPULATED

    @property
    def last_error(self) -> RangeSourceError | None:
        """Get the error of the most recent failed refresh, if any."""
        return self._last_error

    @property
    def last_success_at(self) -> datetime | None:
        """Get the time of the most recent successful refresh."""
        return self._last_success_at

    @property
    def running(self) -> bool:
        """Check whether the background loop is running."""
        return self._thread is not None and self._thread.is_alive()

    def current(self) -> RangeSet:
        """Get the latest successfully fetched snapshot.

        Never blocks and never fetches. Returns the empty RangeSet if no
        refresh has succeeded yet.
        """
        return self._snapshot

    def refresh(self) -> bool:
        """Fetch the document once and swap in the new snapshot.

        Never raises. Failures are logged, counted, and passed to the error
        hook; the previous snapshot is kept. Exceptions from outside the
        RangeSourceError family are wrapped in a plain RangeSourceError and
        counted as UNEXPECTED.

        Returns:
            True if the snapshot was replaced.
        """
        with self._write_lock:
            start_time_ns = time.perf_counter_ns()
            try:
                snapshot = self._source.fetch(
                    self._policy.document_url, self._policy.regions
                )
            except RangeSourceError as e:
                duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
                self._record_failure(e, duration_ms)
                return False
            except Exception as e:  # noqa: BLE001
                # A crash here must not kill start() or the background loop
                duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
                self._log.exception("ip_ranges_refresh_crashed")
                error = RangeSourceError(f"Unexpected refresh failure: {e!r}")
                error.__cause__ = e
                self._record_failure(error, duration_ms)
                return False

            duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
            self._snapshot = snapshot
            self._state = RefresherState.POPULATED
            self._last_error = None
            self._last_success_at = datetime.now(UTC)

        self._metrics.record_success(len(snapshot), duration_ms)
        self._log.info(
            "ip_ranges_refreshed",
            ipv4_ranges=len(snapshot.ipv4_ranges),
            ipv6_ranges=len(snapshot.ipv6_ranges),
            duration_ms=round(duration_ms, 2),
        )
        return True

    def _record_failure(self, error: RangeSourceError, duration_ms: float) -> None:
        """Report a failed refresh.

        Args:
            error: The failure.
            duration_ms: Duration of the attempt in milliseconds.
        """
        self._last_error = error
        if isinstance(error, RangeFetchError):
            error_kind = error.error.error_class.value
            transient = error.error.is_transient
        elif isinstance(error, RangeParseError):
            error_kind = "PARSE"
            transient = False
        else:
            error_kind = "UNEXPECTED"
            transient = False

        self._metrics.record_failure(error_kind, duration_ms)
        self._log.warning(
            "ip_ranges_refresh_failed",
            error_kind=error_kind,
            transient=transient,
            error=str(error),
            populated=self.populated,
        )
        if self._on_error is not None:
            try:
                self._on_error(error)
            except Exception:  # noqa: BLE001
                self._log.exception("ip_ranges_error_hook_failed")

    def start(self) -> None:
        """Run the initial refresh and start the background loop.

        A failed initial refresh does not prevent startup; the refresher
        serves the empty RangeSet until a later refresh succeeds.

        Raises:
            RuntimeError: If the refresher was already started.
        """
        if self._thread is not None:
            msg = "RangeRefresher already started"
            raise RuntimeError(msg)

        if not self.refresh():
            self._log.warning(
                "ip_ranges_initial_refresh_failed",
                retry_in_seconds=self._policy.interval.total_seconds(),
            )

        self._thread = threading.Thread(
            target=self._run,
            name="ip-range-refresher",
            daemon=True,
        )
        self._thread.start()

    def _run(self) -> None:
        """Background loop: refresh once per interval until stopped."""
        interval = self._policy.interval.total_seconds()
        while not self._stop_event.wait(interval):
            self.refresh()
        self._log.debug("ip_range_refresher_stopped")

    def stop(self, timeout: float | None = None) -> None:
        """Stop the background loop.

        Safe to call more than once. current() keeps returning the last
        snapshot afterwards.

        Args:
            timeout: Seconds to wait for the loop to exit.
        """
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def __enter__(self) -> "RangeRefresher":
        """Start the refresher."""
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Stop the refresher."""
        self.stop()
