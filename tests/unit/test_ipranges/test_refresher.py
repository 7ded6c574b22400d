"""Unit tests for the background range refresher."""

import threading
from datetime import timedelta

import httpx
import pytest

from cdnredirect.errors import RangeFetchError, RangeParseError, RangeSourceError
from cdnredirect.fetch.client import HttpFetcher
from cdnredirect.fetch.models import FetchErrorClass
from cdnredirect.ipranges.models import RefreshPolicy
from cdnredirect.ipranges.rangeset import RangeSet
from cdnredirect.ipranges.refresher import RangeRefresher, RefresherState
from cdnredirect.ipranges.source import RangeSource
from cdnredirect.observability.metrics import RefreshMetrics
from tests.helpers.ranges import SAMPLE_DOCUMENT, ScriptedRangeSource, timeout_error


SAMPLE_ADDRESSES = ("3.5.140.1", "52.94.76.9", "54.239.0.15", "2600:1f18::1", "8.8.8.8")


@pytest.fixture(autouse=True)
def reset_metrics() -> None:
    """Reset refresh metrics before each test."""
    RefreshMetrics.reset()


def make_policy(interval: timedelta = timedelta(hours=1)) -> RefreshPolicy:
    """Build a refresh policy with a given interval."""
    return RefreshPolicy(
        document_url="https://ranges.example/ip-ranges.json",
        interval=interval,
    )


def odd_status_transport() -> httpx.MockTransport:
    """Build a transport answering every request with status 999."""
    return httpx.MockTransport(lambda request: httpx.Response(999, content=b"{}"))


class TestRefreshPolicy:
    """Tests for RefreshPolicy validation."""

    @pytest.mark.unit
    def test_regions_are_normalized(self) -> None:
        """Test that region labels are normalized and blanks dropped."""
        policy = RefreshPolicy(regions=frozenset({" US-East-1", "", "eu-west-1"}))
        assert policy.regions == frozenset({"us-east-1", "eu-west-1"})

    @pytest.mark.unit
    def test_interval_must_be_positive(self) -> None:
        """Test that a zero interval is rejected."""
        with pytest.raises(ValueError):
            RefreshPolicy(interval=timedelta(0))

    @pytest.mark.unit
    def test_defaults(self) -> None:
        """Test default document URL and interval."""
        policy = RefreshPolicy()
        assert policy.document_url == "https://ip-ranges.amazonaws.com/ip-ranges.json"
        assert policy.interval == timedelta(hours=12)
        assert policy.regions == frozenset()


class TestRangeRefresherRefresh:
    """Tests for single refresh attempts."""

    @pytest.mark.unit
    def test_initial_state_is_empty(self) -> None:
        """Test that a new refresher serves the empty set."""
        refresher = RangeRefresher(make_policy(), source=ScriptedRangeSource([{}]))

        assert refresher.state == RefresherState.UNINITIALIZED
        assert refresher.populated is False
        assert len(refresher.current()) == 0
        assert refresher.current().contains("3.5.140.1") is False

    @pytest.mark.unit
    def test_successful_refresh_swaps_snapshot(self) -> None:
        """Test that a successful refresh replaces the snapshot."""
        source = ScriptedRangeSource([SAMPLE_DOCUMENT])
        refresher = RangeRefresher(make_policy(), source=source)
        before = refresher.current()

        assert refresher.refresh() is True

        after = refresher.current()
        assert after is not before
        assert len(after) == 5
        assert refresher.state == RefresherState.POPULATED
        assert refresher.last_success_at is not None
        assert refresher.last_error is None
        # the old snapshot is untouched
        assert len(before) == 0

    @pytest.mark.unit
    def test_policy_is_passed_to_source(self) -> None:
        """Test that the document URL and regions reach the source."""
        source = ScriptedRangeSource([SAMPLE_DOCUMENT])
        policy = RefreshPolicy(
            document_url="https://ranges.example/doc.json",
            regions=frozenset({"us-east-1"}),
        )
        refresher = RangeRefresher(policy, source=source)

        refresher.refresh()

        assert source.calls == [
            ("https://ranges.example/doc.json", frozenset({"us-east-1"}))
        ]
        assert {r.region for r in refresher.current().ranges} == {"us-east-1"}

    @pytest.mark.unit
    def test_repeated_refresh_is_behaviorally_idempotent(self) -> None:
        """Test that an unchanged document yields equivalent snapshots."""
        source = ScriptedRangeSource([SAMPLE_DOCUMENT])
        refresher = RangeRefresher(make_policy(), source=source)

        refresher.refresh()
        first = refresher.current()
        refresher.refresh()
        second = refresher.current()

        assert first is not second
        assert [first.contains(a) for a in SAMPLE_ADDRESSES] == [
            second.contains(a) for a in SAMPLE_ADDRESSES
        ]

    @pytest.mark.unit
    def test_failures_keep_last_good_snapshot(self) -> None:
        """Test that N consecutive failures leave current() unchanged."""
        source = ScriptedRangeSource(
            [
                SAMPLE_DOCUMENT,
                timeout_error(),
                RangeParseError("Invalid JSON document"),
                timeout_error(),
            ]
        )
        refresher = RangeRefresher(make_policy(), source=source)
        refresher.refresh()
        good = refresher.current()

        for _ in range(5):
            assert refresher.refresh() is False
            assert refresher.current() is good

        assert refresher.state == RefresherState.POPULATED
        assert isinstance(refresher.last_error, RangeSourceError)

    @pytest.mark.unit
    def test_failures_are_counted_by_kind(self) -> None:
        """Test refresh metrics for failures and successes."""
        source = ScriptedRangeSource(
            [timeout_error(), RangeParseError("bad"), SAMPLE_DOCUMENT]
        )
        refresher = RangeRefresher(make_policy(), source=source)

        refresher.refresh()
        refresher.refresh()
        refresher.refresh()

        metrics = RefreshMetrics.get_instance().to_dict()
        assert metrics["refresh_attempts_total"] == 3
        assert metrics["refresh_success_total"] == 1
        assert metrics["refresh_failures_total"] == {"NETWORK_TIMEOUT": 1, "PARSE": 1}
        assert metrics["ranges_loaded"] == 5

    @pytest.mark.unit
    def test_error_hook_receives_failures(self) -> None:
        """Test the observability hook."""
        errors: list[RangeSourceError] = []
        failure = timeout_error()
        refresher = RangeRefresher(
            make_policy(),
            source=ScriptedRangeSource([failure]),
            on_error=errors.append,
        )

        refresher.refresh()

        assert errors == [failure]

    @pytest.mark.unit
    def test_failing_error_hook_does_not_break_refresh(self) -> None:
        """Test that a raising hook is contained."""

        def broken_hook(error: RangeSourceError) -> None:
            raise RuntimeError("hook failed")

        refresher = RangeRefresher(
            make_policy(),
            source=ScriptedRangeSource([timeout_error()]),
            on_error=broken_hook,
        )

        assert refresher.refresh() is False

    @pytest.mark.unit
    def test_nonstandard_status_is_a_fetch_failure(self) -> None:
        """Test that a status above 599 is classified rather than raised."""
        source = RangeSource(HttpFetcher(transport=odd_status_transport()))
        refresher = RangeRefresher(make_policy(), source=source)

        assert refresher.refresh() is False

        error = refresher.last_error
        assert isinstance(error, RangeFetchError)
        assert error.error.error_class == FetchErrorClass.HTTP_OTHER
        assert error.error.status_code == 999
        assert refresher.state == RefresherState.UNINITIALIZED
        metrics = RefreshMetrics.get_instance().to_dict()
        assert metrics["refresh_failures_total"] == {"HTTP_OTHER": 1}

    @pytest.mark.unit
    def test_unexpected_exception_is_contained(self) -> None:
        """Test that errors outside RangeSourceError become refresh failures."""
        errors: list[RangeSourceError] = []
        crash = RuntimeError("source crashed")
        refresher = RangeRefresher(
            make_policy(),
            source=ScriptedRangeSource([SAMPLE_DOCUMENT, crash]),
            on_error=errors.append,
        )
        refresher.refresh()
        good = refresher.current()

        assert refresher.refresh() is False

        assert refresher.current() is good
        assert len(errors) == 1
        assert type(errors[0]) is RangeSourceError
        assert errors[0].__cause__ is crash
        assert refresher.last_error is errors[0]
        metrics = RefreshMetrics.get_instance().to_dict()
        assert metrics["refresh_failures_total"] == {"UNEXPECTED": 1}


class TestRangeRefresherLifecycle:
    """Tests for start/stop and the background loop."""

    @pytest.mark.unit
    def test_start_with_failing_source_still_starts(self) -> None:
        """Test that an unreachable upstream does not block startup."""
        source = ScriptedRangeSource([timeout_error()])
        refresher = RangeRefresher(make_policy(), source=source)

        refresher.start()
        try:
            assert refresher.running is True
            assert refresher.state == RefresherState.UNINITIALIZED
            assert len(refresher.current()) == 0
            assert source.call_count == 1
        finally:
            refresher.stop(timeout=5)

        assert refresher.running is False

    @pytest.mark.unit
    def test_start_with_nonstandard_status_still_starts(self) -> None:
        """Test that a status above 599 during startup does not escape."""
        source = RangeSource(HttpFetcher(transport=odd_status_transport()))
        refresher = RangeRefresher(make_policy(), source=source)

        refresher.start()
        try:
            assert refresher.running is True
            assert refresher.populated is False
            assert isinstance(refresher.last_error, RangeFetchError)
        finally:
            refresher.stop(timeout=5)

    @pytest.mark.unit
    def test_start_with_crashing_source_still_starts(self) -> None:
        """Test that an unexpected exception during startup does not escape."""
        refresher = RangeRefresher(
            make_policy(), source=ScriptedRangeSource([ValueError("bad state")])
        )

        refresher.start()
        try:
            assert refresher.running is True
            assert refresher.populated is False
        finally:
            refresher.stop(timeout=5)

    @pytest.mark.unit
    def test_start_twice_raises(self) -> None:
        """Test that a refresher can only be started once."""
        refresher = RangeRefresher(
            make_policy(), source=ScriptedRangeSource([SAMPLE_DOCUMENT])
        )
        refresher.start()
        try:
            with pytest.raises(RuntimeError):
                refresher.start()
        finally:
            refresher.stop(timeout=5)

    @pytest.mark.unit
    def test_stop_is_safe_to_repeat_and_keeps_snapshot(self) -> None:
        """Test stop semantics."""
        refresher = RangeRefresher(
            make_policy(), source=ScriptedRangeSource([SAMPLE_DOCUMENT])
        )
        refresher.start()
        snapshot = refresher.current()

        refresher.stop(timeout=5)
        refresher.stop(timeout=5)

        assert refresher.current() is snapshot
        assert len(snapshot) == 5

    @pytest.mark.unit
    def test_stop_before_start(self) -> None:
        """Test stopping a refresher that never started."""
        refresher = RangeRefresher(make_policy(), source=ScriptedRangeSource([{}]))
        refresher.stop()
        assert refresher.running is False

    @pytest.mark.integration
    def test_background_loop_recovers_after_failed_start(self) -> None:
        """Test that the loop retries on the fixed period."""
        source = ScriptedRangeSource([timeout_error(), SAMPLE_DOCUMENT])
        populated = threading.Event()

        with RangeRefresher(
            make_policy(interval=timedelta(milliseconds=20)), source=source
        ) as refresher:
            for _ in range(250):
                if refresher.populated:
                    populated.set()
                    break
                populated.wait(0.02)

        assert populated.is_set()
        assert refresher.current().contains("54.239.0.1") is True
        assert source.call_count >= 2
        assert refresher.running is False

    @pytest.mark.integration
    def test_background_loop_survives_unexpected_exceptions(self) -> None:
        """Test that the loop keeps ticking after a crashing refresh."""
        source = ScriptedRangeSource(
            [timeout_error(), RuntimeError("source crashed"), SAMPLE_DOCUMENT]
        )
        populated = threading.Event()

        with RangeRefresher(
            make_policy(interval=timedelta(milliseconds=20)), source=source
        ) as refresher:
            for _ in range(250):
                if refresher.populated:
                    populated.set()
                    break
                populated.wait(0.02)

        assert populated.is_set()
        assert source.call_count >= 3
        failures = RefreshMetrics.get_instance().to_dict()["refresh_failures_total"]
        assert failures == {"NETWORK_TIMEOUT": 1, "UNEXPECTED": 1}

    @pytest.mark.integration
    def test_concurrent_readers_never_see_partial_snapshots(self) -> None:
        """Test reads racing with refreshes."""
        small = {"prefixes": [{"ip_prefix": "192.0.2.0/24"}]}
        source = ScriptedRangeSource([small, SAMPLE_DOCUMENT] * 50)
        refresher = RangeRefresher(make_policy(), source=source)
        refresher.refresh()
        valid_sizes = {1, 5}
        observed: list[int] = []
        done = threading.Event()

        def reader() -> None:
            while not done.is_set():
                observed.append(len(refresher.current()))

        threads = [threading.Thread(target=reader) for _ in range(4)]
        for thread in threads:
            thread.start()
        for _ in range(99):
            refresher.refresh()
        done.set()
        for thread in threads:
            thread.join(timeout=5)

        assert observed
        assert set(observed) <= valid_sizes
