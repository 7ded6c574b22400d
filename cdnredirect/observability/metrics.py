"""Metrics for range refreshes and redirect decisions."""

import threading
from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class RefreshMetrics:
    """Metrics for IP range refreshes.

    Singleton shared by every refresher in the process. Counters are
    updated from background threads, so mutation goes through a lock.

    Attributes:
        refresh_attempts_total: Refresh attempts, successful or not.
        refresh_success_total: Refreshes that replaced the snapshot.
        refresh_failures_total: Failed refreshes keyed by error kind.
        entries_skipped_total: Malformed document entries dropped.
        ranges_loaded: Range count of the latest snapshot.
        last_refresh_duration_ms: Duration of the latest attempt.
    """

    refresh_attempts_total: int = 0
    refresh_success_total: int = 0
    refresh_failures_total: dict[str, int] = field(default_factory=dict)
    entries_skipped_total: int = 0
    ranges_loaded: int = 0
    last_refresh_duration_ms: float = 0.0

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    _instance: ClassVar["RefreshMetrics | None"] = None
    _instance_lock: ClassVar[threading.Lock] = threading.Lock()

    @classmethod
    def get_instance(cls) -> "RefreshMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        with cls._instance_lock:
            cls._instance = None

    def record_success(self, ranges_loaded: int, duration_ms: float) -> None:
        """Record a successful refresh.

        Args:
            ranges_loaded: Number of ranges in the new snapshot.
            duration_ms: Duration of the refresh in milliseconds.
        """
        with self._lock:
            self.refresh_attempts_total += 1
            self.refresh_success_total += 1
            self.ranges_loaded = ranges_loaded
            self.last_refresh_duration_ms = duration_ms

    def record_failure(self, error_kind: str, duration_ms: float) -> None:
        """Record a failed refresh.

        Args:
            error_kind: Error classification (fetch error class, "PARSE" or
                "UNEXPECTED").
            duration_ms: Duration of the refresh in milliseconds.
        """
        with self._lock:
            self.refresh_attempts_total += 1
            self.refresh_failures_total[error_kind] = (
                self.refresh_failures_total.get(error_kind, 0) + 1
            )
            self.last_refresh_duration_ms = duration_ms

    def record_skipped(self, count: int) -> None:
        """Record malformed entries dropped while parsing.

        Args:
            count: Number of entries dropped.
        """
        with self._lock:
            self.entries_skipped_total += count

    def to_dict(self) -> dict[str, int | float | dict[str, int]]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        with self._lock:
            return {
                "refresh_attempts_total": self.refresh_attempts_total,
                "refresh_success_total": self.refresh_success_total,
                "refresh_failures_total": dict(self.refresh_failures_total),
                "entries_skipped_total": self.entries_skipped_total,
                "ranges_loaded": self.ranges_loaded,
                "last_refresh_duration_ms": self.last_refresh_duration_ms,
            }


@dataclass
class RedirectMetrics:
    """Metrics for per-request redirect decisions.

    Attributes:
        decisions_total: Decisions keyed by kind ("origin" or "edge").
        signing_failures_total: Edge URLs that could not be signed.
        capability_unsupported_total: Requests passed through because the
            storage driver cannot supply edge keys.
    """

    decisions_total: dict[str, int] = field(default_factory=dict)
    signing_failures_total: int = 0
    capability_unsupported_total: int = 0

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    _instance: ClassVar["RedirectMetrics | None"] = None
    _instance_lock: ClassVar[threading.Lock] = threading.Lock()

    @classmethod
    def get_instance(cls) -> "RedirectMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        with cls._instance_lock:
            cls._instance = None

    def record_decision(self, kind: str) -> None:
        """Record a redirect decision.

        Args:
            kind: Decision kind value.
        """
        with self._lock:
            self.decisions_total[kind] = self.decisions_total.get(kind, 0) + 1

    def record_signing_failure(self) -> None:
        """Record a signing failure."""
        with self._lock:
            self.signing_failures_total += 1

    def record_capability_unsupported(self) -> None:
        """Record a pass-through caused by a missing edge keying capability."""
        with self._lock:
            self.capability_unsupported_total += 1

    def to_dict(self) -> dict[str, int | dict[str, int]]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        with self._lock:
            return {
                "decisions_total": dict(self.decisions_total),
                "signing_failures_total": self.signing_failures_total,
                "capability_unsupported_total": self.capability_unsupported_total,
            }
