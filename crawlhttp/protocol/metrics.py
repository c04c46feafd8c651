"""Metrics collection for the raw HTTP protocol layer."""

import threading
from dataclasses import dataclass, field
from typing import ClassVar

from crawlhttp.protocol.errors import FetchErrorClass


@dataclass
class FetchMetrics:
    """Metrics for fetch operations.

    Singleton class that tracks responses per status code, body bytes,
    failures by class, headers-only results and size-cap truncations.
    Fetches run on many worker threads, so updates take a lock.
    """

    http_requests_total: dict[int, int] = field(default_factory=dict)
    http_failures_total: dict[str, int] = field(default_factory=dict)
    http_body_failures_total: dict[str, int] = field(default_factory=dict)
    http_truncated_total: int = 0
    http_bytes_total: int = 0
    http_duration_ms_total: float = 0.0
    http_request_count: int = 0

    _lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    _instance: ClassVar["FetchMetrics | None"] = None
    _instance_lock: ClassVar[threading.Lock] = threading.Lock()

    @classmethod
    def get_instance(cls) -> "FetchMetrics":
        """Get singleton metrics instance."""
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        with cls._instance_lock:
            cls._instance = None

    def record_response(self, status_code: int, bytes_received: int) -> None:
        """Record a response whose head was parsed.

        Args:
            status_code: HTTP status code.
            bytes_received: Decoded body size (0 for headers-only results).
        """
        with self._lock:
            self.http_requests_total[status_code] = (
                self.http_requests_total.get(status_code, 0) + 1
            )
            self.http_bytes_total += bytes_received
            self.http_request_count += 1

    def record_failure(self, error_class: FetchErrorClass) -> None:
        """Record a fetch that failed before a response head was parsed.

        Args:
            error_class: Classification of the failure.
        """
        with self._lock:
            key = error_class.value
            self.http_failures_total[key] = self.http_failures_total.get(key, 0) + 1

    def record_body_failure(self, error_class: FetchErrorClass) -> None:
        """Record a response whose body could not be read or decoded.

        Args:
            error_class: Classification of the failure.
        """
        with self._lock:
            key = error_class.value
            self.http_body_failures_total[key] = (
                self.http_body_failures_total.get(key, 0) + 1
            )

    def record_truncation(self) -> None:
        """Record a body cut at the size cap."""
        with self._lock:
            self.http_truncated_total += 1

    def record_duration(self, duration_ms: float) -> None:
        """Record fetch duration.

        Args:
            duration_ms: Duration in milliseconds.
        """
        with self._lock:
            self.http_duration_ms_total += duration_ms

    def to_dict(self) -> dict[str, int | float | dict[str, int] | dict[int, int]]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        with self._lock:
            return {
                "http_requests_total": dict(self.http_requests_total),
                "http_failures_total": dict(self.http_failures_total),
                "http_body_failures_total": dict(self.http_body_failures_total),
                "http_truncated_total": self.http_truncated_total,
                "http_bytes_total": self.http_bytes_total,
                "http_duration_ms_total": self.http_duration_ms_total,
                "http_request_count": self.http_request_count,
            }

    @property
    def avg_duration_ms(self) -> float:
        """Calculate average fetch duration.

        Returns:
            Average duration in milliseconds.
        """
        if self.http_request_count == 0:
            return 0.0
        return self.http_duration_ms_total / self.http_request_count
