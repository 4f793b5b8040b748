"""
Provider health snapshots and the in-process health tracker.

The router consumes health through the :class:`HealthSource` interface.
:class:`ProviderHealthTracker` is the bundled implementation: it keeps a
sliding window of request outcomes per provider and derives a
:class:`HealthSnapshot` on demand. All state is in-process.
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from collections import defaultdict, deque
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class HealthSnapshot:
    """Freshness-bounded health reading for one provider."""
    provider_id: str
    status: HealthStatus = HealthStatus.UNKNOWN
    latency_ms: Optional[float] = None
    error: Optional[str] = None
    queue_length: int = 0
    success_rate: Optional[float] = None  # 0.0–1.0, None when unmeasured
    checked_at: Optional[float] = None

    @classmethod
    def unknown(cls, provider_id: str, error: Optional[str] = None) -> "HealthSnapshot":
        return cls(provider_id=provider_id, status=HealthStatus.UNKNOWN, error=error,
                   checked_at=time.time())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider_id": self.provider_id,
            "status": self.status.value,
            "latency_ms": self.latency_ms,
            "error": self.error,
            "queue_length": self.queue_length,
            "success_rate": self.success_rate,
            "checked_at": self.checked_at,
        }


@dataclass(frozen=True)
class HealthFetch:
    """A health snapshot plus the reason it is degraded, if it is.

    ``degraded_reason`` is set whenever the snapshot is a stand-in for a
    fetch that failed or did not finish in time.
    """
    snapshot: HealthSnapshot
    degraded_reason: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.degraded_reason is not None


class HealthSource(ABC):
    """Pull-based provider health collaborator."""

    @abstractmethod
    def get_health(self, provider_id: str) -> HealthSnapshot:
        """Return the current snapshot for *provider_id*."""

    def get_all_health(self, provider_ids: Iterable[str] = ()) -> Dict[str, HealthSnapshot]:
        """Return snapshots for *provider_ids*, skipping providers that fail."""
        results: Dict[str, HealthSnapshot] = {}
        for provider_id in provider_ids:
            try:
                results[provider_id] = self.get_health(provider_id)
            except Exception as exc:
                results[provider_id] = HealthSnapshot.unknown(provider_id, error=str(exc))
        return results


# ── Provider Health Tracking ──────────────────────────────────────────────────

OUTCOME_SUCCESS = "success"
OUTCOME_ERROR = "error"
OUTCOME_TIMEOUT = "timeout"

VALID_OUTCOMES = {OUTCOME_SUCCESS, OUTCOME_ERROR, OUTCOME_TIMEOUT}


@dataclass
class ProviderEvent:
    """A single recorded request outcome for a provider."""
    provider_id: str
    event: str           # "success" | "error" | "timeout"
    timestamp: float
    latency_ms: Optional[float] = None
    details: Optional[str] = None


class ProviderHealthTracker(HealthSource):
    """Track real-time health of providers from recorded request outcomes.

    Maintains a sliding window of events (default 1 hour) and computes
    snapshots on demand.

    Attributes:
        WINDOW_SECONDS: Size of the rolling health window in seconds.
        HEALTHY_THRESHOLD: Minimum success rate for ``healthy``.
        DEGRADED_THRESHOLD: Minimum success rate for ``degraded``.
    """

    WINDOW_SECONDS: int = 3_600
    HEALTHY_THRESHOLD: float = 0.95
    DEGRADED_THRESHOLD: float = 0.70

    def __init__(self) -> None:
        # provider_id → bounded deque of ProviderEvent
        self._events: Dict[str, deque] = defaultdict(lambda: deque(maxlen=10_000))
        self._queue_lengths: Dict[str, int] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_event(
        self,
        provider_id: str,
        event: str,
        latency_ms: Optional[float] = None,
        details: Optional[str] = None,
    ) -> None:
        """Record a request outcome.

        Args:
            provider_id: Provider identifier.
            event: One of ``"success"``, ``"error"``, ``"timeout"``.
            latency_ms: Response latency in milliseconds (optional).
            details: Optional detail string, e.g. ``"rate_limited"``.

        Raises:
            ValueError: If *event* is not a known outcome.
        """
        if event not in VALID_OUTCOMES:
            raise ValueError(
                f"event must be one of {sorted(VALID_OUTCOMES)}, got {event!r}"
            )
        with self._lock:
            self._events[provider_id].append(
                ProviderEvent(
                    provider_id=provider_id,
                    event=event,
                    timestamp=time.time(),
                    latency_ms=latency_ms,
                    details=details,
                )
            )

    def record_queue_length(self, provider_id: str, queue_length: int) -> None:
        """Record the number of requests currently waiting on *provider_id*."""
        with self._lock:
            self._queue_lengths[provider_id] = max(0, int(queue_length))

    # ------------------------------------------------------------------
    # Querying
    # ------------------------------------------------------------------

    def _recent_events(self, provider_id: str) -> List[ProviderEvent]:
        cutoff = time.time() - self.WINDOW_SECONDS
        with self._lock:
            return [e for e in self._events.get(provider_id, ()) if e.timestamp >= cutoff]

    def get_health(self, provider_id: str) -> HealthSnapshot:
        """Compute the current snapshot for *provider_id*.

        Providers with no events in the window report ``unknown``.
        """
        recent = self._recent_events(provider_id)
        with self._lock:
            queue_length = self._queue_lengths.get(provider_id, 0)

        if not recent:
            return HealthSnapshot(
                provider_id=provider_id,
                status=HealthStatus.UNKNOWN,
                queue_length=queue_length,
                checked_at=time.time(),
            )

        total = len(recent)
        successes = sum(1 for e in recent if e.event == OUTCOME_SUCCESS)
        success_rate = successes / total

        latencies = [e.latency_ms for e in recent if e.latency_ms is not None]
        avg_latency: Optional[float] = (
            round(sum(latencies) / len(latencies), 1) if latencies else None
        )

        if success_rate >= self.HEALTHY_THRESHOLD:
            status = HealthStatus.HEALTHY
        elif success_rate >= self.DEGRADED_THRESHOLD:
            status = HealthStatus.DEGRADED
        else:
            status = HealthStatus.UNHEALTHY

        last_error = next(
            (e.details or e.event for e in reversed(recent) if e.event != OUTCOME_SUCCESS),
            None,
        )

        return HealthSnapshot(
            provider_id=provider_id,
            status=status,
            latency_ms=avg_latency,
            error=last_error,
            queue_length=queue_length,
            success_rate=round(success_rate, 4),
            checked_at=time.time(),
        )

    def get_all_health(self, provider_ids: Iterable[str] = ()) -> Dict[str, HealthSnapshot]:
        """Snapshots for *provider_ids*, or for every provider with events."""
        ids = list(provider_ids) or self.known_providers()
        return {provider_id: self.get_health(provider_id) for provider_id in ids}

    def last_seen(self, provider_id: str) -> Optional[str]:
        """ISO-8601 UTC timestamp of the most recent event, or None."""
        recent = self._recent_events(provider_id)
        if not recent:
            return None
        last_event = max(recent, key=lambda e: e.timestamp)
        return datetime.fromtimestamp(
            last_event.timestamp, tz=timezone.utc
        ).strftime("%Y-%m-%dT%H:%M:%SZ")

    def known_providers(self) -> List[str]:
        """Return all providers with at least one recorded event."""
        with self._lock:
            return list(self._events.keys())
