"""Baseline/recent windowing over daily agent performance samples.

The aggregator filters a sample series to a lookback period, sorts it by
date, and averages the first `window_size` samples (baseline) and the last
`window_size` samples (recent). With more than 2 * window_size samples the
middle of the series is simply not used.

A series with fewer than 2 * window_size samples in the lookback period has
no verdict: aggregate() raises InsufficientDataError rather than returning
partial windows.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from agent_governance_monitor.errors import InsufficientDataError

DEFAULT_WINDOW_SIZE = 7
DEFAULT_LOOKBACK_DAYS = 30

# Report metric name -> MetricSample attribute
METRIC_FIELDS: dict[str, str] = {
    "latency": "avg_latency_ms",
    "error_rate": "error_rate",
    "user_rating": "avg_rating",
}


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@dataclass(frozen=True)
class MetricSample:
    """One agent's performance on one day.

    Attributes:
        agent_name: Name of the monitored AI agent.
        metric_date: Day the sample covers.
        avg_latency_ms: Mean latency in ms, None when not recorded.
        error_rate: Error fraction 0-1, None when not recorded.
        avg_rating: Mean user rating 0-5, None when not recorded.
    """

    agent_name: str
    metric_date: datetime
    avg_latency_ms: float | None = None
    error_rate: float | None = None
    avg_rating: float | None = None

    @classmethod
    def from_record(cls, record: Any) -> MetricSample:
        """Build a sample from any object exposing the metric attributes.

        Args:
            record: An AgentPerformanceMetric row or compatible object.

        Returns:
            An immutable MetricSample.
        """
        return cls(
            agent_name=record.agent_name,
            metric_date=record.metric_date,
            avg_latency_ms=record.avg_latency_ms,
            error_rate=record.error_rate,
            avg_rating=record.avg_rating,
        )

    def value(self, metric: str) -> float:
        """Return the value of a report metric, with a missing value as 0."""
        raw = getattr(self, METRIC_FIELDS[metric])
        return float(raw) if raw is not None else 0.0


@dataclass(frozen=True)
class WindowAggregate:
    """Per-metric means over one window of samples.

    Attributes:
        start: Date of the first sample in the window.
        end: Date of the last sample in the window.
        sample_count: Number of samples averaged.
        means: Report metric name -> arithmetic mean.
    """

    start: datetime
    end: datetime
    sample_count: int
    means: dict[str, float] = field(default_factory=dict)

    @property
    def period(self) -> str:
        """Human-readable date span, e.g. '2026-01-01 to 2026-01-07'."""
        return f"{self.start.date().isoformat()} to {self.end.date().isoformat()}"


@dataclass(frozen=True)
class WindowedAggregates:
    """Baseline and recent aggregates for one series.

    Attributes:
        baseline: Aggregate over the earliest window.
        recent: Aggregate over the latest window.
        total_samples: Samples in the lookback period after filtering.
    """

    baseline: WindowAggregate
    recent: WindowAggregate
    total_samples: int


def _aggregate_window(window: list[MetricSample]) -> WindowAggregate:
    count = len(window)
    means = {metric: sum(sample.value(metric) for sample in window) / count for metric in METRIC_FIELDS}
    return WindowAggregate(
        start=window[0].metric_date,
        end=window[-1].metric_date,
        sample_count=count,
        means=means,
    )


class WindowAggregator:
    """Slices a sample series into baseline and recent windows.

    Args:
        window_size: Samples per window.
        lookback_days: Default lookback period applied before windowing.
    """

    def __init__(
        self,
        window_size: int = DEFAULT_WINDOW_SIZE,
        lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    ) -> None:
        if window_size < 1:
            raise ValueError("window_size must be at least 1")
        self.window_size = window_size
        self.lookback_days = lookback_days

    @property
    def minimum_samples(self) -> int:
        """Fewest samples that still yield a verdict."""
        return 2 * self.window_size

    def filter_lookback(
        self,
        samples: Iterable[MetricSample],
        lookback_days: int | None = None,
        now: datetime | None = None,
    ) -> list[MetricSample]:
        """Keep samples inside the lookback period, sorted by date ascending.

        Args:
            samples: Samples for one agent or pooled across agents.
            lookback_days: Override of the default lookback period.
            now: Reference time; defaults to the current UTC time.

        Returns:
            Samples with metric_date >= now - lookback_days, oldest first.
        """
        days = self.lookback_days if lookback_days is None else lookback_days
        cutoff = _as_utc(now or datetime.now(UTC)) - timedelta(days=days)
        kept = [sample for sample in samples if _as_utc(sample.metric_date) >= cutoff]
        kept.sort(key=lambda sample: _as_utc(sample.metric_date))
        return kept

    def aggregate(
        self,
        samples: Iterable[MetricSample],
        lookback_days: int | None = None,
        now: datetime | None = None,
    ) -> WindowedAggregates:
        """Compute baseline and recent aggregates.

        Args:
            samples: Samples for one agent or pooled across agents, any order.
            lookback_days: Override of the default lookback period.
            now: Reference time; defaults to the current UTC time.

        Returns:
            WindowedAggregates with float means per metric.

        Raises:
            InsufficientDataError: If fewer than 2 * window_size samples fall
                inside the lookback period.
        """
        series = self.filter_lookback(samples, lookback_days=lookback_days, now=now)
        if len(series) < self.minimum_samples:
            raise InsufficientDataError(
                message=(
                    "Insufficient data for drift detection "
                    f"(minimum {self.minimum_samples} days required)"
                ),
                required=self.minimum_samples,
                available=len(series),
            )

        return WindowedAggregates(
            baseline=_aggregate_window(series[: self.window_size]),
            recent=_aggregate_window(series[-self.window_size :]),
            total_samples=len(series),
        )
