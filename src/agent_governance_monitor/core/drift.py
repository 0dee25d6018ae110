"""Performance drift detection.

Compares baseline and recent window means for latency, error rate and user
rating. For each metric:

    drift_pct = (recent_avg - baseline_avg) / (baseline_avg or 1) * 100

A zero baseline is replaced by 1 in the denominator. The result is then not a
true percentage, but the guard must stay exactly as is so reports remain
comparable with earlier runs.

A metric drifts when abs(drift_pct) exceeds the threshold (20% by default).
Each drifting metric emits one alert, including improvements. Severity:

- latency, error_rate: critical above +50%, otherwise warning
- user_rating: critical below -30%, otherwise warning (only drops are dangerous)
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from agent_governance_monitor.core.windowing import (
    METRIC_FIELDS,
    MetricSample,
    WindowAggregator,
    WindowedAggregates,
)
from agent_governance_monitor.errors import InsufficientDataError
from agent_governance_monitor.observability import get_logger

logger = get_logger(__name__)

SEVERITY_WARNING = "warning"
SEVERITY_CRITICAL = "critical"

DEFAULT_DRIFT_THRESHOLD_PCT = 20.0
CRITICAL_INCREASE_PCT = 50.0
CRITICAL_RATING_DROP_PCT = -30.0

ALL_AGENTS = "all"

# (metric, worsened) -> recommendation
_RECOMMENDATIONS: dict[tuple[str, bool], str] = {
    ("latency", True): "Investigate infrastructure capacity and model performance",
    ("latency", False): "Monitor for consistency",
    ("error_rate", True): "Review error logs and model behavior immediately",
    ("error_rate", False): "Continue monitoring",
    ("user_rating", True): "Review user feedback and consider model retraining",
    ("user_rating", False): "Identify what improved and replicate",
}


def compute_drift_pct(baseline_avg: float, recent_avg: float) -> float:
    """Percentage change from baseline to recent, with a zero-baseline guard.

    Args:
        baseline_avg: Mean over the baseline window.
        recent_avg: Mean over the recent window.

    Returns:
        (recent - baseline) / (baseline or 1) * 100
    """
    return (recent_avg - baseline_avg) / (baseline_avg or 1) * 100


def classify_severity(metric: str, drift_pct: float) -> str:
    """Severity of a drifting metric.

    Args:
        metric: Report metric name.
        drift_pct: Signed percentage change.

    Returns:
        "critical" or "warning".
    """
    if metric == "user_rating":
        return SEVERITY_CRITICAL if drift_pct < CRITICAL_RATING_DROP_PCT else SEVERITY_WARNING
    return SEVERITY_CRITICAL if drift_pct > CRITICAL_INCREASE_PCT else SEVERITY_WARNING


def _alert_message(metric: str, drift_pct: float) -> str:
    magnitude = f"{abs(drift_pct):.1f}%"
    if metric == "latency":
        return f"Latency has {'increased' if drift_pct > 0 else 'decreased'} by {magnitude}"
    if metric == "error_rate":
        return f"Error rate has {'increased' if drift_pct > 0 else 'decreased'} by {magnitude}"
    return f"User ratings have {'improved' if drift_pct > 0 else 'declined'} by {magnitude}"


def _has_worsened(metric: str, drift_pct: float) -> bool:
    if metric == "user_rating":
        return drift_pct < 0
    return drift_pct > 0


@dataclass(frozen=True)
class MetricDrift:
    """Drift figures for a single metric.

    Attributes:
        metric: Report metric name.
        baseline_avg: Baseline window mean.
        recent_avg: Recent window mean.
        drift_pct: Signed percentage change.
        drift_flag: Whether abs(drift_pct) exceeds the threshold.
    """

    metric: str
    baseline_avg: float
    recent_avg: float
    drift_pct: float
    drift_flag: bool

    def to_dict(self) -> dict[str, Any]:
        """Presentation form, rounded to two decimals."""
        return {
            "baseline_avg": round(self.baseline_avg, 2),
            "recent_avg": round(self.recent_avg, 2),
            "drift_percentage": round(self.drift_pct, 2),
            "drift_detected": self.drift_flag,
        }


@dataclass(frozen=True)
class DriftAlert:
    """Alert for one drifting metric.

    Attributes:
        severity: warning | critical.
        metric: Report metric name.
        message: Human-readable description of the change.
        recommendation: Suggested next step for operators.
    """

    severity: str
    metric: str
    message: str
    recommendation: str

    def to_dict(self) -> dict[str, str]:
        """Presentation form."""
        return {
            "severity": self.severity,
            "metric": self.metric,
            "message": self.message,
            "recommendation": self.recommendation,
        }


@dataclass
class DriftReport:
    """Result of one drift detection run.

    An insufficient-data report has drift_detected False, no metrics, and an
    explanatory message.

    Attributes:
        drift_detected: True when any metric drifts.
        agent_name: Analyzed agent, or "all" for a pooled run.
        analysis_period_days: Lookback period used.
        baseline_period: Date span of the baseline window.
        recent_period: Date span of the recent window.
        metrics: Report metric name -> MetricDrift.
        alerts: One alert per drifting metric.
        message: Explanation when no verdict was possible.
    """

    drift_detected: bool
    agent_name: str
    analysis_period_days: int
    baseline_period: str | None = None
    recent_period: str | None = None
    metrics: dict[str, MetricDrift] = field(default_factory=dict)
    alerts: list[DriftAlert] = field(default_factory=list)
    message: str | None = None

    @classmethod
    def insufficient(cls, agent_name: str, analysis_period_days: int, message: str) -> DriftReport:
        """Build the terminal no-verdict report."""
        return cls(
            drift_detected=False,
            agent_name=agent_name,
            analysis_period_days=analysis_period_days,
            message=message,
        )

    @property
    def is_conclusive(self) -> bool:
        """Whether enough data existed to compare windows."""
        return bool(self.metrics)

    @property
    def has_critical_alert(self) -> bool:
        """Whether any alert reached critical severity."""
        return any(alert.severity == SEVERITY_CRITICAL for alert in self.alerts)

    def metrics_blob(self) -> dict[str, dict[str, Any]]:
        """Per-metric presentation dict, as embedded in risk alerts."""
        return {name: drift.to_dict() for name, drift in self.metrics.items()}

    def to_dict(self) -> dict[str, Any]:
        """Presentation form returned by the API."""
        if not self.is_conclusive:
            return {"drift_detected": False, "message": self.message}
        return {
            "drift_detected": self.drift_detected,
            "agent_name": self.agent_name,
            "analysis_period_days": self.analysis_period_days,
            "baseline_period": self.baseline_period,
            "recent_period": self.recent_period,
            "metrics": self.metrics_blob(),
            "alerts": [alert.to_dict() for alert in self.alerts],
        }


class DriftDetector:
    """Turns a metric series into a DriftReport.

    Args:
        aggregator: Window aggregator; a default 7-sample / 30-day one if omitted.
        threshold_pct: Absolute percentage change that counts as drift.
    """

    def __init__(
        self,
        aggregator: WindowAggregator | None = None,
        threshold_pct: float = DEFAULT_DRIFT_THRESHOLD_PCT,
    ) -> None:
        self._aggregator = aggregator or WindowAggregator()
        self._threshold_pct = threshold_pct

    def analyze(
        self,
        samples: Iterable[MetricSample],
        agent_name: str | None = None,
        lookback_days: int | None = None,
        now: datetime | None = None,
    ) -> DriftReport:
        """Window a series and compare baseline to recent.

        Insufficient data never raises: it yields a report with
        drift_detected False and an explanatory message.

        Args:
            samples: Samples for one agent or pooled across agents.
            agent_name: Agent being analyzed; None means pooled.
            lookback_days: Override of the aggregator's lookback period.
            now: Reference time for the lookback filter.

        Returns:
            The DriftReport for this series.
        """
        label = agent_name or ALL_AGENTS
        period = self._aggregator.lookback_days if lookback_days is None else lookback_days
        try:
            aggregates = self._aggregator.aggregate(samples, lookback_days=period, now=now)
        except InsufficientDataError as exc:
            logger.info(
                "Drift detection skipped — insufficient data",
                agent_name=label,
                required=exc.required,
                available=exc.available,
            )
            return DriftReport.insufficient(label, period, exc.message)
        return self.compare(aggregates, agent_name=label, analysis_period_days=period)

    def compare(
        self,
        aggregates: WindowedAggregates,
        agent_name: str,
        analysis_period_days: int,
    ) -> DriftReport:
        """Compute drift figures and alerts from precomputed aggregates.

        Args:
            aggregates: Baseline and recent window aggregates.
            agent_name: Label for the report.
            analysis_period_days: Lookback period the aggregates came from.

        Returns:
            A conclusive DriftReport.
        """
        metrics: dict[str, MetricDrift] = {}
        alerts: list[DriftAlert] = []

        for metric in METRIC_FIELDS:
            baseline_avg = aggregates.baseline.means[metric]
            recent_avg = aggregates.recent.means[metric]
            drift_pct = compute_drift_pct(baseline_avg, recent_avg)
            drift_flag = abs(drift_pct) > self._threshold_pct
            metrics[metric] = MetricDrift(
                metric=metric,
                baseline_avg=baseline_avg,
                recent_avg=recent_avg,
                drift_pct=drift_pct,
                drift_flag=drift_flag,
            )
            if drift_flag:
                alerts.append(
                    DriftAlert(
                        severity=classify_severity(metric, drift_pct),
                        metric=metric,
                        message=_alert_message(metric, drift_pct),
                        recommendation=_RECOMMENDATIONS[(metric, _has_worsened(metric, drift_pct))],
                    )
                )

        report = DriftReport(
            drift_detected=any(drift.drift_flag for drift in metrics.values()),
            agent_name=agent_name,
            analysis_period_days=analysis_period_days,
            baseline_period=aggregates.baseline.period,
            recent_period=aggregates.recent.period,
            metrics=metrics,
            alerts=alerts,
        )
        logger.info(
            "Drift detection completed",
            agent_name=agent_name,
            drift_detected=report.drift_detected,
            alerts=len(alerts),
            critical=report.has_critical_alert,
        )
        return report
