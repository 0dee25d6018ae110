"""Pydantic request and response schemas for the governance monitor API.

All API inputs and outputs use Pydantic models. Responses whose shape varies
with the outcome (an inconclusive drift report, an empty bias scan) leave
the missing fields as None and the routes exclude them from the JSON body.

Resources:
- Drift detection — single run and per-agent sweep
- Bias scan — scan results and escalation summary
- Policy recommendations — review and draft creation
- Health
"""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Drift detection schemas
# ---------------------------------------------------------------------------


class DriftDetectionRequest(BaseModel):
    """Request body for a drift detection run."""

    agent_name: str | None = Field(
        default=None,
        description="Agent to analyze. Omit to pool samples across every agent.",
        max_length=255,
    )
    lookback_days: int | None = Field(
        default=None,
        ge=1,
        le=365,
        description="Lookback period in days (default 30).",
    )


class MetricDriftResponse(BaseModel):
    """Baseline vs recent figures for one metric."""

    baseline_avg: float = Field(description="Mean over the baseline window")
    recent_avg: float = Field(description="Mean over the recent window")
    drift_percentage: float = Field(description="Signed relative change in percent")
    drift_detected: bool = Field(description="Whether the change exceeds the threshold")


class DriftAlertResponse(BaseModel):
    """An alert raised for one drifting metric."""

    severity: str = Field(description="warning | critical")
    metric: str = Field(description="latency | error_rate | user_rating")
    message: str
    recommendation: str


class DriftReportResponse(BaseModel):
    """Drift report. An inconclusive run carries only drift_detected and message."""

    drift_detected: bool
    message: str | None = Field(default=None, description="Why no verdict was possible")
    agent_name: str | None = Field(default=None, description="Analyzed agent, or 'all'")
    analysis_period_days: int | None = None
    baseline_period: str | None = Field(default=None, description="YYYY-MM-DD to YYYY-MM-DD")
    recent_period: str | None = Field(default=None, description="YYYY-MM-DD to YYYY-MM-DD")
    metrics: dict[str, MetricDriftResponse] | None = None
    alerts: list[DriftAlertResponse] | None = None


class DriftSweepRequest(BaseModel):
    """Request body for a per-agent drift sweep."""

    agent_names: list[str] | None = Field(
        default=None,
        description="Agents to analyze. Omit to sweep every agent with samples.",
    )
    lookback_days: int | None = Field(
        default=None,
        ge=1,
        le=365,
        description="Lookback period in days (default 30).",
    )


class DriftSweepResponse(BaseModel):
    """Fan-in summary of a per-agent drift sweep."""

    agents_analyzed: int
    drift_detected_count: int
    risk_alerts_created: int
    reports: dict[str, DriftReportResponse] = Field(description="Agent name -> drift report")


# ---------------------------------------------------------------------------
# Bias scan schemas
# ---------------------------------------------------------------------------


class BiasScanRequest(BaseModel):
    """Request body for a bias scan."""

    agent_name: str = Field(
        default="all",
        description="Agent to scan, or 'all' for every agent.",
        max_length=255,
    )
    lookback_days: int | None = Field(
        default=None,
        ge=1,
        le=90,
        description="Lookback period in days (default 7).",
    )


class BiasScanSummary(BaseModel):
    """Headline figures of a bias scan."""

    bias_metrics: dict[str, Any]
    automated_actions: list[str]


class BiasScanResponse(BaseModel):
    """Bias scan result, or success False with a message when nothing was scanned."""

    success: bool
    message: str | None = None
    scan_id: uuid.UUID | None = None
    agent_name: str | None = None
    sample_size: int | None = None
    status: str | None = Field(default=None, description="clear | needs_attention | critical")
    risk_level: str | None = Field(default=None, description="low | medium | high | critical")
    issues_detected: int | None = None
    logs_flagged: int | None = Field(default=None, description="Distinct usage logs flagged")
    notification_sent: bool | None = Field(default=None, description="Whether any admin was notified")
    policy_recommendations: int | None = None
    summary: BiasScanSummary | None = None


# ---------------------------------------------------------------------------
# Policy recommendation schemas
# ---------------------------------------------------------------------------


class PolicyRecommendationRequest(BaseModel):
    """Request body for a governance policy review."""

    scan_only: bool = Field(
        default=False,
        description="Only return recommendations; do not create draft policies.",
    )


class PolicyRecommendationResponse(BaseModel):
    """Result of a governance policy review."""

    success: bool = True
    scan_only: bool
    recommendations: dict[str, Any] = Field(
        description="new_policies, policy_updates, policies_to_archive, summary, compliance_gaps",
    )
    applied_changes: list[str] = Field(description="One 'Created: <name>' entry per draft created")
    timestamp: datetime


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Service health."""

    status: str = Field(description="ok | degraded")
    service: str
    analyzer_reachable: bool
