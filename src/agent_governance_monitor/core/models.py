"""SQLAlchemy ORM models for the governance monitor.

All models use the `gov_` table prefix and extend MonitorModel for automatic
id (UUID), created_at, and updated_at fields.

Models:
- AgentPerformanceMetric  — daily per-agent performance sample (read-only for the engine)
- AgentUsageLog           — per-interaction usage record; the engine only appends bias flags
- RiskAlert               — alert raised by drift escalation (create-only)
- BiasMonitoringRecord    — summary of one bias scan run (create-only, immutable)
- GovernancePolicy        — AI governance policy document (engine creates drafts only)
- DirectoryUser           — read-only user directory used to find admins
- AuditTrailEntry         — append-only audit log of governance operations

The engine never rewrites rows that earlier runs created. Every run creates
new RiskAlert / BiasMonitoringRecord / GovernancePolicy / AuditTrailEntry rows.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from agent_governance_monitor.database import JSONType, MonitorModel


class AgentPerformanceMetric(MonitorModel):
    """Daily performance sample for one AI agent.

    Produced by the serving system. Any metric may be NULL when the serving
    system could not compute it for that day; aggregation treats NULL as 0.

    Attributes:
        agent_name: Name of the monitored AI agent.
        metric_date: Day the sample covers (UTC midnight).
        avg_latency_ms: Mean response latency in milliseconds.
        error_rate: Fraction of failed interactions, 0-1.
        avg_rating: Mean user rating, 0-5.
        interaction_count: Interactions served that day.
    """

    __tablename__ = "gov_agent_performance_metrics"

    agent_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Name of the monitored AI agent",
    )
    metric_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
        comment="Day covered by this sample",
    )
    avg_latency_ms: Mapped[float | None] = mapped_column(
        Float,
        nullable=True,
        comment="Mean response latency in milliseconds",
    )
    error_rate: Mapped[float | None] = mapped_column(
        Float,
        nullable=True,
        comment="Fraction of failed interactions (0-1)",
    )
    avg_rating: Mapped[float | None] = mapped_column(
        Float,
        nullable=True,
        comment="Mean user rating (0-5)",
    )
    interaction_count: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        comment="Interactions served that day",
    )


class AgentUsageLog(MonitorModel):
    """One logged interaction with an AI agent.

    Immutable at creation except for bias_flags, which the bias scan appends
    to. Existing flags are never removed or reordered.

    Attributes:
        agent_name: Name of the AI agent that handled the interaction.
        user_email: Email of the user who interacted with the agent.
        interaction_content: Free-text transcript or summary of the interaction.
        policy_compliance: Result of inline policy checks, e.g. {"compliant": false, ...}.
        bias_flags: Appended flags, each {type, severity, description, detected_at}.
    """

    __tablename__ = "gov_agent_usage_logs"

    agent_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Name of the AI agent that handled the interaction",
    )
    user_email: Mapped[str | None] = mapped_column(
        String(320),
        nullable=True,
        comment="User who interacted with the agent",
    )
    interaction_content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        comment="Free-text interaction transcript or summary",
    )
    policy_compliance: Mapped[dict | None] = mapped_column(  # type: ignore[type-arg]
        JSONType,
        nullable=True,
        comment="Inline policy check result: {compliant: bool, violations: [...]}",
    )
    bias_flags: Mapped[list] = mapped_column(  # type: ignore[type-arg]
        JSONType,
        nullable=False,
        default=list,
        comment="Append-only list of bias flags",
    )


class RiskAlert(MonitorModel):
    """Risk alert created when drift escalation finds a critical change.

    Created once per drift run at most. Triage (acknowledge, resolve) is
    handled by a separate workflow; the engine never updates these rows.

    Attributes:
        alert_type: Category, e.g. performance_drift.
        severity: Alert severity. Drift alerts are always high.
        title: Short headline.
        description: Longer explanation.
        affected_component: Agent name, or None for pooled runs.
        metrics: Per-metric drift blob from the drift report.
        recommended_actions: Recommendations of every alert in the run.
        status: Triage state, one of active | acknowledged | resolved.
    """

    __tablename__ = "gov_risk_alerts"

    alert_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
        comment="Alert category: performance_drift | ...",
    )
    severity: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        comment="Severity: low | medium | high | critical",
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    affected_component: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Agent name, or NULL when the run pooled all agents",
    )
    metrics: Mapped[dict] = mapped_column(  # type: ignore[type-arg]
        JSONType,
        nullable=False,
        default=dict,
    )
    recommended_actions: Mapped[list] = mapped_column(  # type: ignore[type-arg]
        JSONType,
        nullable=False,
        default=list,
    )
    status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default="active",
        index=True,
        comment="Triage state: active | acknowledged | resolved",
    )


class BiasMonitoringRecord(MonitorModel):
    """Summary of a single bias scan run.

    A new scan always creates a new record; records are never updated.

    Attributes:
        agent_name: Scanned agent, or "all".
        sample_size: Number of usage logs sent to the analyzer.
        bias_metrics: Per-category bias scores (0-100) and overall fairness score.
        detected_issues: Issues reported by the analyzer.
        policy_recommendations: Policy create/update recommendations.
        recommendations: Free-text recommendations.
        automated_actions_taken: Actions the analyzer reports as taken.
        status: clear | needs_attention | critical.
        risk_level: low | medium | high | critical.
    """

    __tablename__ = "gov_bias_monitoring_records"

    agent_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    sample_size: Mapped[int] = mapped_column(Integer, nullable=False)
    bias_metrics: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)  # type: ignore[type-arg]
    detected_issues: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)  # type: ignore[type-arg]
    policy_recommendations: Mapped[list] = mapped_column(  # type: ignore[type-arg]
        JSONType,
        nullable=False,
        default=list,
    )
    recommendations: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)  # type: ignore[type-arg]
    automated_actions_taken: Mapped[list] = mapped_column(  # type: ignore[type-arg]
        JSONType,
        nullable=False,
        default=list,
    )
    status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        comment="Scan verdict: clear | needs_attention | critical",
    )
    risk_level: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        index=True,
        comment="Risk level: low | medium | high | critical",
    )


class GovernancePolicy(MonitorModel):
    """AI governance policy document.

    Policies created by the recommendation pipeline always start as drafts
    with version "1.0"; activation and archival are human actions.

    Attributes:
        policy_name: Human-readable policy name.
        policy_type: Policy category, e.g. bias_prevention, data_privacy.
        description: What the policy enforces.
        rules: List of {rule_description, severity, enforcement}.
        applicable_agents: Agent names the policy applies to.
        status: draft | active | archived.
        version: Version label, e.g. "1.0".
    """

    __tablename__ = "gov_ai_policies"

    policy_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    policy_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    rules: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)  # type: ignore[type-arg]
    applicable_agents: Mapped[list] = mapped_column(  # type: ignore[type-arg]
        JSONType,
        nullable=False,
        default=list,
    )
    status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default="draft",
        index=True,
        comment="Lifecycle state: draft | active | archived",
    )
    version: Mapped[str] = mapped_column(String(30), nullable=False, default="1.0")


class DirectoryUser(MonitorModel):
    """Platform user as seen by the governance monitor.

    Owned by the identity service; the monitor only reads it to find admins.

    Attributes:
        email: Login and notification address.
        full_name: Display name.
        role: Platform role, one of admin | user.
    """

    __tablename__ = "gov_directory_users"

    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(30), nullable=False, default="user", index=True)


class AuditTrailEntry(MonitorModel):
    """Append-only audit record of a governance operation.

    Attributes:
        actor_email: Who triggered the operation.
        action_type: read | create | update.
        entity_type: Entity the operation concerned, e.g. GovernancePolicy.
        success: Whether the operation completed.
        details: Operation-specific context.
        correlation_id: Request correlation ID for tracing.
    """

    __tablename__ = "gov_audit_trail_entries"

    actor_email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    action_type: Mapped[str] = mapped_column(String(30), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    details: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)  # type: ignore[type-arg]
    correlation_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
