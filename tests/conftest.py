"""Test fixtures for agent-governance-monitor.

Provides:
- admin_caller / user_caller: CallerContext instances for service and API tests
- make_samples: build a daily MetricSample series from per-day values
- make_metric_record / make_usage_log / make_policy / make_bias_record: fake ORM rows
- bias_findings_payload: a raw analyzer response for a bias scan
- mock_* fixtures: AsyncMock stand-ins for every repository and adapter protocol
"""

import uuid
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from agent_governance_monitor.auth import CallerContext
from agent_governance_monitor.core.interfaces import AdminContact
from agent_governance_monitor.core.windowing import MetricSample

# Fixed reference time so windowing assertions are deterministic
NOW = datetime(2026, 3, 31, 12, 0, tzinfo=UTC)


def make_samples(
    latencies: list[float | None],
    error_rates: list[float | None] | None = None,
    ratings: list[float | None] | None = None,
    agent_name: str = "TrainingCoach",
    end: datetime = NOW,
) -> list[MetricSample]:
    """Build one sample per day ending the day before `end`.

    Args:
        latencies: Per-day latency values, oldest first.
        error_rates: Per-day error rates; 0.05 every day when omitted.
        ratings: Per-day ratings; 4.0 every day when omitted.
        agent_name: Agent the samples belong to.
        end: Reference time; the last sample is dated one day earlier.

    Returns:
        Samples ordered oldest first.
    """
    count = len(latencies)
    error_rates = error_rates if error_rates is not None else [0.05] * count
    ratings = ratings if ratings is not None else [4.0] * count
    return [
        MetricSample(
            agent_name=agent_name,
            metric_date=end - timedelta(days=count - index),
            avg_latency_ms=latencies[index],
            error_rate=error_rates[index],
            avg_rating=ratings[index],
        )
        for index in range(count)
    ]


def make_metric_record(sample: MetricSample) -> MagicMock:
    """Wrap a MetricSample in a fake AgentPerformanceMetric row."""
    record = MagicMock()
    record.id = uuid.uuid4()
    record.agent_name = sample.agent_name
    record.metric_date = sample.metric_date
    record.avg_latency_ms = sample.avg_latency_ms
    record.error_rate = sample.error_rate
    record.avg_rating = sample.avg_rating
    return record


def make_usage_log(
    agent_name: str = "TrainingCoach",
    content: str = "How should I prepare for my performance review?",
    created_at: datetime | None = None,
    policy_compliance: dict[str, Any] | None = None,
    bias_flags: list[dict[str, Any]] | None = None,
) -> MagicMock:
    """Create a fake AgentUsageLog row.

    Args:
        agent_name: Agent that handled the interaction.
        content: Interaction text.
        created_at: Creation time; one hour ago when omitted.
        policy_compliance: Inline policy check result.
        bias_flags: Existing bias flags.

    Returns:
        MagicMock with AgentUsageLog attributes.
    """
    log = MagicMock()
    log.id = uuid.uuid4()
    log.agent_name = agent_name
    log.user_email = "learner@example.com"
    log.interaction_content = content
    log.created_at = created_at or datetime.now(UTC) - timedelta(hours=1)
    log.policy_compliance = policy_compliance
    log.bias_flags = bias_flags if bias_flags is not None else []
    return log


def make_policy(
    policy_name: str = "Inclusive Language",
    status: str = "active",
    policy_type: str = "bias_prevention",
) -> MagicMock:
    """Create a fake GovernancePolicy row."""
    policy = MagicMock()
    policy.id = uuid.uuid4()
    policy.policy_name = policy_name
    policy.policy_type = policy_type
    policy.description = f"{policy_name} policy"
    policy.rules = [{"rule_description": "Use gender-neutral language", "severity": "medium"}]
    policy.applicable_agents = ["TrainingCoach"]
    policy.status = status
    policy.version = "1.0"
    return policy


def make_bias_record(agent_name: str = "TrainingCoach", risk_level: str = "medium") -> MagicMock:
    """Create a fake BiasMonitoringRecord row."""
    record = MagicMock()
    record.id = uuid.uuid4()
    record.agent_name = agent_name
    record.risk_level = risk_level
    record.detected_issues = [{"issue_type": "gender_bias", "severity": "medium"}]
    return record


def bias_findings_payload(
    status: str = "needs_attention",
    risk_level: str = "medium",
    issue_severities: tuple[str, ...] = ("medium",),
) -> dict[str, Any]:
    """Build a raw analyzer response for a bias scan.

    Args:
        status: clear | needs_attention | critical.
        risk_level: low | medium | high | critical.
        issue_severities: One detected issue is generated per entry.

    Returns:
        Dict shaped like the analyzer's structured output.
    """
    return {
        "bias_metrics": {
            "gender_bias_score": 35,
            "racial_bias_score": 10,
            "age_bias_score": 5,
            "language_bias_score": 20,
            "overall_fairness_score": 72,
        },
        "detected_issues": [
            {
                "issue_type": f"issue_{index}",
                "severity": severity,
                "description": f"Detected issue number {index}",
                "examples": ["example excerpt"],
                "recommendation": "Review phrasing",
                "mitigation_strategies": [],
            }
            for index, severity in enumerate(issue_severities)
        ],
        "policy_recommendations": [
            {"action": "create", "policy_name": "Gender Neutral Coaching", "policy_type": "bias_prevention"}
        ],
        "recommendations": ["Add counter-stereotypical examples to the prompt"],
        "status": status,
        "risk_level": risk_level,
        "automated_actions_taken": ["Flagged sampled logs for review"],
    }


@pytest.fixture()
def admin_caller() -> CallerContext:
    """An authenticated admin."""
    return CallerContext(email="admin@example.com", role="admin")


@pytest.fixture()
def user_caller() -> CallerContext:
    """An authenticated non-admin user."""
    return CallerContext(email="user@example.com", role="user")


@pytest.fixture()
def mock_risk_alert_repo() -> AsyncMock:
    """Mock IRiskAlertRepository whose create() returns a fake RiskAlert."""
    repo = AsyncMock()

    async def create(**kwargs: Any) -> MagicMock:
        alert = MagicMock()
        alert.id = uuid.uuid4()
        for key, value in kwargs.items():
            setattr(alert, key, value)
        alert.status = "active"
        return alert

    repo.create.side_effect = create
    return repo


@pytest.fixture()
def mock_usage_log_repo() -> AsyncMock:
    """Mock IUsageLogRepository with no logs."""
    repo = AsyncMock()
    repo.list_recent.return_value = []
    repo.append_bias_flags.return_value = MagicMock()
    return repo


@pytest.fixture()
def mock_admin_directory() -> AsyncMock:
    """Mock IAdminDirectory listing two admins."""
    directory = AsyncMock()
    directory.list_admins.return_value = [
        AdminContact(email="alice@example.com", full_name="Alice"),
        AdminContact(email="bob@example.com", full_name="Bob"),
    ]
    return directory


@pytest.fixture()
def mock_notifier() -> AsyncMock:
    """Mock INotifier that always delivers."""
    notifier = AsyncMock()
    notifier.send.return_value = None
    return notifier


@pytest.fixture()
def mock_analyzer() -> AsyncMock:
    """Mock ISemanticAnalyzer returning a non-critical bias scan."""
    analyzer = AsyncMock()
    analyzer.analyze.return_value = bias_findings_payload()
    analyzer.health_check.return_value = True
    return analyzer


@pytest.fixture()
def mock_metric_repo() -> AsyncMock:
    """Mock IMetricRepository with no samples."""
    repo = AsyncMock()
    repo.list_samples.return_value = []
    repo.list_agent_names.return_value = []
    return repo


@pytest.fixture()
def mock_policy_repo() -> AsyncMock:
    """Mock IPolicyRepository with one active policy."""
    repo = AsyncMock()
    repo.list_all.return_value = [make_policy()]

    async def create_draft(**kwargs: Any) -> MagicMock:
        policy = make_policy(policy_name=kwargs["policy_name"], status="draft")
        policy.rules = kwargs["rules"]
        return policy

    repo.create_draft.side_effect = create_draft
    return repo


@pytest.fixture()
def mock_bias_repo() -> AsyncMock:
    """Mock IBiasMonitoringRepository."""
    repo = AsyncMock()
    record = MagicMock()
    record.id = uuid.uuid4()
    repo.create.return_value = record
    repo.list_recent.return_value = [make_bias_record()]
    return repo


@pytest.fixture()
def mock_audit_repo() -> AsyncMock:
    """Mock IAuditTrailRepository capturing append() calls."""
    repo = AsyncMock()
    entry = MagicMock()
    entry.id = uuid.uuid4()
    repo.append.return_value = entry
    return repo
