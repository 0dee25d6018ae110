"""Tests for the adapter/repository layer.

These are unit tests using mock SQLAlchemy sessions.

Tests verify:
- Immutability of AuditTrailRepository (no update/delete)
- Bias flags are appended, never replaced, inside a savepoint
- Create methods build rows with the expected defaults
- The admin directory maps directory users to contacts
"""

import uuid
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from agent_governance_monitor.adapters.repositories import (
    AuditTrailRepository,
    BiasMonitoringRepository,
    PolicyRepository,
    RiskAlertRepository,
    SqlAdminDirectory,
    UsageLogRepository,
)
from agent_governance_monitor.core.models import AgentUsageLog
from agent_governance_monitor.errors import NotFoundError
from tests.conftest import bias_findings_payload


def _capturing_session() -> tuple[AsyncMock, list[Any]]:
    """Mock session that records add() calls and assigns ids on refresh."""
    session = AsyncMock()
    added: list[Any] = []
    session.add = MagicMock(side_effect=added.append)

    async def refresh(obj: Any) -> None:
        obj.id = uuid.uuid4()

    session.refresh = AsyncMock(side_effect=refresh)
    return session, added


def _session_returning(row: Any) -> AsyncMock:
    """Mock session whose execute() yields `row` from scalar_one_or_none()."""
    session = AsyncMock()
    result = MagicMock()
    result.scalar_one_or_none.return_value = row
    session.execute.return_value = result
    session.begin_nested = MagicMock()
    return session


class TestAuditTrailRepository:
    """AuditTrailRepository is append-only."""

    def test_repository_has_no_update_or_delete(self) -> None:
        repo = AuditTrailRepository(AsyncMock())

        for name in ("update", "update_status", "delete", "remove", "truncate"):
            assert not hasattr(repo, name), f"AuditTrailRepository must not have {name}()"

    @pytest.mark.asyncio()
    async def test_append_creates_audit_entry(self) -> None:
        session, added = _capturing_session()
        repo = AuditTrailRepository(session)

        entry = await repo.append(
            actor_email="admin@example.com",
            action_type="read",
            entity_type="GovernancePolicy",
            success=True,
            details={"scan_only": True, "recommendations": 2, "applied": 0},
            correlation_id="req-1",
        )

        assert added == [entry]
        assert entry.actor_email == "admin@example.com"
        assert entry.action_type == "read"
        assert entry.details["recommendations"] == 2
        assert entry.correlation_id == "req-1"
        session.flush.assert_awaited_once()


class TestUsageLogRepository:
    """Bias flag appends."""

    @pytest.mark.asyncio()
    async def test_append_keeps_existing_flags_in_order(self) -> None:
        existing = {"type": "gender_bias", "severity": "high", "description": "old", "detected_at": "t0"}
        log = AgentUsageLog(agent_name="TrainingCoach", interaction_content="hi", bias_flags=[existing])
        log.id = uuid.uuid4()
        original_list = log.bias_flags
        session = _session_returning(log)
        repo = UsageLogRepository(session)
        new_flags = [{"type": "age_bias", "severity": "critical", "description": "new", "detected_at": "t1"}]

        updated = await repo.append_bias_flags(log.id, new_flags)

        assert updated.bias_flags == [existing, *new_flags]
        assert updated.bias_flags is not original_list
        session.begin_nested.assert_called_once()
        session.flush.assert_awaited_once()

    @pytest.mark.asyncio()
    async def test_append_to_missing_log_raises_not_found(self) -> None:
        session = _session_returning(None)
        repo = UsageLogRepository(session)

        with pytest.raises(NotFoundError):
            await repo.append_bias_flags(uuid.uuid4(), [{"type": "age_bias"}])


class TestCreateRepositories:
    """Create-only repositories."""

    @pytest.mark.asyncio()
    async def test_risk_alert_is_created_active(self) -> None:
        session, added = _capturing_session()
        repo = RiskAlertRepository(session)

        alert = await repo.create(
            alert_type="performance_drift",
            severity="high",
            title="Performance Drift Detected: TrainingCoach",
            description="Significant performance degradation detected over the last 30 days",
            affected_component="TrainingCoach",
            metrics={"latency": {"drift_percentage": 60.0}},
            recommended_actions=["Investigate infrastructure capacity and model performance"],
        )

        assert added == [alert]
        assert alert.status == "active"
        assert alert.severity == "high"

    @pytest.mark.asyncio()
    async def test_bias_record_maps_findings(self) -> None:
        session, added = _capturing_session()
        repo = BiasMonitoringRepository(session)
        findings = bias_findings_payload(status="critical", risk_level="high", issue_severities=("high", "low"))

        record = await repo.create(agent_name="all", sample_size=12, findings=findings)

        assert added == [record]
        assert record.sample_size == 12
        assert record.status == "critical"
        assert record.risk_level == "high"
        assert len(record.detected_issues) == 2
        assert record.bias_metrics["overall_fairness_score"] == 72
        assert record.automated_actions_taken == ["Flagged sampled logs for review"]

    @pytest.mark.asyncio()
    async def test_policy_draft_defaults(self) -> None:
        session, added = _capturing_session()
        repo = PolicyRepository(session)

        policy = await repo.create_draft(
            policy_name="Plain Language",
            policy_type="content_moderation",
            description=None,
            rules=[],
            applicable_agents=[],
        )

        assert added == [policy]
        assert policy.status == "draft"
        assert policy.version == "1.0"


class TestSqlAdminDirectory:
    """Admin lookup."""

    @pytest.mark.asyncio()
    async def test_list_admins_maps_users(self) -> None:
        user = MagicMock()
        user.email = "alice@example.com"
        user.full_name = "Alice"
        result = MagicMock()
        result.scalars.return_value.all.return_value = [user]
        session = AsyncMock()
        session.execute.return_value = result
        session.begin_nested = MagicMock()

        admins = await SqlAdminDirectory(session).list_admins()

        assert len(admins) == 1
        session.begin_nested.assert_called_once()
        assert admins[0].email == "alice@example.com"
        assert admins[0].full_name == "Alice"
