"""SQLAlchemy repositories for the governance monitor database.

Each repository implements the corresponding interface from core/interfaces.py
and extends BaseRepository for the shared session plumbing.

Repositories:
- MetricRepository              — AgentPerformanceMetric read-only
- UsageLogRepository            — AgentUsageLog reads and bias flag appends
- RiskAlertRepository           — RiskAlert create-only
- BiasMonitoringRepository      — BiasMonitoringRecord create and history
- PolicyRepository              — GovernancePolicy listing and draft creation
- AuditTrailRepository          — AuditTrailEntry append-only
- SqlAdminDirectory             — DirectoryUser admin lookup

None of these repositories exposes an update or delete of rows a run created.
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agent_governance_monitor.auth import ADMIN_ROLE
from agent_governance_monitor.core.interfaces import AdminContact
from agent_governance_monitor.core.models import (
    AgentPerformanceMetric,
    AgentUsageLog,
    AuditTrailEntry,
    BiasMonitoringRecord,
    DirectoryUser,
    GovernancePolicy,
    RiskAlert,
)
from agent_governance_monitor.database import BaseRepository
from agent_governance_monitor.observability import get_logger

logger = get_logger(__name__)


class MetricRepository(BaseRepository[AgentPerformanceMetric]):
    """Read-only access to daily performance samples.

    Args:
        session: The async database session.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, AgentPerformanceMetric)

    async def list_samples(
        self,
        since: datetime,
        agent_name: str | None = None,
    ) -> list[AgentPerformanceMetric]:
        """List samples on or after a date, oldest first.

        Args:
            since: Earliest metric_date to include.
            agent_name: Restrict to one agent; None returns all agents.

        Returns:
            Samples ordered by metric_date ascending.
        """
        stmt = select(AgentPerformanceMetric).where(AgentPerformanceMetric.metric_date >= since)
        if agent_name is not None:
            stmt = stmt.where(AgentPerformanceMetric.agent_name == agent_name)
        stmt = stmt.order_by(AgentPerformanceMetric.metric_date.asc())
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_agent_names(self, since: datetime) -> list[str]:
        """List distinct agents with samples since a date.

        Args:
            since: Earliest metric_date to consider.

        Returns:
            Agent names in alphabetical order.
        """
        stmt = (
            select(AgentPerformanceMetric.agent_name)
            .where(AgentPerformanceMetric.metric_date >= since)
            .distinct()
            .order_by(AgentPerformanceMetric.agent_name)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class UsageLogRepository(BaseRepository[AgentUsageLog]):
    """Usage log reads plus the single permitted write: appending bias flags.

    Args:
        session: The async database session.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, AgentUsageLog)

    async def list_recent(self, limit: int) -> list[AgentUsageLog]:
        """List the most recently created usage logs, newest first.

        Args:
            limit: Maximum number of logs.

        Returns:
            Up to `limit` logs.
        """
        stmt = select(AgentUsageLog).order_by(AgentUsageLog.created_at.desc()).limit(limit)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def append_bias_flags(self, log_id: uuid.UUID, flags: list[dict[str, Any]]) -> AgentUsageLog:
        """Append flags to a log inside a savepoint.

        The savepoint keeps a failed append from rolling back flags written
        to other logs in the same request. A new list is assigned so the JSON
        column is marked dirty.

        Args:
            log_id: The usage log UUID.
            flags: Flags to append.

        Returns:
            The updated log.

        Raises:
            NotFoundError: If the log does not exist.
        """
        async with self._session.begin_nested():
            log = await self.get(log_id)
            log.bias_flags = [*(log.bias_flags or []), *flags]
            await self._session.flush()

        logger.debug("Bias flags appended", usage_log_id=str(log_id), flags=len(flags))
        return log


class RiskAlertRepository(BaseRepository[RiskAlert]):
    """Create-only access to risk alerts.

    Args:
        session: The async database session.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, RiskAlert)

    async def create(
        self,
        alert_type: str,
        severity: str,
        title: str,
        description: str,
        affected_component: str | None,
        metrics: dict[str, Any],
        recommended_actions: list[str],
    ) -> RiskAlert:
        """Create and persist a new active risk alert.

        Args:
            alert_type: Alert category.
            severity: Alert severity.
            title: Short headline.
            description: Longer explanation.
            affected_component: Agent name, or None for pooled runs.
            metrics: Per-metric drift blob.
            recommended_actions: Recommendations for operators.

        Returns:
            The persisted RiskAlert.
        """
        alert = RiskAlert(
            alert_type=alert_type,
            severity=severity,
            title=title,
            description=description,
            affected_component=affected_component,
            metrics=metrics,
            recommended_actions=recommended_actions,
            status="active",
        )
        alert = await self._add(alert)
        logger.info("Risk alert persisted", risk_alert_id=str(alert.id), alert_type=alert_type)
        return alert


class BiasMonitoringRepository(BaseRepository[BiasMonitoringRecord]):
    """Create-only bias scan records, with recent history for policy review.

    Args:
        session: The async database session.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, BiasMonitoringRecord)

    async def create(
        self,
        agent_name: str,
        sample_size: int,
        findings: dict[str, Any],
    ) -> BiasMonitoringRecord:
        """Persist the summary of one bias scan.

        Args:
            agent_name: Scanned agent, or "all".
            sample_size: Number of logs analyzed.
            findings: Dumped BiasFindings.

        Returns:
            The persisted BiasMonitoringRecord.
        """
        record = BiasMonitoringRecord(
            agent_name=agent_name,
            sample_size=sample_size,
            bias_metrics=findings.get("bias_metrics", {}),
            detected_issues=findings.get("detected_issues", []),
            policy_recommendations=findings.get("policy_recommendations", []),
            recommendations=findings.get("recommendations", []),
            automated_actions_taken=findings.get("automated_actions_taken", []),
            status=findings.get("status", "clear"),
            risk_level=findings.get("risk_level", "low"),
        )
        record = await self._add(record)
        logger.info(
            "Bias monitoring record persisted",
            scan_id=str(record.id),
            agent_name=agent_name,
            risk_level=record.risk_level,
        )
        return record

    async def list_recent(self, limit: int) -> list[BiasMonitoringRecord]:
        """List the most recent scan records, newest first.

        Args:
            limit: Maximum number of records.

        Returns:
            Up to `limit` records.
        """
        stmt = select(BiasMonitoringRecord).order_by(BiasMonitoringRecord.created_at.desc()).limit(limit)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class PolicyRepository(BaseRepository[GovernancePolicy]):
    """Governance policy listing and draft creation.

    Args:
        session: The async database session.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, GovernancePolicy)

    async def list_all(self, status_filter: str | None = None) -> list[GovernancePolicy]:
        """List policies with an optional status filter.

        Args:
            status_filter: Optional status (draft, active, archived).

        Returns:
            Matching policies, newest first.
        """
        stmt = select(GovernancePolicy)
        if status_filter:
            stmt = stmt.where(GovernancePolicy.status == status_filter)
        stmt = stmt.order_by(GovernancePolicy.created_at.desc())
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def create_draft(
        self,
        policy_name: str,
        policy_type: str | None,
        description: str | None,
        rules: list[dict[str, Any]],
        applicable_agents: list[str],
    ) -> GovernancePolicy:
        """Create a draft policy at version "1.0".

        Args:
            policy_name: Policy name.
            policy_type: Policy category.
            description: What the policy enforces.
            rules: Rule dicts.
            applicable_agents: Agents the policy applies to.

        Returns:
            The persisted draft.
        """
        policy = GovernancePolicy(
            policy_name=policy_name,
            policy_type=policy_type,
            description=description,
            rules=rules,
            applicable_agents=applicable_agents,
            status="draft",
            version="1.0",
        )
        policy = await self._add(policy)
        logger.info("Draft policy created", policy_id=str(policy.id), policy_name=policy_name)
        return policy


class AuditTrailRepository(BaseRepository[AuditTrailEntry]):
    """Append-only audit trail.

    Exposes append and reads only. There is no update or delete.

    Args:
        session: The async database session.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, AuditTrailEntry)

    async def append(
        self,
        actor_email: str,
        action_type: str,
        entity_type: str,
        success: bool,
        details: dict[str, Any],
        correlation_id: str | None = None,
    ) -> AuditTrailEntry:
        """Append an audit entry.

        Args:
            actor_email: Who triggered the operation.
            action_type: read | create | update.
            entity_type: Entity concerned.
            success: Whether the operation completed.
            details: Operation-specific context.
            correlation_id: Optional request correlation ID.

        Returns:
            The persisted AuditTrailEntry.
        """
        entry = AuditTrailEntry(
            actor_email=actor_email,
            action_type=action_type,
            entity_type=entity_type,
            success=success,
            details=details,
            correlation_id=correlation_id,
        )
        entry = await self._add(entry)
        logger.info(
            "Audit entry appended",
            audit_entry_id=str(entry.id),
            action_type=action_type,
            entity_type=entity_type,
        )
        return entry


class SqlAdminDirectory:
    """Admin lookup backed by the directory user table.

    Args:
        session: The async database session.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_admins(self) -> list[AdminContact]:
        """Return every user holding the admin role, ordered by email.

        Runs inside a savepoint so a failed lookup leaves the request
        transaction usable for the rest of the run.
        """
        stmt = select(DirectoryUser).where(DirectoryUser.role == ADMIN_ROLE).order_by(DirectoryUser.email)
        async with self._session.begin_nested():
            result = await self._session.execute(stmt)
            users = result.scalars().all()
        return [AdminContact(email=user.email, full_name=user.full_name) for user in users]
