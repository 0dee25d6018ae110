"""Abstract interfaces (Protocol classes) for the governance monitor.

Defines the contracts between the service layer and the adapter layer using
Python's typing.Protocol. Services depend on these protocols, never on
concrete adapter implementations. This enables testing with mock adapters
and keeps the LLM vendor and the user directory out of the detection logic.

Protocols defined:
- IMetricRepository
- IUsageLogRepository
- IRiskAlertRepository
- IBiasMonitoringRepository
- IPolicyRepository
- IAuditTrailRepository
- IAdminDirectory
- INotifier
- ISemanticAnalyzer
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from agent_governance_monitor.core.models import (
    AgentPerformanceMetric,
    AgentUsageLog,
    AuditTrailEntry,
    BiasMonitoringRecord,
    GovernancePolicy,
    RiskAlert,
)


@dataclass(frozen=True)
class AdminContact:
    """An admin who receives critical governance notifications.

    Attributes:
        email: Notification address.
        full_name: Display name, if known.
    """

    email: str
    full_name: str | None = None


class IMetricRepository(Protocol):
    """Read-only access to daily agent performance samples."""

    async def list_samples(
        self,
        since: datetime,
        agent_name: str | None = None,
    ) -> list[AgentPerformanceMetric]:
        """List samples on or after a date.

        Args:
            since: Earliest metric_date to include.
            agent_name: Restrict to one agent; None returns every agent's samples.

        Returns:
            Samples ordered by metric_date ascending.
        """
        ...

    async def list_agent_names(self, since: datetime) -> list[str]:
        """List distinct agents with at least one sample since a date.

        Args:
            since: Earliest metric_date to consider.

        Returns:
            Sorted agent names.
        """
        ...


class IUsageLogRepository(Protocol):
    """Usage log access. The only write is appending bias flags."""

    async def list_recent(self, limit: int) -> list[AgentUsageLog]:
        """List the most recently created usage logs.

        Args:
            limit: Maximum number of logs.

        Returns:
            Logs ordered newest first.
        """
        ...

    async def append_bias_flags(self, log_id: uuid.UUID, flags: list[dict[str, Any]]) -> AgentUsageLog:
        """Append flags to a log's bias_flags, keeping existing flags in order.

        Args:
            log_id: The usage log UUID.
            flags: Flags to append, each {type, severity, description, detected_at}.

        Returns:
            The updated log.

        Raises:
            NotFoundError: If the log does not exist.
        """
        ...

    async def commit(self) -> None:
        """Commit the appended flags so later failures in the run keep them."""
        ...


class IRiskAlertRepository(Protocol):
    """Create-only access to risk alerts."""

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
            The persisted RiskAlert with status active.
        """
        ...


class IBiasMonitoringRepository(Protocol):
    """Create-only access to bias scan records, plus recent history."""

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
            findings: Validated analyzer findings as a JSON-safe dict.

        Returns:
            The persisted BiasMonitoringRecord.
        """
        ...

    async def commit(self) -> None:
        """Commit the scan record before any escalation side effect runs."""
        ...

    async def list_recent(self, limit: int) -> list[BiasMonitoringRecord]:
        """List the most recent scan records, newest first.

        Args:
            limit: Maximum number of records.

        Returns:
            Records ordered newest first.
        """
        ...


class IPolicyRepository(Protocol):
    """Governance policy access. The engine only creates drafts."""

    async def list_all(self, status_filter: str | None = None) -> list[GovernancePolicy]:
        """List policies, optionally filtered by status.

        Args:
            status_filter: Optional status (draft, active, archived).

        Returns:
            Matching policies, newest first.
        """
        ...

    async def create_draft(
        self,
        policy_name: str,
        policy_type: str | None,
        description: str | None,
        rules: list[dict[str, Any]],
        applicable_agents: list[str],
    ) -> GovernancePolicy:
        """Create a policy in draft status with version "1.0".

        Args:
            policy_name: Policy name.
            policy_type: Policy category.
            description: What the policy enforces.
            rules: Rule dicts.
            applicable_agents: Agents the policy applies to.

        Returns:
            The persisted draft GovernancePolicy.
        """
        ...


class IAuditTrailRepository(Protocol):
    """Append-only audit trail."""

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
        ...


class IAdminDirectory(Protocol):
    """Read-only lookup of users holding the admin role."""

    async def list_admins(self) -> list[AdminContact]:
        """Return every admin.

        Returns:
            Admin contacts, possibly empty.
        """
        ...


class INotifier(Protocol):
    """Delivery channel for operator notifications."""

    async def send(self, to: str, subject: str, body: str) -> None:
        """Deliver one notification.

        Args:
            to: Recipient address.
            subject: Subject line.
            body: Plain-text body.

        Raises:
            NotificationFailureError: If delivery fails.
        """
        ...


class ISemanticAnalyzer(Protocol):
    """Opaque structured-analysis oracle (an LLM behind a gateway)."""

    async def analyze(self, prompt: str, response_schema: dict[str, Any]) -> dict[str, Any]:
        """Analyze a prompt and return a response matching the schema.

        Args:
            prompt: Corpus and policy context rendered as a prompt.
            response_schema: JSON schema of the expected response object.

        Returns:
            The structured response.

        Raises:
            AnalyzerFailureError: On error or timeout.
        """
        ...

    async def health_check(self) -> bool:
        """Whether the analyzer is reachable.

        Returns:
            True when the analyzer answers its health probe.
        """
        ...
