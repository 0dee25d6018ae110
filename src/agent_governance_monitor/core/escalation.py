"""Escalation of drift reports and bias findings into side effects.

Two paths:

Drift path: a run whose report has at least one critical alert creates
exactly one RiskAlert (never one per metric). Drift-triggered alerts always
carry severity "high", whatever metric went critical.

Bias path: for each high or critical issue, a flag is appended to each log in
a bounded remediation sample (the first `max_flagged_logs` logs of the
scanned batch). The cap applies per run, so a scan with several escalating
issues still touches at most `max_flagged_logs` records, and the flags are
committed before anyone is notified. When the scan is critical, every admin
is notified once, concurrently; one failed delivery never blocks the others.

Deduplication is run-scoped only. Two independent runs over the same data
produce two RiskAlerts and two rounds of notifications.
"""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from agent_governance_monitor.core.cancellation import CancellationToken
from agent_governance_monitor.core.drift import ALL_AGENTS, DriftReport
from agent_governance_monitor.core.findings import BiasFindings, DetectedIssue
from agent_governance_monitor.core.interfaces import (
    AdminContact,
    IAdminDirectory,
    INotifier,
    IRiskAlertRepository,
    IUsageLogRepository,
)
from agent_governance_monitor.core.models import AgentUsageLog, RiskAlert
from agent_governance_monitor.errors import GovernanceMonitorError, NotificationFailureError
from agent_governance_monitor.observability import get_logger

logger = get_logger(__name__)

DRIFT_ALERT_TYPE = "performance_drift"
DRIFT_ALERT_SEVERITY = "high"
DEFAULT_MAX_FLAGGED_LOGS = 10

# Issues listed in the notification body
_NOTIFICATION_ISSUE_LIMIT = 3


@dataclass(frozen=True)
class NotificationOutcome:
    """Delivery result for one admin.

    Attributes:
        recipient: Admin email.
        delivered: Whether the notification was sent.
        error: Failure reason when not delivered.
    """

    recipient: str
    delivered: bool
    error: str | None = None


@dataclass
class BiasEscalationResult:
    """Side effects performed for one bias scan.

    Attributes:
        logs_flagged: Distinct usage-log records that received flags.
        flags_appended: Total flags appended across those records.
        notifications: One outcome per admin contacted.
    """

    logs_flagged: int = 0
    flags_appended: int = 0
    notifications: list[NotificationOutcome] = field(default_factory=list)

    @property
    def notification_sent(self) -> bool:
        """Whether at least one admin was notified."""
        return any(outcome.delivered for outcome in self.notifications)


def _build_flag(issue: DetectedIssue, detected_at: str) -> dict[str, Any]:
    return {
        "type": issue.issue_type,
        "severity": issue.severity,
        "description": issue.description,
        "detected_at": detected_at,
    }


def build_critical_bias_notification(findings: BiasFindings, agent_name: str) -> tuple[str, str]:
    """Subject and body of the admin notification for a critical scan.

    Args:
        findings: The critical scan findings.
        agent_name: Scanned agent, or "all".

    Returns:
        (subject, body)
    """
    fairness = findings.bias_metrics.overall_fairness_score
    key_issues = "\n".join(
        f"- {issue.issue_type}: {issue.description}"
        for issue in findings.detected_issues[:_NOTIFICATION_ISSUE_LIMIT]
    )
    actions = "\n".join(findings.automated_actions_taken) or "None"
    subject = f"CRITICAL: Bias Detected in AI Agent {agent_name}"
    body = f"""Critical bias issues have been detected in {agent_name}.

Detected Issues: {len(findings.detected_issues)}
Risk Level: {findings.risk_level}
Overall Fairness Score: {fairness if fairness is not None else 'N/A'}

Please review the AI Governance dashboard immediately.

Key Issues:
{key_issues}

Automated Actions Taken:
{actions}

View full report: [AI Governance Dashboard]"""
    return subject, body


class EscalationManager:
    """Applies escalation policy to drift reports and bias findings.

    Args:
        risk_alert_repo: Repository for creating RiskAlerts.
        usage_log_repo: Repository for appending bias flags.
        admin_directory: Read-only lookup of admins.
        notifier: Delivery channel for admin notifications.
        max_flagged_logs: Upper bound on records flagged per bias run.
    """

    def __init__(
        self,
        risk_alert_repo: IRiskAlertRepository,
        usage_log_repo: IUsageLogRepository,
        admin_directory: IAdminDirectory,
        notifier: INotifier,
        max_flagged_logs: int = DEFAULT_MAX_FLAGGED_LOGS,
    ) -> None:
        self._risk_alert_repo = risk_alert_repo
        self._usage_log_repo = usage_log_repo
        self._admin_directory = admin_directory
        self._notifier = notifier
        self._max_flagged_logs = max_flagged_logs

    async def escalate_drift(self, report: DriftReport) -> RiskAlert | None:
        """Create the run's RiskAlert if the report has a critical alert.

        Args:
            report: The drift report of this run.

        Returns:
            The created RiskAlert, or None when nothing was critical.
        """
        if not (report.drift_detected and report.has_critical_alert):
            return None

        pooled = report.agent_name == ALL_AGENTS
        alert = await self._risk_alert_repo.create(
            alert_type=DRIFT_ALERT_TYPE,
            severity=DRIFT_ALERT_SEVERITY,
            title=f"Performance Drift Detected: {'Multiple Agents' if pooled else report.agent_name}",
            description=(
                "Significant performance degradation detected over the last "
                f"{report.analysis_period_days} days"
            ),
            affected_component=None if pooled else report.agent_name,
            metrics=report.metrics_blob(),
            recommended_actions=[a.recommendation for a in report.alerts],
        )
        logger.warning(
            "Risk alert created for critical drift",
            risk_alert_id=str(alert.id),
            agent_name=report.agent_name,
            critical_metrics=[a.metric for a in report.alerts if a.severity == "critical"],
        )
        return alert

    async def escalate_bias(
        self,
        findings: BiasFindings,
        logs: Sequence[AgentUsageLog],
        agent_name: str,
        token: CancellationToken | None = None,
    ) -> BiasEscalationResult:
        """Flag logs and notify admins according to the findings.

        Args:
            findings: Validated analyzer findings.
            logs: The scanned usage logs, in scan order.
            agent_name: Scanned agent, or "all".
            token: Optional cancellation token checked before notifications.

        Returns:
            BiasEscalationResult describing the side effects performed.
        """
        result = BiasEscalationResult()

        escalating = findings.escalating_issues
        if escalating:
            result.logs_flagged, result.flags_appended = await self._flag_logs(escalating, logs)

        if findings.is_critical:
            if token is not None:
                token.raise_if_cancelled("admin notification")
            subject, body = build_critical_bias_notification(findings, agent_name)
            result.notifications = await self._notify_admins(subject, body, token)

        return result

    async def _flag_logs(
        self,
        issues: list[DetectedIssue],
        logs: Sequence[AgentUsageLog],
    ) -> tuple[int, int]:
        """Append one flag per escalating issue to each log in the sample.

        Returns:
            (distinct records flagged, total flags appended)
        """
        detected_at = datetime.now(UTC).isoformat()
        flags = [_build_flag(issue, detected_at) for issue in issues]
        sample = list(logs[: self._max_flagged_logs])

        flagged = 0
        for log in sample:
            try:
                await self._usage_log_repo.append_bias_flags(log.id, flags)
            except (GovernanceMonitorError, SQLAlchemyError) as exc:
                logger.error(
                    "Failed to flag usage log",
                    usage_log_id=str(log.id),
                    error=str(exc),
                )
                continue
            flagged += 1

        if flagged:
            await self._usage_log_repo.commit()

        logger.info(
            "Usage logs flagged",
            logs_flagged=flagged,
            sample_size=len(sample),
            issues=len(issues),
        )
        return flagged, flagged * len(flags)

    async def _notify_admins(
        self,
        subject: str,
        body: str,
        token: CancellationToken | None,
    ) -> list[NotificationOutcome]:
        """Notify every admin once, concurrently, collecting per-admin outcomes.

        A failed admin lookup is a notification failure: it is logged and the
        run continues with no notification sent.
        """
        try:
            admins = await self._admin_directory.list_admins()
        except Exception as exc:
            logger.error("Admin lookup failed, no notifications sent", error=str(exc))
            return []

        recipients: dict[str, AdminContact] = {}
        for admin in admins:
            recipients.setdefault(admin.email.lower(), admin)

        outcomes = await asyncio.gather(
            *(self._notify_one(admin, subject, body, token) for admin in recipients.values())
        )
        delivered = sum(1 for o in outcomes if o.delivered)
        logger.info(
            "Admin notifications dispatched",
            admins=len(outcomes),
            delivered=delivered,
            failed=len(outcomes) - delivered,
        )
        return list(outcomes)

    async def _notify_one(
        self,
        admin: AdminContact,
        subject: str,
        body: str,
        token: CancellationToken | None,
    ) -> NotificationOutcome:
        if token is not None and token.cancelled:
            return NotificationOutcome(recipient=admin.email, delivered=False, error="cancelled")
        try:
            await self._notifier.send(to=admin.email, subject=subject, body=body)
        except NotificationFailureError as exc:
            logger.warning("Admin notification failed", recipient=admin.email, error=exc.message)
            return NotificationOutcome(recipient=admin.email, delivered=False, error=exc.message)
        except Exception as exc:
            logger.error("Admin notification raised unexpectedly", recipient=admin.email, error=str(exc))
            return NotificationOutcome(recipient=admin.email, delivered=False, error=str(exc))
        return NotificationOutcome(recipient=admin.email, delivered=True)
