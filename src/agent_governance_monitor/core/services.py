"""Core orchestration services for the governance monitor.

Three service classes:
- DriftMonitoringService: performance drift detection for one agent, all agents
  pooled, or a per-agent sweep
- BiasScanService: bias scan over recent usage logs with escalation
- PolicyRecommendationService: governance policy review with audit trail

All services are async-first. They accept injected repositories and adapters
through their constructors and contain no framework code. Each public method
is one independent run: it checks its cancellation token before every
external call and never updates rows earlier runs created.
"""

import asyncio
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from agent_governance_monitor.auth import CallerContext
from agent_governance_monitor.core.cancellation import CancellationToken
from agent_governance_monitor.core.drift import ALL_AGENTS, DriftDetector, DriftReport
from agent_governance_monitor.core.escalation import BiasEscalationResult, EscalationManager
from agent_governance_monitor.core.findings import BiasFindings, dump_findings, parse_findings
from agent_governance_monitor.core.interfaces import (
    IAuditTrailRepository,
    IBiasMonitoringRepository,
    IMetricRepository,
    IPolicyRepository,
    ISemanticAnalyzer,
    IUsageLogRepository,
)
from agent_governance_monitor.core.models import AgentUsageLog, RiskAlert
from agent_governance_monitor.core.policy_pipeline import (
    PolicyRecommendationPipeline,
    PolicyReviewResult,
)
from agent_governance_monitor.core.prompts import BIAS_FINDINGS_SCHEMA, build_bias_scan_prompt
from agent_governance_monitor.core.windowing import MetricSample
from agent_governance_monitor.observability import get_logger

logger = get_logger(__name__)

NO_RECENT_LOGS_MESSAGE = "No recent logs to analyze"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


# ---------------------------------------------------------------------------
# Drift monitoring
# ---------------------------------------------------------------------------


@dataclass
class DriftRunResult:
    """Outcome of a drift run for one scope.

    Attributes:
        report: The drift report.
        risk_alert: RiskAlert created for this run, if any.
    """

    report: DriftReport
    risk_alert: RiskAlert | None = None


@dataclass
class DriftSweepResult:
    """Fan-in summary of a per-agent drift sweep.

    Attributes:
        lookback_days: Lookback period used for every agent.
        results: Per-agent results, in agent name order.
    """

    lookback_days: int
    results: list[DriftRunResult] = field(default_factory=list)

    @property
    def agents_analyzed(self) -> int:
        """Agents included in the sweep."""
        return len(self.results)

    @property
    def drift_detected_count(self) -> int:
        """Agents whose report detected drift."""
        return sum(1 for r in self.results if r.report.drift_detected)

    @property
    def risk_alerts_created(self) -> int:
        """RiskAlerts created across the sweep."""
        return sum(1 for r in self.results if r.risk_alert is not None)


class DriftMonitoringService:
    """Runs drift detection and escalates critical drift.

    Args:
        metric_repo: Read-only metric sample repository.
        escalation_manager: Escalation policy for drift reports.
        detector: Drift detector (owns window size and threshold).
        default_lookback_days: Lookback used when a request omits one.
    """

    def __init__(
        self,
        metric_repo: IMetricRepository,
        escalation_manager: EscalationManager,
        detector: DriftDetector | None = None,
        default_lookback_days: int = 30,
    ) -> None:
        self._metric_repo = metric_repo
        self._escalation_manager = escalation_manager
        self._detector = detector or DriftDetector()
        self._default_lookback_days = default_lookback_days

    async def detect_drift(
        self,
        agent_name: str | None = None,
        lookback_days: int | None = None,
        token: CancellationToken | None = None,
    ) -> DriftRunResult:
        """Detect drift for one agent, or for all agents pooled.

        Args:
            agent_name: Agent to analyze; None pools every agent's samples.
            lookback_days: Lookback period; the service default when None.
            token: Optional cancellation token.

        Returns:
            DriftRunResult. Insufficient data yields a non-drift report.
        """
        token = token or CancellationToken()
        days = lookback_days or self._default_lookback_days
        now = datetime.now(UTC)

        token.raise_if_cancelled("metric fetch")
        records = await self._metric_repo.list_samples(since=now - timedelta(days=days), agent_name=agent_name)
        samples = [MetricSample.from_record(r) for r in records]

        report = self._detector.analyze(samples, agent_name=agent_name, lookback_days=days, now=now)
        risk_alert = await self._escalation_manager.escalate_drift(report)

        logger.info(
            "Drift run completed",
            agent_name=report.agent_name,
            samples=len(samples),
            drift_detected=report.drift_detected,
            risk_alert_created=risk_alert is not None,
        )
        return DriftRunResult(report=report, risk_alert=risk_alert)

    async def detect_drift_for_agents(
        self,
        agent_names: Sequence[str] | None = None,
        lookback_days: int | None = None,
        token: CancellationToken | None = None,
    ) -> DriftSweepResult:
        """Detect drift independently for each agent.

        Per-agent analyses run concurrently; the summary is assembled only
        after every analysis has finished. Each agent escalates on its own, so
        a sweep creates at most one RiskAlert per agent.

        Args:
            agent_names: Agents to analyze; every agent with samples when None.
            lookback_days: Lookback period; the service default when None.
            token: Optional cancellation token.

        Returns:
            DriftSweepResult with one entry per agent.
        """
        token = token or CancellationToken()
        days = lookback_days or self._default_lookback_days
        now = datetime.now(UTC)
        since = now - timedelta(days=days)

        token.raise_if_cancelled("agent lookup")
        names = sorted(set(agent_names)) if agent_names else await self._metric_repo.list_agent_names(since)

        token.raise_if_cancelled("metric fetch")
        records = await self._metric_repo.list_samples(since=since)
        by_agent: dict[str, list[MetricSample]] = defaultdict(list)
        for record in records:
            by_agent[record.agent_name].append(MetricSample.from_record(record))

        reports = await asyncio.gather(
            *(
                asyncio.to_thread(self._detector.analyze, by_agent.get(name, []), name, days, now)
                for name in names
            )
        )

        sweep = DriftSweepResult(lookback_days=days)
        for report in reports:
            risk_alert = await self._escalation_manager.escalate_drift(report)
            sweep.results.append(DriftRunResult(report=report, risk_alert=risk_alert))

        logger.info(
            "Drift sweep completed",
            agents_analyzed=sweep.agents_analyzed,
            drift_detected=sweep.drift_detected_count,
            risk_alerts_created=sweep.risk_alerts_created,
        )
        return sweep


# ---------------------------------------------------------------------------
# Bias scanning
# ---------------------------------------------------------------------------


@dataclass
class BiasScanResult:
    """Outcome of one bias scan.

    Attributes:
        success: False when there was nothing to analyze.
        agent_name: Scanned agent, or "all".
        message: Explanation when success is False.
        scan_id: Id of the BiasMonitoringRecord created.
        sample_size: Number of logs analyzed.
        findings: Validated analyzer findings.
        escalation: Side effects performed.
    """

    success: bool
    agent_name: str
    message: str | None = None
    scan_id: Any = None
    sample_size: int = 0
    findings: BiasFindings | None = None
    escalation: BiasEscalationResult = field(default_factory=BiasEscalationResult)


class BiasScanService:
    """Scans recent usage logs for bias and escalates the findings.

    Args:
        usage_log_repo: Usage log repository.
        policy_repo: Policy repository (active policies give the analyzer context).
        bias_repo: Bias monitoring record repository.
        analyzer: Semantic analyzer.
        escalation_manager: Escalation policy for findings.
        max_logs: Most recent logs fetched per scan.
        default_lookback_days: Lookback used when a request omits one.
    """

    def __init__(
        self,
        usage_log_repo: IUsageLogRepository,
        policy_repo: IPolicyRepository,
        bias_repo: IBiasMonitoringRepository,
        analyzer: ISemanticAnalyzer,
        escalation_manager: EscalationManager,
        max_logs: int = 500,
        default_lookback_days: int = 7,
    ) -> None:
        self._usage_log_repo = usage_log_repo
        self._policy_repo = policy_repo
        self._bias_repo = bias_repo
        self._analyzer = analyzer
        self._escalation_manager = escalation_manager
        self._max_logs = max_logs
        self._default_lookback_days = default_lookback_days

    async def _load_scan_batch(self, agent_name: str, lookback_days: int) -> list[AgentUsageLog]:
        cutoff = datetime.now(UTC) - timedelta(days=lookback_days)
        logs = await self._usage_log_repo.list_recent(limit=self._max_logs)
        return [
            log
            for log in logs
            if _as_utc(log.created_at) >= cutoff and (agent_name == ALL_AGENTS or log.agent_name == agent_name)
        ]

    async def scan(
        self,
        agent_name: str = ALL_AGENTS,
        lookback_days: int | None = None,
        token: CancellationToken | None = None,
    ) -> BiasScanResult:
        """Run one bias scan.

        The monitoring record is committed before any log is flagged, so a
        failure or cancellation while escalating leaves the record intact.
        It is the audit source of truth; re-running re-derives the flags.

        Args:
            agent_name: Agent to scan, or "all".
            lookback_days: Lookback period; the service default when None.
            token: Optional cancellation token.

        Returns:
            BiasScanResult. An empty batch yields success False and creates
            no record.

        Raises:
            AnalyzerFailureError: If the analyzer fails or times out.
        """
        token = token or CancellationToken()
        days = lookback_days or self._default_lookback_days

        token.raise_if_cancelled("usage log fetch")
        logs = await self._load_scan_batch(agent_name, days)
        if not logs:
            logger.info("Bias scan skipped, no recent logs", agent_name=agent_name, lookback_days=days)
            return BiasScanResult(success=False, agent_name=agent_name, message=NO_RECENT_LOGS_MESSAGE)

        token.raise_if_cancelled("policy fetch")
        active_policies = await self._policy_repo.list_all(status_filter="active")

        prompt = build_bias_scan_prompt(logs, agent_name, days, active_policies)
        token.raise_if_cancelled("bias analyzer call")
        raw = await self._analyzer.analyze(prompt, BIAS_FINDINGS_SCHEMA)
        findings = parse_findings(raw, BiasFindings)

        record = await self._bias_repo.create(
            agent_name=agent_name,
            sample_size=len(logs),
            findings=dump_findings(findings),
        )
        await self._bias_repo.commit()
        escalation = await self._escalation_manager.escalate_bias(findings, logs, agent_name, token=token)

        logger.info(
            "Bias scan completed",
            scan_id=str(record.id),
            agent_name=agent_name,
            sample_size=len(logs),
            status=findings.status,
            risk_level=findings.risk_level,
            logs_flagged=escalation.logs_flagged,
            notification_sent=escalation.notification_sent,
        )
        return BiasScanResult(
            success=True,
            agent_name=agent_name,
            scan_id=record.id,
            sample_size=len(logs),
            findings=findings,
            escalation=escalation,
        )


# ---------------------------------------------------------------------------
# Policy recommendations
# ---------------------------------------------------------------------------


class PolicyRecommendationService:
    """Gathers governance context, runs the pipeline, and audits the run.

    Args:
        policy_repo: Policy repository.
        usage_log_repo: Usage log repository (source of violations).
        bias_repo: Bias monitoring record repository.
        audit_repo: Append-only audit trail.
        pipeline: The policy recommendation pipeline.
        log_limit: Most recent usage logs inspected for violations.
        bias_limit: Most recent bias scans summarized.
    """

    def __init__(
        self,
        policy_repo: IPolicyRepository,
        usage_log_repo: IUsageLogRepository,
        bias_repo: IBiasMonitoringRepository,
        audit_repo: IAuditTrailRepository,
        pipeline: PolicyRecommendationPipeline,
        log_limit: int = 100,
        bias_limit: int = 10,
    ) -> None:
        self._policy_repo = policy_repo
        self._usage_log_repo = usage_log_repo
        self._bias_repo = bias_repo
        self._audit_repo = audit_repo
        self._pipeline = pipeline
        self._log_limit = log_limit
        self._bias_limit = bias_limit

    async def recommend(
        self,
        caller: CallerContext,
        scan_only: bool = False,
        token: CancellationToken | None = None,
        correlation_id: str | None = None,
    ) -> PolicyReviewResult:
        """Review governance policies and optionally create drafts.

        Args:
            caller: The admin requesting the review (audit actor).
            scan_only: When True nothing but the audit entry is written.
            token: Optional cancellation token.
            correlation_id: Optional request correlation ID.

        Returns:
            PolicyReviewResult.

        Raises:
            AnalyzerFailureError: If the analyzer fails or times out.
        """
        token = token or CancellationToken()

        token.raise_if_cancelled("governance context fetch")
        policies = await self._policy_repo.list_all()
        recent_logs = await self._usage_log_repo.list_recent(limit=self._log_limit)
        bias_scans = await self._bias_repo.list_recent(limit=self._bias_limit)

        result = await self._pipeline.run(policies, recent_logs, bias_scans, scan_only=scan_only, token=token)

        await self._audit_repo.append(
            actor_email=caller.email,
            action_type="read" if scan_only else "update",
            entity_type="GovernancePolicy",
            success=True,
            details={
                "scan_only": scan_only,
                "recommendations": result.recommendations.recommendation_count,
                "applied": len(result.applied_changes),
            },
            correlation_id=correlation_id,
        )

        logger.info(
            "Policy recommendations completed",
            actor=caller.email,
            scan_only=scan_only,
            recommendations=result.recommendations.recommendation_count,
            applied=len(result.applied_changes),
        )
        return result
