"""API router for agent-governance-monitor.

All monitoring endpoints are registered here and included in main.py under
the /api/v1 prefix. Routes are thin; all business logic lives in the
service layer.

Endpoints:
- POST  /driftDetection          — Drift detection for one agent or all agents pooled (admin)
- POST  /driftDetection/sweep    — Independent drift detection per agent (admin)
- POST  /biasScan                — Bias scan over recent usage logs (any caller)
- POST  /policyRecommendations   — Governance policy review, optional draft creation (admin)
- GET   /health                  — Service health and analyzer reachability (no prefix)
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from agent_governance_monitor.adapters.analyzer_client import HttpSemanticAnalyzer
from agent_governance_monitor.adapters.notifier import HttpEmailNotifier
from agent_governance_monitor.adapters.repositories import (
    AuditTrailRepository,
    BiasMonitoringRepository,
    MetricRepository,
    PolicyRepository,
    RiskAlertRepository,
    SqlAdminDirectory,
    UsageLogRepository,
)
from agent_governance_monitor.api.schemas import (
    BiasScanRequest,
    BiasScanResponse,
    BiasScanSummary,
    DriftDetectionRequest,
    DriftReportResponse,
    DriftSweepRequest,
    DriftSweepResponse,
    HealthResponse,
    PolicyRecommendationRequest,
    PolicyRecommendationResponse,
)
from agent_governance_monitor.auth import CallerContext, get_current_user, require_admin
from agent_governance_monitor.core.drift import DriftDetector, DriftReport
from agent_governance_monitor.core.escalation import EscalationManager
from agent_governance_monitor.core.findings import dump_findings
from agent_governance_monitor.core.interfaces import INotifier, ISemanticAnalyzer
from agent_governance_monitor.core.policy_pipeline import PolicyRecommendationPipeline
from agent_governance_monitor.core.services import (
    BiasScanResult,
    BiasScanService,
    DriftMonitoringService,
    PolicyRecommendationService,
)
from agent_governance_monitor.core.windowing import WindowAggregator
from agent_governance_monitor.database import get_db_session
from agent_governance_monitor.observability import get_logger
from agent_governance_monitor.settings import Settings, get_settings

logger = get_logger(__name__)

router = APIRouter(tags=["governance-monitoring"])
health_router = APIRouter(tags=["health"])


# ---------------------------------------------------------------------------
# Dependency factories: wire repositories, services and clients together
# ---------------------------------------------------------------------------


def get_analyzer(settings: Annotated[Settings, Depends(get_settings)]) -> ISemanticAnalyzer:
    """Construct the semantic analyzer client from settings."""
    return HttpSemanticAnalyzer(
        analyzer_url=settings.analyzer_url,
        api_key=settings.analyzer_api_key,
        timeout_seconds=settings.analyzer_timeout_seconds,
    )


def get_notifier(settings: Annotated[Settings, Depends(get_settings)]) -> INotifier:
    """Construct the admin notification client from settings."""
    return HttpEmailNotifier(
        notifier_url=settings.notifier_url,
        from_address=settings.notification_from_address,
        api_key=settings.notifier_api_key,
        timeout_seconds=settings.notifier_timeout_seconds,
    )


def get_escalation_manager(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    notifier: Annotated[INotifier, Depends(get_notifier)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> EscalationManager:
    """Construct EscalationManager with injected repositories and notifier.

    Args:
        session: Primary DB session.
        notifier: Admin notification channel.
        settings: Service settings.

    Returns:
        Fully wired EscalationManager instance.
    """
    return EscalationManager(
        risk_alert_repo=RiskAlertRepository(session),
        usage_log_repo=UsageLogRepository(session),
        admin_directory=SqlAdminDirectory(session),
        notifier=notifier,
        max_flagged_logs=settings.max_flagged_logs,
    )


def get_drift_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    escalation_manager: Annotated[EscalationManager, Depends(get_escalation_manager)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> DriftMonitoringService:
    """Construct DriftMonitoringService with injected repositories.

    Args:
        session: Primary DB session.
        escalation_manager: Escalation policy.
        settings: Service settings.

    Returns:
        Fully wired DriftMonitoringService instance.
    """
    detector = DriftDetector(
        aggregator=WindowAggregator(
            window_size=settings.drift_window_size,
            lookback_days=settings.drift_lookback_days,
        ),
        threshold_pct=settings.drift_threshold_pct,
    )
    return DriftMonitoringService(
        metric_repo=MetricRepository(session),
        escalation_manager=escalation_manager,
        detector=detector,
        default_lookback_days=settings.drift_lookback_days,
    )


def get_bias_scan_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    analyzer: Annotated[ISemanticAnalyzer, Depends(get_analyzer)],
    escalation_manager: Annotated[EscalationManager, Depends(get_escalation_manager)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> BiasScanService:
    """Construct BiasScanService with injected repositories and analyzer.

    Args:
        session: Primary DB session.
        analyzer: Semantic analyzer.
        escalation_manager: Escalation policy.
        settings: Service settings.

    Returns:
        Fully wired BiasScanService instance.
    """
    return BiasScanService(
        usage_log_repo=UsageLogRepository(session),
        policy_repo=PolicyRepository(session),
        bias_repo=BiasMonitoringRepository(session),
        analyzer=analyzer,
        escalation_manager=escalation_manager,
        max_logs=settings.bias_scan_max_logs,
        default_lookback_days=settings.bias_scan_lookback_days,
    )


def get_policy_recommendation_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    analyzer: Annotated[ISemanticAnalyzer, Depends(get_analyzer)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> PolicyRecommendationService:
    """Construct PolicyRecommendationService with injected repositories.

    Args:
        session: Primary DB session.
        analyzer: Semantic analyzer.
        settings: Service settings.

    Returns:
        Fully wired PolicyRecommendationService instance.
    """
    policy_repo = PolicyRepository(session)
    return PolicyRecommendationService(
        policy_repo=policy_repo,
        usage_log_repo=UsageLogRepository(session),
        bias_repo=BiasMonitoringRepository(session),
        audit_repo=AuditTrailRepository(session),
        pipeline=PolicyRecommendationPipeline(analyzer=analyzer, policy_repo=policy_repo),
        log_limit=settings.policy_scan_log_limit,
        bias_limit=settings.policy_scan_bias_limit,
    )


def _drift_response(report: DriftReport) -> DriftReportResponse:
    return DriftReportResponse.model_validate(report.to_dict())


def _bias_scan_response(result: BiasScanResult) -> BiasScanResponse:
    if not result.success or result.findings is None:
        return BiasScanResponse(success=False, message=result.message)

    findings = result.findings
    return BiasScanResponse(
        success=True,
        scan_id=result.scan_id,
        agent_name=result.agent_name,
        sample_size=result.sample_size,
        status=findings.status,
        risk_level=findings.risk_level,
        issues_detected=len(findings.detected_issues),
        logs_flagged=result.escalation.logs_flagged,
        notification_sent=result.escalation.notification_sent,
        policy_recommendations=len(findings.policy_recommendations),
        summary=BiasScanSummary(
            bias_metrics=dump_findings(findings.bias_metrics),
            automated_actions=findings.automated_actions_taken,
        ),
    )


# ---------------------------------------------------------------------------
# Drift detection endpoints
# ---------------------------------------------------------------------------


@router.post("/driftDetection", response_model=DriftReportResponse, response_model_exclude_none=True)
async def detect_drift(
    request: DriftDetectionRequest,
    caller: Annotated[CallerContext, Depends(get_current_user)],
    service: Annotated[DriftMonitoringService, Depends(get_drift_service)],
) -> DriftReportResponse:
    """Detect performance drift for one agent, or all agents pooled.

    Insufficient data is not an error: the response has drift_detected
    false and an explanatory message.

    Args:
        request: Drift detection request body.
        caller: Caller identity from the gateway headers.
        service: Injected DriftMonitoringService.

    Returns:
        The drift report.
    """
    require_admin(caller)
    logger.info("POST /driftDetection", actor=caller.email, agent_name=request.agent_name)
    result = await service.detect_drift(agent_name=request.agent_name, lookback_days=request.lookback_days)
    return _drift_response(result.report)


@router.post("/driftDetection/sweep", response_model=DriftSweepResponse, response_model_exclude_none=True)
async def sweep_drift(
    request: DriftSweepRequest,
    caller: Annotated[CallerContext, Depends(get_current_user)],
    service: Annotated[DriftMonitoringService, Depends(get_drift_service)],
) -> DriftSweepResponse:
    """Detect drift independently for each agent.

    Args:
        request: Sweep request body.
        caller: Caller identity from the gateway headers.
        service: Injected DriftMonitoringService.

    Returns:
        Per-agent reports and sweep totals.
    """
    require_admin(caller)
    logger.info("POST /driftDetection/sweep", actor=caller.email, agent_names=request.agent_names)
    sweep = await service.detect_drift_for_agents(
        agent_names=request.agent_names,
        lookback_days=request.lookback_days,
    )
    return DriftSweepResponse(
        agents_analyzed=sweep.agents_analyzed,
        drift_detected_count=sweep.drift_detected_count,
        risk_alerts_created=sweep.risk_alerts_created,
        reports={r.report.agent_name: _drift_response(r.report) for r in sweep.results},
    )


# ---------------------------------------------------------------------------
# Bias scan endpoint
# ---------------------------------------------------------------------------


@router.post("/biasScan", response_model=BiasScanResponse, response_model_exclude_none=True)
async def bias_scan(
    request: BiasScanRequest,
    caller: Annotated[CallerContext, Depends(get_current_user)],
    service: Annotated[BiasScanService, Depends(get_bias_scan_service)],
) -> BiasScanResponse:
    """Scan recent usage logs for bias and escalate the findings.

    Args:
        request: Bias scan request body.
        caller: Caller identity from the gateway headers.
        service: Injected BiasScanService.

    Returns:
        Scan results, or success false when there were no logs to analyze.
    """
    logger.info("POST /biasScan", actor=caller.email, agent_name=request.agent_name)
    result = await service.scan(agent_name=request.agent_name, lookback_days=request.lookback_days)
    return _bias_scan_response(result)


# ---------------------------------------------------------------------------
# Policy recommendation endpoint
# ---------------------------------------------------------------------------


@router.post("/policyRecommendations", response_model=PolicyRecommendationResponse)
async def recommend_policies(
    request: PolicyRecommendationRequest,
    caller: Annotated[CallerContext, Depends(get_current_user)],
    service: Annotated[PolicyRecommendationService, Depends(get_policy_recommendation_service)],
    x_request_id: Annotated[str | None, Header()] = None,
) -> PolicyRecommendationResponse:
    """Review governance policies and, unless scan_only, create drafts.

    Args:
        request: Policy recommendation request body.
        caller: Caller identity from the gateway headers.
        service: Injected PolicyRecommendationService.
        x_request_id: Optional correlation ID recorded in the audit trail.

    Returns:
        Recommendations and the changes applied.
    """
    require_admin(caller)
    logger.info("POST /policyRecommendations", actor=caller.email, scan_only=request.scan_only)
    result = await service.recommend(caller, scan_only=request.scan_only, correlation_id=x_request_id)
    return PolicyRecommendationResponse(
        success=True,
        scan_only=result.scan_only,
        recommendations=dump_findings(result.recommendations),
        applied_changes=result.applied_changes,
        timestamp=result.timestamp,
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@health_router.get("/health", response_model=HealthResponse)
async def health(
    analyzer: Annotated[ISemanticAnalyzer, Depends(get_analyzer)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> HealthResponse:
    """Report service health and analyzer reachability.

    The service stays up while the analyzer is down; bias scans and policy
    reviews fail until it returns, so the status is reported as degraded.
    """
    reachable = await analyzer.health_check()
    return HealthResponse(
        status="ok" if reachable else "degraded",
        service=settings.service_name,
        analyzer_reachable=reachable,
    )
