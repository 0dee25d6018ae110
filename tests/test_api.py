"""Tests for API endpoints (router layer).

Tests the FastAPI routes by calling the service layer through dependency
injection overrides. Does not test service logic — that is in test_services.py.

Tests verify:
- Caller identity and admin enforcement (401 / 403)
- Response shapes for conclusive, inconclusive and empty runs
- Error mapping (analyzer failure → 500, cancellation → 409)
"""

import uuid
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient, Response

from agent_governance_monitor.api.router import (
    get_analyzer,
    get_bias_scan_service,
    get_drift_service,
    get_policy_recommendation_service,
    health_router,
    router,
)
from agent_governance_monitor.core.drift import DriftDetector, DriftReport
from agent_governance_monitor.core.escalation import BiasEscalationResult, NotificationOutcome
from agent_governance_monitor.core.findings import BiasFindings, PolicyRecommendations
from agent_governance_monitor.core.policy_pipeline import PolicyReviewResult
from agent_governance_monitor.core.services import (
    BiasScanResult,
    DriftRunResult,
    DriftSweepResult,
)
from agent_governance_monitor.errors import (
    AnalyzerFailureError,
    RunCancelledError,
    register_exception_handlers,
)
from agent_governance_monitor.settings import Settings, get_settings
from tests.conftest import NOW, bias_findings_payload, make_samples

ADMIN_HEADERS = {"X-User-Email": "admin@example.com", "X-User-Role": "admin"}
USER_HEADERS = {"X-User-Email": "user@example.com", "X-User-Role": "user"}


def _critical_report(agent_name: str = "TrainingCoach") -> DriftReport:
    return DriftDetector().analyze(make_samples([100.0] * 7 + [200.0] * 7), agent_name=agent_name, now=NOW)


@pytest.fixture()
def test_app() -> FastAPI:
    """Create a FastAPI test app with the monitoring routers and error handlers."""
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(health_router)
    app.include_router(router, prefix="/api/v1")
    app.dependency_overrides[get_settings] = lambda: Settings()
    return app


@pytest.fixture()
def drift_service_mock() -> AsyncMock:
    """Create a mock DriftMonitoringService."""
    mock = AsyncMock()
    mock.detect_drift.return_value = DriftRunResult(report=_critical_report())
    return mock


@pytest.fixture()
def bias_service_mock() -> AsyncMock:
    """Create a mock BiasScanService returning a critical scan."""
    mock = AsyncMock()
    mock.scan.return_value = BiasScanResult(
        success=True,
        agent_name="all",
        scan_id=uuid.UUID("00000000-0000-0000-0000-0000000000aa"),
        sample_size=42,
        findings=BiasFindings.model_validate(
            bias_findings_payload(status="critical", risk_level="critical", issue_severities=("high", "low"))
        ),
        escalation=BiasEscalationResult(
            logs_flagged=10,
            flags_appended=10,
            notifications=[NotificationOutcome(recipient="alice@example.com", delivered=True)],
        ),
    )
    return mock


async def _post(app: FastAPI, path: str, json: dict, headers: dict[str, str] | None = None) -> Response:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        return await client.post(path, json=json, headers=headers or {})


class TestDriftDetectionEndpoint:
    """Tests for POST /driftDetection."""

    @pytest.mark.asyncio()
    async def test_missing_identity_returns_401(self, test_app: FastAPI, drift_service_mock: AsyncMock) -> None:
        test_app.dependency_overrides[get_drift_service] = lambda: drift_service_mock

        response = await _post(test_app, "/api/v1/driftDetection", {})

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Authentication required"}

    @pytest.mark.asyncio()
    async def test_non_admin_returns_403_before_any_read(
        self,
        test_app: FastAPI,
        drift_service_mock: AsyncMock,
    ) -> None:
        test_app.dependency_overrides[get_drift_service] = lambda: drift_service_mock

        response = await _post(test_app, "/api/v1/driftDetection", {}, USER_HEADERS)

        assert response.status_code == 403
        assert response.json()["error"] == "Forbidden: Admin access required"
        drift_service_mock.detect_drift.assert_not_called()

    @pytest.mark.asyncio()
    async def test_admin_receives_report(self, test_app: FastAPI, drift_service_mock: AsyncMock) -> None:
        test_app.dependency_overrides[get_drift_service] = lambda: drift_service_mock

        response = await _post(
            test_app,
            "/api/v1/driftDetection",
            {"agent_name": "TrainingCoach", "lookback_days": 30},
            ADMIN_HEADERS,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["drift_detected"] is True
        assert body["agent_name"] == "TrainingCoach"
        assert body["baseline_period"] == "2026-03-17 to 2026-03-23"
        assert body["metrics"]["latency"]["drift_percentage"] == 100.0
        assert body["alerts"][0]["severity"] == "critical"
        assert "message" not in body
        drift_service_mock.detect_drift.assert_awaited_once_with(agent_name="TrainingCoach", lookback_days=30)

    @pytest.mark.asyncio()
    async def test_insufficient_data_returns_message_only(
        self,
        test_app: FastAPI,
        drift_service_mock: AsyncMock,
    ) -> None:
        message = "Insufficient data for drift detection (minimum 14 days required)"
        drift_service_mock.detect_drift.return_value = DriftRunResult(
            report=DriftReport.insufficient("all", 30, message)
        )
        test_app.dependency_overrides[get_drift_service] = lambda: drift_service_mock

        response = await _post(test_app, "/api/v1/driftDetection", {}, ADMIN_HEADERS)

        assert response.status_code == 200
        assert response.json() == {"drift_detected": False, "message": message}

    @pytest.mark.asyncio()
    async def test_invalid_lookback_returns_422(self, test_app: FastAPI, drift_service_mock: AsyncMock) -> None:
        test_app.dependency_overrides[get_drift_service] = lambda: drift_service_mock

        response = await _post(test_app, "/api/v1/driftDetection", {"lookback_days": 0}, ADMIN_HEADERS)

        assert response.status_code == 422

    @pytest.mark.asyncio()
    async def test_cancelled_run_returns_409(self, test_app: FastAPI, drift_service_mock: AsyncMock) -> None:
        drift_service_mock.detect_drift.side_effect = RunCancelledError("Run cancelled before metric fetch")
        test_app.dependency_overrides[get_drift_service] = lambda: drift_service_mock

        response = await _post(test_app, "/api/v1/driftDetection", {}, ADMIN_HEADERS)

        assert response.status_code == 409


class TestDriftSweepEndpoint:
    """Tests for POST /driftDetection/sweep."""

    @pytest.mark.asyncio()
    async def test_sweep_summary(self, test_app: FastAPI, drift_service_mock: AsyncMock) -> None:
        sweep = DriftSweepResult(lookback_days=30)
        sweep.results.append(DriftRunResult(report=_critical_report("Alpha"), risk_alert=AsyncMock()))
        sweep.results.append(
            DriftRunResult(report=DriftReport.insufficient("Beta", 30, "Insufficient data"))
        )
        drift_service_mock.detect_drift_for_agents.return_value = sweep
        test_app.dependency_overrides[get_drift_service] = lambda: drift_service_mock

        response = await _post(test_app, "/api/v1/driftDetection/sweep", {}, ADMIN_HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["agents_analyzed"] == 2
        assert body["drift_detected_count"] == 1
        assert body["risk_alerts_created"] == 1
        assert body["reports"]["Beta"] == {"drift_detected": False, "message": "Insufficient data"}
        assert body["reports"]["Alpha"]["drift_detected"] is True

    @pytest.mark.asyncio()
    async def test_sweep_requires_admin(self, test_app: FastAPI, drift_service_mock: AsyncMock) -> None:
        test_app.dependency_overrides[get_drift_service] = lambda: drift_service_mock

        response = await _post(test_app, "/api/v1/driftDetection/sweep", {}, USER_HEADERS)

        assert response.status_code == 403
        drift_service_mock.detect_drift_for_agents.assert_not_called()


class TestBiasScanEndpoint:
    """Tests for POST /biasScan."""

    @pytest.mark.asyncio()
    async def test_any_authenticated_caller_may_scan(
        self,
        test_app: FastAPI,
        bias_service_mock: AsyncMock,
    ) -> None:
        test_app.dependency_overrides[get_bias_scan_service] = lambda: bias_service_mock

        response = await _post(test_app, "/api/v1/biasScan", {}, USER_HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["scan_id"] == "00000000-0000-0000-0000-0000000000aa"
        assert body["agent_name"] == "all"
        assert body["sample_size"] == 42
        assert body["status"] == "critical"
        assert body["risk_level"] == "critical"
        assert body["issues_detected"] == 2
        assert body["logs_flagged"] == 10
        assert body["notification_sent"] is True
        assert body["policy_recommendations"] == 1
        assert body["summary"]["bias_metrics"]["overall_fairness_score"] == 72
        assert body["summary"]["automated_actions"] == ["Flagged sampled logs for review"]
        bias_service_mock.scan.assert_awaited_once_with(agent_name="all", lookback_days=None)

    @pytest.mark.asyncio()
    async def test_no_recent_logs(self, test_app: FastAPI, bias_service_mock: AsyncMock) -> None:
        bias_service_mock.scan.return_value = BiasScanResult(
            success=False,
            agent_name="all",
            message="No recent logs to analyze",
        )
        test_app.dependency_overrides[get_bias_scan_service] = lambda: bias_service_mock

        response = await _post(test_app, "/api/v1/biasScan", {"agent_name": "all"}, USER_HEADERS)

        assert response.status_code == 200
        assert response.json() == {"success": False, "message": "No recent logs to analyze"}

    @pytest.mark.asyncio()
    async def test_analyzer_failure_returns_500(self, test_app: FastAPI, bias_service_mock: AsyncMock) -> None:
        bias_service_mock.scan.side_effect = AnalyzerFailureError("Analyzer timed out after 60.0s")
        test_app.dependency_overrides[get_bias_scan_service] = lambda: bias_service_mock

        response = await _post(test_app, "/api/v1/biasScan", {"agent_name": "TrainingCoach"}, USER_HEADERS)

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Analyzer timed out after 60.0s"}

    @pytest.mark.asyncio()
    async def test_missing_identity_returns_401(self, test_app: FastAPI, bias_service_mock: AsyncMock) -> None:
        test_app.dependency_overrides[get_bias_scan_service] = lambda: bias_service_mock

        response = await _post(test_app, "/api/v1/biasScan", {})

        assert response.status_code == 401
        bias_service_mock.scan.assert_not_called()


class TestPolicyRecommendationsEndpoint:
    """Tests for POST /policyRecommendations."""

    @pytest.mark.asyncio()
    async def test_admin_apply(self, test_app: FastAPI) -> None:
        service = AsyncMock()
        service.recommend.return_value = PolicyReviewResult(
            scan_only=False,
            recommendations=PolicyRecommendations.model_validate(
                {"new_policies": [{"policy_name": "Plain Language"}], "summary": "One gap"}
            ),
            applied_changes=["Created: Plain Language"],
        )
        test_app.dependency_overrides[get_policy_recommendation_service] = lambda: service

        response = await _post(
            test_app,
            "/api/v1/policyRecommendations",
            {"scan_only": False},
            {**ADMIN_HEADERS, "X-Request-ID": "req-42"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["scan_only"] is False
        assert body["applied_changes"] == ["Created: Plain Language"]
        assert body["recommendations"]["new_policies"][0]["policy_name"] == "Plain Language"
        assert body["recommendations"]["summary"] == "One gap"
        assert "timestamp" in body
        assert service.recommend.await_args.kwargs == {"scan_only": False, "correlation_id": "req-42"}

    @pytest.mark.asyncio()
    async def test_non_admin_returns_403(self, test_app: FastAPI) -> None:
        service = AsyncMock()
        test_app.dependency_overrides[get_policy_recommendation_service] = lambda: service

        response = await _post(test_app, "/api/v1/policyRecommendations", {"scan_only": True}, USER_HEADERS)

        assert response.status_code == 403
        service.recommend.assert_not_called()


class TestHealthEndpoint:
    """Tests for GET /health."""

    @pytest.mark.asyncio()
    async def test_reports_degraded_when_analyzer_unreachable(
        self,
        test_app: FastAPI,
        mock_analyzer: AsyncMock,
    ) -> None:
        mock_analyzer.health_check.return_value = False
        test_app.dependency_overrides[get_analyzer] = lambda: mock_analyzer

        async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
            response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {
            "status": "degraded",
            "service": "agent-governance-monitor",
            "analyzer_reachable": False,
        }
