"""Tests for PolicyRecommendationPipeline."""

from unittest.mock import AsyncMock

import pytest

from agent_governance_monitor.core.cancellation import CancellationToken
from agent_governance_monitor.core.policy_pipeline import (
    PolicyRecommendationPipeline,
    is_policy_violation,
)
from agent_governance_monitor.core.prompts import POLICY_RECOMMENDATIONS_SCHEMA
from agent_governance_monitor.errors import AnalyzerFailureError, RunCancelledError
from tests.conftest import make_bias_record, make_policy, make_usage_log

RECOMMENDATIONS = {
    "new_policies": [
        {
            "policy_name": "Age Inclusive Coaching",
            "policy_type": "bias_prevention",
            "description": "Avoid generational assumptions",
            "rules": [{"rule_description": "No age stereotypes", "severity": "high", "enforcement": "block"}],
            "applicable_agents": ["TrainingCoach"],
            "rationale": "Repeated age-related issues",
            "priority": "high",
        },
        {"policy_name": "Plain Language", "policy_type": "content_moderation"},
    ],
    "policy_updates": [
        {"policy_id": "p-1", "policy_name": "Inclusive Language", "recommended_changes": "Cover age bias"}
    ],
    "policies_to_archive": ["Legacy Tone Guide"],
    "summary": "Coverage gaps around age bias",
    "compliance_gaps": ["No policy covers age bias"],
}


def test_is_policy_violation() -> None:
    """Only an explicit compliant: false counts as a violation."""
    assert is_policy_violation(make_usage_log(policy_compliance={"compliant": False})) is True
    assert is_policy_violation(make_usage_log(policy_compliance={"compliant": True})) is False
    assert is_policy_violation(make_usage_log(policy_compliance={})) is False
    assert is_policy_violation(make_usage_log(policy_compliance=None)) is False


class TestPolicyRecommendationPipeline:
    """review → apply"""

    @pytest.mark.asyncio()
    async def test_scan_only_creates_nothing(self, mock_analyzer: AsyncMock, mock_policy_repo: AsyncMock) -> None:
        mock_analyzer.analyze.return_value = RECOMMENDATIONS
        pipeline = PolicyRecommendationPipeline(analyzer=mock_analyzer, policy_repo=mock_policy_repo)

        result = await pipeline.run([make_policy()], [], [], scan_only=True)

        assert result.scan_only is True
        assert result.applied_changes == []
        assert result.created_policies == []
        assert result.recommendations.recommendation_count == 3
        mock_policy_repo.create_draft.assert_not_called()

    @pytest.mark.asyncio()
    async def test_apply_creates_drafts_only(self, mock_analyzer: AsyncMock, mock_policy_repo: AsyncMock) -> None:
        """New policies become drafts; updates and archivals are never applied."""
        mock_analyzer.analyze.return_value = RECOMMENDATIONS
        pipeline = PolicyRecommendationPipeline(analyzer=mock_analyzer, policy_repo=mock_policy_repo)

        result = await pipeline.run([make_policy()], [], [], scan_only=False)

        assert result.applied_changes == ["Created: Age Inclusive Coaching", "Created: Plain Language"]
        assert len(result.created_policies) == 2
        assert mock_policy_repo.create_draft.await_count == 2
        first = mock_policy_repo.create_draft.await_args_list[0].kwargs
        assert first == {
            "policy_name": "Age Inclusive Coaching",
            "policy_type": "bias_prevention",
            "description": "Avoid generational assumptions",
            "rules": [{"rule_description": "No age stereotypes", "severity": "high", "enforcement": "block"}],
            "applicable_agents": ["TrainingCoach"],
        }
        called = {name for name, _, _ in mock_policy_repo.method_calls}
        assert called == {"create_draft"}

    @pytest.mark.asyncio()
    async def test_prompt_carries_violations_and_bias_history(
        self,
        mock_analyzer: AsyncMock,
        mock_policy_repo: AsyncMock,
    ) -> None:
        mock_analyzer.analyze.return_value = RECOMMENDATIONS
        logs = [make_usage_log(policy_compliance={"compliant": False}) for _ in range(7)]
        logs.append(make_usage_log(policy_compliance={"compliant": True}))
        pipeline = PolicyRecommendationPipeline(analyzer=mock_analyzer, policy_repo=mock_policy_repo)

        await pipeline.review([make_policy()], logs, [make_bias_record(risk_level="high")])

        prompt, schema = mock_analyzer.analyze.call_args.args
        assert "Recent Violations: 7" in prompt
        assert prompt.count('"policy_compliance"') == 5
        assert '"risk_level": "high"' in prompt
        assert schema is POLICY_RECOMMENDATIONS_SCHEMA

    @pytest.mark.asyncio()
    async def test_missing_policy_name_is_malformed(
        self,
        mock_analyzer: AsyncMock,
        mock_policy_repo: AsyncMock,
    ) -> None:
        mock_analyzer.analyze.return_value = {"new_policies": [{"policy_type": "bias_prevention"}]}
        pipeline = PolicyRecommendationPipeline(analyzer=mock_analyzer, policy_repo=mock_policy_repo)

        with pytest.raises(AnalyzerFailureError):
            await pipeline.run([], [], [], scan_only=False)

        mock_policy_repo.create_draft.assert_not_called()

    @pytest.mark.asyncio()
    async def test_cancelled_before_analyzer_call(
        self,
        mock_analyzer: AsyncMock,
        mock_policy_repo: AsyncMock,
    ) -> None:
        token = CancellationToken()
        token.cancel()
        pipeline = PolicyRecommendationPipeline(analyzer=mock_analyzer, policy_repo=mock_policy_repo)

        with pytest.raises(RunCancelledError):
            await pipeline.run([], [], [], scan_only=True, token=token)

        mock_analyzer.analyze.assert_not_called()
