"""Governance policy recommendation pipeline.

read → analyze → report, optionally followed by apply:

- scan-only mode mutates nothing; the caller gets the recommendations.
- apply mode creates every recommended new policy as a draft with version
  "1.0". Recommended updates and archivals are only reported: changing or
  retiring an existing policy always takes a human action.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from agent_governance_monitor.core.cancellation import CancellationToken
from agent_governance_monitor.core.findings import PolicyRecommendations, parse_findings
from agent_governance_monitor.core.interfaces import IPolicyRepository, ISemanticAnalyzer
from agent_governance_monitor.core.models import (
    AgentUsageLog,
    BiasMonitoringRecord,
    GovernancePolicy,
)
from agent_governance_monitor.core.prompts import (
    POLICY_RECOMMENDATIONS_SCHEMA,
    build_policy_review_prompt,
)
from agent_governance_monitor.observability import get_logger

logger = get_logger(__name__)


def is_policy_violation(log: AgentUsageLog) -> bool:
    """Whether a usage log failed its inline policy check."""
    compliance = log.policy_compliance or {}
    return compliance.get("compliant") is False


@dataclass
class PolicyReviewResult:
    """Outcome of one pipeline run.

    Attributes:
        scan_only: Whether the run was read-only.
        recommendations: Validated analyzer recommendations.
        applied_changes: One "Created: <name>" entry per draft created.
        created_policies: Draft policies created in apply mode.
        timestamp: When the run finished (UTC).
    """

    scan_only: bool
    recommendations: PolicyRecommendations
    applied_changes: list[str] = field(default_factory=list)
    created_policies: list[GovernancePolicy] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


class PolicyRecommendationPipeline:
    """Analyzes governance policies and optionally creates draft policies.

    Args:
        analyzer: Semantic analyzer used for the policy review.
        policy_repo: Repository used to create draft policies in apply mode.
    """

    def __init__(self, analyzer: ISemanticAnalyzer, policy_repo: IPolicyRepository) -> None:
        self._analyzer = analyzer
        self._policy_repo = policy_repo

    async def review(
        self,
        policies: Sequence[GovernancePolicy],
        recent_logs: Sequence[AgentUsageLog],
        bias_scans: Sequence[BiasMonitoringRecord],
        token: CancellationToken | None = None,
    ) -> PolicyRecommendations:
        """Ask the analyzer for policy recommendations. Mutates nothing.

        Args:
            policies: Current policies in every status.
            recent_logs: Recent usage logs; only violations are sent.
            bias_scans: Recent bias scan records.
            token: Optional cancellation token checked before the analyzer call.

        Returns:
            Validated recommendations.

        Raises:
            AnalyzerFailureError: If the analyzer fails or answers malformed.
        """
        violations = [log for log in recent_logs if is_policy_violation(log)]
        prompt = build_policy_review_prompt(policies, violations, bias_scans)

        if token is not None:
            token.raise_if_cancelled("policy analyzer call")
        raw = await self._analyzer.analyze(prompt, POLICY_RECOMMENDATIONS_SCHEMA)
        recommendations = parse_findings(raw, PolicyRecommendations)

        logger.info(
            "Policy review completed",
            policies=len(policies),
            violations=len(violations),
            new_policies=len(recommendations.new_policies),
            policy_updates=len(recommendations.policy_updates),
            policies_to_archive=len(recommendations.policies_to_archive),
        )
        return recommendations

    async def apply(self, recommendations: PolicyRecommendations) -> tuple[list[str], list[GovernancePolicy]]:
        """Create a draft for every recommended new policy.

        Args:
            recommendations: Output of review().

        Returns:
            (applied change descriptions, created draft policies)
        """
        applied: list[str] = []
        created: list[GovernancePolicy] = []
        for recommended in recommendations.new_policies:
            policy = await self._policy_repo.create_draft(
                policy_name=recommended.policy_name,
                policy_type=recommended.policy_type,
                description=recommended.description,
                rules=[rule.model_dump() for rule in recommended.rules],
                applicable_agents=list(recommended.applicable_agents),
            )
            created.append(policy)
            applied.append(f"Created: {recommended.policy_name}")

        if recommendations.policy_updates or recommendations.policies_to_archive:
            logger.info(
                "Policy updates and archivals left for human review",
                policy_updates=len(recommendations.policy_updates),
                policies_to_archive=len(recommendations.policies_to_archive),
            )
        return applied, created

    async def run(
        self,
        policies: Sequence[GovernancePolicy],
        recent_logs: Sequence[AgentUsageLog],
        bias_scans: Sequence[BiasMonitoringRecord],
        scan_only: bool,
        token: CancellationToken | None = None,
    ) -> PolicyReviewResult:
        """Review policies and, unless scan_only, create recommended drafts.

        Args:
            policies: Current policies in every status.
            recent_logs: Recent usage logs.
            bias_scans: Recent bias scan records.
            scan_only: Skip the apply step when True.
            token: Optional cancellation token.

        Returns:
            PolicyReviewResult for this run.
        """
        recommendations = await self.review(policies, recent_logs, bias_scans, token=token)
        if scan_only:
            return PolicyReviewResult(scan_only=True, recommendations=recommendations)

        applied, created = await self.apply(recommendations)
        return PolicyReviewResult(
            scan_only=False,
            recommendations=recommendations,
            applied_changes=applied,
            created_policies=created,
        )
