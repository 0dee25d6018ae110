"""Structured findings returned by the semantic analyzer.

The analyzer is an LLM behind a gateway, so its output is validated into
these models before the engine acts on it. Missing keys fall back to empty
values; unknown keys are ignored.

- BiasFindings            — output of a bias scan over usage logs
- PolicyRecommendations   — output of a governance policy review
"""

from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from agent_governance_monitor.errors import AnalyzerFailureError

ESCALATING_ISSUE_SEVERITIES = frozenset({"high", "critical"})


class _Finding(BaseModel):
    model_config = ConfigDict(extra="ignore")


class BiasMetrics(_Finding):
    """Per-category bias scores, 0 (none) to 100 (severe)."""

    gender_bias_score: float | None = None
    racial_bias_score: float | None = None
    age_bias_score: float | None = None
    language_bias_score: float | None = None
    overall_fairness_score: float | None = None


class MitigationStrategy(_Finding):
    """A concrete mitigation suggested for an issue."""

    strategy: str = ""
    priority: str | None = None
    estimated_effort: str | None = None
    expected_impact: str | None = None


class DetectedIssue(_Finding):
    """A discrete bias or fairness issue found in the logs."""

    issue_type: str = "unspecified"
    severity: str = "low"
    description: str = ""
    examples: list[str] = Field(default_factory=list)
    recommendation: str | None = None
    mitigation_strategies: list[MitigationStrategy] = Field(default_factory=list)

    @property
    def escalates(self) -> bool:
        """Whether this issue triggers log flagging."""
        return self.severity.lower() in ESCALATING_ISSUE_SEVERITIES


class SuggestedRule(_Finding):
    """A rule suggested for a new or strengthened policy."""

    rule_description: str = ""
    severity: str | None = None
    enforcement: str | None = None


class BiasPolicyRecommendation(_Finding):
    """A policy change recommended by a bias scan."""

    action: str = "create"
    policy_name: str = ""
    policy_type: str | None = None
    rationale: str | None = None
    suggested_rules: list[SuggestedRule] = Field(default_factory=list)


class BiasFindings(_Finding):
    """Analyzer output for a bias scan."""

    bias_metrics: BiasMetrics = Field(default_factory=BiasMetrics)
    detected_issues: list[DetectedIssue] = Field(default_factory=list)
    policy_recommendations: list[BiasPolicyRecommendation] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    status: Literal["clear", "needs_attention", "critical"] = "clear"
    risk_level: Literal["low", "medium", "high", "critical"] = "low"
    automated_actions_taken: list[str] = Field(default_factory=list)

    @field_validator("status", "risk_level", mode="before")
    @classmethod
    def _normalize_level(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @property
    def is_critical(self) -> bool:
        """Whether the scan warrants notifying admins."""
        return self.status == "critical" or self.risk_level == "critical"

    @property
    def escalating_issues(self) -> list[DetectedIssue]:
        """Issues of high or critical severity."""
        return [issue for issue in self.detected_issues if issue.escalates]


class RecommendedPolicy(_Finding):
    """A new policy recommended by a governance review."""

    policy_name: str
    policy_type: str | None = None
    description: str | None = None
    rules: list[SuggestedRule] = Field(default_factory=list)
    applicable_agents: list[str] = Field(default_factory=list)
    rationale: str | None = None
    priority: str | None = None


class PolicyUpdate(_Finding):
    """A change recommended for an existing policy. Never auto-applied."""

    policy_id: str | None = None
    policy_name: str = ""
    recommended_changes: str = ""
    priority: str | None = None


class PolicyRecommendations(_Finding):
    """Analyzer output for a governance policy review."""

    new_policies: list[RecommendedPolicy] = Field(default_factory=list)
    policy_updates: list[PolicyUpdate] = Field(default_factory=list)
    policies_to_archive: list[str] = Field(default_factory=list)
    summary: str = ""
    compliance_gaps: list[str] = Field(default_factory=list)

    @property
    def recommendation_count(self) -> int:
        """New policies plus updates."""
        return len(self.new_policies) + len(self.policy_updates)


def dump_findings(findings: BaseModel) -> dict[str, Any]:
    """JSON-safe dict of a findings model."""
    return findings.model_dump(mode="json")


FindingsT = TypeVar("FindingsT", bound=BaseModel)


def parse_findings(raw: dict[str, Any], model: type[FindingsT]) -> FindingsT:
    """Validate a raw analyzer response into a findings model.

    Args:
        raw: The analyzer's structured response.
        model: Findings model to validate into.

    Returns:
        The validated findings.

    Raises:
        AnalyzerFailureError: If the response does not match the model.
    """
    try:
        return model.model_validate(raw)
    except PydanticValidationError as exc:
        raise AnalyzerFailureError(
            f"Analyzer returned malformed {model.__name__}: {exc.error_count()} validation errors"
        ) from exc
