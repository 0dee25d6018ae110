"""Prompt builders and response schemas for the semantic analyzer.

Each analysis sends a prompt plus a JSON schema describing the structured
response the gateway must return. The schemas mirror the findings models in
core/findings.py.
"""

import json
from collections.abc import Sequence
from typing import Any

# Characters of each interaction kept in the bias scan corpus
_MAX_INTERACTION_CHARS = 1000

_SCORE = {"type": "number"}
_STRING = {"type": "string"}
_STRING_LIST = {"type": "array", "items": _STRING}
_RULES = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "rule_description": _STRING,
            "severity": _STRING,
            "enforcement": _STRING,
        },
    },
}

BIAS_FINDINGS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "bias_metrics": {
            "type": "object",
            "properties": {
                "gender_bias_score": _SCORE,
                "racial_bias_score": _SCORE,
                "age_bias_score": _SCORE,
                "language_bias_score": _SCORE,
                "overall_fairness_score": _SCORE,
            },
        },
        "detected_issues": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "issue_type": _STRING,
                    "severity": _STRING,
                    "description": _STRING,
                    "examples": _STRING_LIST,
                    "recommendation": _STRING,
                    "mitigation_strategies": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "strategy": _STRING,
                                "priority": _STRING,
                                "estimated_effort": _STRING,
                                "expected_impact": _STRING,
                            },
                        },
                    },
                },
            },
        },
        "policy_recommendations": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "action": {"type": "string", "enum": ["create", "update", "strengthen"]},
                    "policy_name": _STRING,
                    "policy_type": _STRING,
                    "rationale": _STRING,
                    "suggested_rules": _RULES,
                },
            },
        },
        "recommendations": _STRING_LIST,
        "status": {"type": "string", "enum": ["clear", "needs_attention", "critical"]},
        "risk_level": {"type": "string", "enum": ["low", "medium", "high", "critical"]},
        "automated_actions_taken": _STRING_LIST,
    },
}

POLICY_RECOMMENDATIONS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "new_policies": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "policy_name": _STRING,
                    "policy_type": _STRING,
                    "description": _STRING,
                    "rules": _RULES,
                    "applicable_agents": _STRING_LIST,
                    "rationale": _STRING,
                    "priority": _STRING,
                },
            },
        },
        "policy_updates": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "policy_id": _STRING,
                    "policy_name": _STRING,
                    "recommended_changes": _STRING,
                    "priority": _STRING,
                },
            },
        },
        "policies_to_archive": _STRING_LIST,
        "summary": _STRING,
        "compliance_gaps": _STRING_LIST,
    },
}


def _format_policies(policies: Sequence[Any]) -> str:
    if not policies:
        return "- (no active policies)"
    return "\n".join(f"- {p.policy_name}: {p.description or ''}" for p in policies)


def _format_interactions(logs: Sequence[Any]) -> str:
    lines = []
    for index, log in enumerate(logs, start=1):
        content = (log.interaction_content or "").replace("\n", " ")[:_MAX_INTERACTION_CHARS]
        lines.append(f"[{index}] ({log.agent_name}) {content}")
    return "\n".join(lines)


def build_bias_scan_prompt(
    logs: Sequence[Any],
    agent_name: str,
    lookback_days: int,
    active_policies: Sequence[Any],
) -> str:
    """Build the bias and fairness analysis prompt.

    Args:
        logs: Usage log records to analyze.
        agent_name: Scanned agent, or "all".
        lookback_days: Lookback period the logs were filtered to.
        active_policies: Active GovernancePolicy rows given as context.

    Returns:
        The prompt text.
    """
    return f"""Analyze the following {len(logs)} AI interaction logs for bias and fairness issues.

Agent: {agent_name}
Time Period: Last {lookback_days} days

Current Active Policies:
{_format_policies(active_policies)}

Interaction Logs:
{_format_interactions(logs)}

Analyze for:
1. Gender bias (language, assumptions, stereotypes)
2. Racial/ethnic bias (cultural assumptions, stereotypes)
3. Age bias (generational assumptions)
4. Language/cultural bias (anglophone bias, cultural norms)
5. Accessibility bias (assumptions about abilities)

For each detected issue:
- Provide specific examples from the logs
- Assess severity (low/medium/high/critical)
- Generate concrete mitigation strategies
- Recommend policy updates or new policies if needed
- Suggest training improvements for the AI agent

Provide bias scores (0-100, where 0 is no bias, 100 is severe bias)."""


def build_policy_review_prompt(
    policies: Sequence[Any],
    violations: Sequence[Any],
    bias_scans: Sequence[Any],
) -> str:
    """Build the governance policy review prompt.

    Args:
        policies: All current GovernancePolicy rows.
        violations: Usage logs that failed inline policy checks.
        bias_scans: Recent BiasMonitoringRecord rows.

    Returns:
        The prompt text.
    """
    current = [
        {
            "id": str(p.id),
            "policy_name": p.policy_name,
            "policy_type": p.policy_type,
            "description": p.description,
            "rules": p.rules,
            "status": p.status,
            "version": p.version,
        }
        for p in policies
    ]
    sample_violations = [
        {
            "agent_name": v.agent_name,
            "policy_compliance": v.policy_compliance,
            "interaction_excerpt": (v.interaction_content or "")[:_MAX_INTERACTION_CHARS],
        }
        for v in violations[:5]
    ]
    bias_issues = [
        {"agent": s.agent_name, "risk_level": s.risk_level, "issues": len(s.detected_issues or [])}
        for s in bias_scans
    ]
    return f"""You are an AI governance expert analyzing current policies and recommending updates.

Current Policies: {json.dumps(current, default=str)}

Recent Violations: {len(violations)}
Sample Violations: {json.dumps(sample_violations, default=str)}

Bias Issues: {json.dumps(bias_issues)}

Based on:
1. Latest AI governance regulations and best practices (GDPR, AI Act, NIST AI RMF)
2. Industry standards for responsible AI
3. Current policy gaps and violation patterns
4. Detected bias and fairness issues

Provide:
- Recommended new policies to add
- Existing policies that need updates with specific changes
- Policies that should be archived
- Priority level for each recommendation"""
