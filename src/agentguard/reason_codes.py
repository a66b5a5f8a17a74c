"""Machine-readable reason tags recorded with verdicts and resolution events."""

from __future__ import annotations

NON_GOVERNED_TOOL = "non_governed_tool"
UNKNOWN_DOMAIN = "unknown"
POLICY_EVALUATION_FAILED = "policy_evaluation_failed"
ALLOW_ALL = "allow_all"
DENY_ALL = "deny_all"

STUB_EXECUTION = "stub_execution"
STUB_EXECUTION_AFTER_APPROVAL = "stub_execution_after_approval"
EXECUTION_ERROR = "execution_error"
BLOCKED_BY_APPROVER = "blocked_by_approver"


def denylisted_domain(domain: str) -> str:
    return f"denylisted_domain:{domain}"


def external_domain(domain: str) -> str:
    return f"external_domain:{domain}"


def internal_domain(domain: str) -> str:
    return f"internal_domain:{domain}"
