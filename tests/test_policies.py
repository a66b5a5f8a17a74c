from __future__ import annotations

import pytest

from agentguard.policies import (
    AllowAllPolicy,
    DenyAllPolicy,
    DomainPolicy,
    PolicyVerdict,
    ToolRoutedPolicy,
    Verdict,
    extract_domain,
)


@pytest.fixture
def policy() -> DomainPolicy:
    return DomainPolicy(internal_domains={"example.com"}, deny_domains={"spam.test"}, governed_tools={"mail"})


@pytest.mark.parametrize(
    ("recipient", "decision", "reason"),
    [
        ("a@example.com", Verdict.ALLOWED, "internal_domain:example.com"),
        ("a@spam.test", Verdict.DENIED, "denylisted_domain:spam.test"),
        ("a@other.org", Verdict.APPROVE_REQUIRED, "external_domain:other.org"),
    ],
)
def test_domain_rules(policy: DomainPolicy, recipient: str, decision: Verdict, reason: str) -> None:
    verdict = policy.evaluate("mail", "send", {"to": recipient})

    assert verdict.decision is decision
    assert verdict.reason == reason


def test_ungoverned_tool_is_allowed(policy: DomainPolicy) -> None:
    verdict = policy.evaluate("calendar", "create", {"to": "a@spam.test"})

    assert verdict.decision is Verdict.ALLOWED
    assert verdict.reason == "non_governed_tool"


@pytest.mark.parametrize("resource", [{}, {"to": "no-at-sign"}, {"to": 42}, {"cc": "a@example.com"}])
def test_missing_domain_is_unknown_and_needs_approval(policy: DomainPolicy, resource: dict) -> None:
    verdict = policy.evaluate("mail", "send", resource)

    assert verdict.decision is Verdict.APPROVE_REQUIRED
    assert verdict.reason == "external_domain:unknown"


def test_unknown_domain_can_be_denylisted() -> None:
    policy = DomainPolicy(internal_domains={"example.com"}, deny_domains={"unknown"}, governed_tools={"mail"})

    assert policy.evaluate("mail", "send", {}).decision is Verdict.DENIED


def test_matching_is_case_insensitive() -> None:
    policy = DomainPolicy(internal_domains={"Example.COM"}, governed_tools={"Mail"})

    verdict = policy.evaluate("MAIL", "send", {"to": "Alice@EXAMPLE.com"})

    assert verdict.decision is Verdict.ALLOWED
    assert verdict.reason == "internal_domain:example.com"


def test_deny_list_wins_over_allow_list() -> None:
    policy = DomainPolicy(internal_domains={"example.com"}, deny_domains={"example.com"}, governed_tools={"mail"})

    assert policy.evaluate("mail", "send", {"to": "a@example.com"}).decision is Verdict.DENIED


def test_custom_recipient_field() -> None:
    policy = DomainPolicy(internal_domains={"example.com"}, governed_tools={"slack"}, recipient_field="user")

    verdict = policy.evaluate("slack", "dm", {"user": "bob@example.com"})

    assert verdict.decision is Verdict.ALLOWED


def test_extract_domain_uses_last_at_sign() -> None:
    assert extract_domain('"a@b"@Example.org') == "example.org"
    assert extract_domain("nobody") is None
    assert extract_domain(None) is None


def test_tool_routed_policy_dispatches_by_tool() -> None:
    routed = ToolRoutedPolicy({"mail": DenyAllPolicy()}, default=AllowAllPolicy())

    assert routed.evaluate("mail", "send", {}).decision is Verdict.DENIED
    assert routed.evaluate("calendar", "create", {}).decision is Verdict.ALLOWED


def test_verdict_requires_reason() -> None:
    with pytest.raises(ValueError):
        PolicyVerdict(decision=Verdict.ALLOWED, reason=" ")
