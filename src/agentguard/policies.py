"""Policy interface and the built-in rule families."""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Mapping, Protocol

from pydantic import BaseModel, field_validator

from . import reason_codes


class Verdict(str, Enum):
    """Outcome of policy evaluation."""

    ALLOWED = "allowed"
    DENIED = "denied"
    APPROVE_REQUIRED = "approve_required"


class PolicyVerdict(BaseModel):
    """Result of policy evaluation. Never persisted on its own."""

    model_config = {"frozen": True}

    decision: Verdict
    reason: str

    @field_validator("reason")
    @classmethod
    def _reason_non_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("reason must be a non-empty string")
        return value


class Policy(Protocol):
    """Policy interface for evaluating governed actions. Must be side-effect free."""

    def evaluate(self, tool: str, action: str, resource: Mapping[str, Any]) -> PolicyVerdict:
        """Classify the requested action."""
        ...


class AllowAllPolicy:
    """Policy that allows all actions."""

    def evaluate(self, tool: str, action: str, resource: Mapping[str, Any]) -> PolicyVerdict:
        return PolicyVerdict(decision=Verdict.ALLOWED, reason=reason_codes.ALLOW_ALL)


class DenyAllPolicy:
    """Policy that denies all actions."""

    def evaluate(self, tool: str, action: str, resource: Mapping[str, Any]) -> PolicyVerdict:
        return PolicyVerdict(decision=Verdict.DENIED, reason=reason_codes.DENY_ALL)


def extract_domain(address: object) -> str | None:
    """Domain part of an address (after the last '@'), lower-cased."""
    if not isinstance(address, str):
        return None
    at = address.rfind("@")
    if at < 0:
        return None
    return address[at + 1 :].strip().lower()


def _normalize(values: Iterable[str]) -> frozenset[str]:
    return frozenset(v.strip().lower() for v in values if v and v.strip())


class DomainPolicy:
    """Recipient-domain rules for messaging tools.

    First match wins: ungoverned tool -> allowed; deny-listed domain -> denied;
    domain outside the internal list -> approval required; otherwise allowed.
    """

    def __init__(
        self,
        *,
        internal_domains: Iterable[str],
        deny_domains: Iterable[str] = (),
        governed_tools: Iterable[str] = ("gmail", "mail"),
        recipient_field: str = "to",
    ) -> None:
        self.internal_domains = _normalize(internal_domains)
        self.deny_domains = _normalize(deny_domains)
        self.governed_tools = _normalize(governed_tools)
        self.recipient_field = recipient_field

    def evaluate(self, tool: str, action: str, resource: Mapping[str, Any]) -> PolicyVerdict:
        if tool.strip().lower() not in self.governed_tools:
            return PolicyVerdict(decision=Verdict.ALLOWED, reason=reason_codes.NON_GOVERNED_TOOL)

        recipient = resource.get(self.recipient_field) if isinstance(resource, Mapping) else None
        domain = extract_domain(recipient) or reason_codes.UNKNOWN_DOMAIN

        if domain in self.deny_domains:
            return PolicyVerdict(
                decision=Verdict.DENIED, reason=reason_codes.denylisted_domain(domain)
            )
        if domain not in self.internal_domains:
            return PolicyVerdict(
                decision=Verdict.APPROVE_REQUIRED, reason=reason_codes.external_domain(domain)
            )
        return PolicyVerdict(decision=Verdict.ALLOWED, reason=reason_codes.internal_domain(domain))


class ToolRoutedPolicy:
    """Dispatch to a per-tool policy, falling back to ``default`` for other tools."""

    def __init__(self, routes: Mapping[str, Policy], *, default: Policy | None = None) -> None:
        self.routes = {tool.strip().lower(): policy for tool, policy in routes.items()}
        self.default = default if default is not None else AllowAllPolicy()

    def evaluate(self, tool: str, action: str, resource: Mapping[str, Any]) -> PolicyVerdict:
        policy = self.routes.get(tool.strip().lower(), self.default)
        return policy.evaluate(tool, action, resource)
