from __future__ import annotations

from pathlib import Path

import pytest

from agentguard.config import Settings, clamp_limit, parse_domain_list
from agentguard.errors import Forbidden, NotFound, ValidationError
from agentguard.service import AuditService


def _raw(**overrides: object) -> dict[str, object]:
    event: dict[str, object] = {
        "actor_type": "agent",
        "actor_id": "agent:raw",
        "action_type": "action.requested",
        "tool": "mail",
        "decision": "requested",
    }
    event.update(overrides)
    return event


def test_append_raw_assigns_correlation_and_defaults(service: AuditService) -> None:
    event = service.append_raw(_raw())

    assert event.correlation_id
    assert event.resource == {}
    assert event.payload_redacted == {}
    assert service.get_event(event.id) == event


def test_append_raw_keeps_supplied_fields(service: AuditService) -> None:
    event = service.append_raw(
        _raw(correlation_id="corr-9", resource={"to": "a@b.c"}, payload_redacted={"k": 1})
    )

    assert event.correlation_id == "corr-9"
    assert event.resource == {"to": "a@b.c"}
    assert event.payload_redacted == {"k": 1}


@pytest.mark.parametrize("field", ["actor_type", "actor_id", "action_type", "tool", "decision"])
def test_append_raw_names_missing_field(service: AuditService, field: str) -> None:
    event = _raw()
    del event[field]

    with pytest.raises(ValidationError) as excinfo:
        service.append_raw(event)

    assert excinfo.value.code == "missing_field"
    assert excinfo.value.field == field
    assert service.list_events().returned == 0


def test_append_raw_rejects_unknown_action_type(service: AuditService) -> None:
    with pytest.raises(ValidationError) as excinfo:
        service.append_raw(_raw(action_type="action.teleported"))

    assert excinfo.value.code == "invalid_action_type"


def test_append_raw_rejects_non_string_correlation_id(service: AuditService) -> None:
    with pytest.raises(ValidationError) as excinfo:
        service.append_raw(_raw(correlation_id=123))

    assert excinfo.value.code == "invalid_field"
    assert excinfo.value.field == "correlation_id"
    assert service.list_events().returned == 0


def test_get_event_unknown_is_not_found(service: AuditService) -> None:
    with pytest.raises(NotFound):
        service.get_event("missing")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(None, 50), ("", 50), ("abc", 50), (0, 1), (-5, 1), ("7", 7), (1000, 200), ("1000", 200)],
)
def test_list_events_clamps_limit(service: AuditService, raw: object, expected: int) -> None:
    assert service.list_events(limit=raw).limit == expected


def test_list_events_filters_and_counts(service: AuditService) -> None:
    service.append_raw(_raw(actor_id="a"))
    service.append_raw(_raw(actor_id="b"))
    service.append_raw(_raw(actor_id="a", tool="calendar"))

    page = service.list_events({"actor_id": "a"}, limit=10)
    assert page.returned == 2
    assert [e.tool for e in page.items] == ["calendar", "mail"]

    page = service.list_events({"actor_id": "a", "tool": ""}, limit=1)
    assert page.returned == 1
    assert page.limit == 1


def test_list_events_time_bounds(service: AuditService) -> None:
    event = service.append_raw(_raw())

    assert service.list_events({"from": "2000-01-01T00:00:00Z"}).returned == 1
    assert service.list_events({"to": "2000-01-01"}).returned == 0
    assert service.list_events({"from": event.timestamp, "to": event.timestamp}).returned == 1


@pytest.mark.parametrize(("key", "code"), [("from", "invalid_from"), ("to", "invalid_to")])
def test_list_events_rejects_malformed_time_bounds(service: AuditService, key: str, code: str) -> None:
    with pytest.raises(ValidationError) as excinfo:
        service.list_events({key: "yesterday"})

    assert excinfo.value.code == code


def test_submit_uses_configured_domain_policy(service: AuditService) -> None:
    internal = service.submit_action(
        actor_type="agent", actor_id="agent:1", tool="mail", action="send", resource={"to": "a@company.com"}
    )
    assert internal.status == "executed"
    assert internal.reason == "internal_domain:company.com"

    ungoverned = service.submit_action(actor_type="agent", actor_id="agent:1", tool="gmail", action="send")
    assert ungoverned.status == "executed"
    assert ungoverned.reason == "non_governed_tool"

    with pytest.raises(Forbidden) as excinfo:
        service.submit_action(
            actor_type="agent", actor_id="agent:1", tool="mail", action="send", resource={"to": "x@evil.com"}
        )
    assert excinfo.value.reason == "denylisted_domain:evil.com"


def test_timeline_of_unknown_correlation_is_empty(service: AuditService) -> None:
    timeline = service.get_timeline("nope")

    assert timeline.events == []
    assert timeline.returned == 0
    assert timeline.state is None


def test_timeline_state_is_none_for_out_of_order_events(service: AuditService) -> None:
    service.append_raw(_raw(correlation_id="odd", action_type="action.executed", decision="success"))

    timeline = service.get_timeline("odd")

    assert timeline.returned == 1
    assert timeline.state is None


def test_list_approvals_ignores_unknown_status(service: AuditService) -> None:
    submitted = service.submit_action(
        actor_type="agent", actor_id="agent:1", tool="mail", action="send", resource={"to": "a@other.org"}
    )

    assert service.list_approvals("requested").returned == 1
    assert service.list_approvals("approved").returned == 0
    assert service.list_approvals("bogus").returned == 1
    assert service.list_approvals(limit=0).limit == 1
    assert service.list_approvals().items[0].id == submitted.approval_id


def test_settings_from_env(tmp_path: Path) -> None:
    settings = Settings.from_env(
        {
            "AGENTGUARD_DATABASE_PATH": str(tmp_path / "x.db"),
            "INTERNAL_EMAIL_DOMAINS": " Company.com, ,partner.io ",
            "DENY_EMAIL_DOMAINS": "evil.com",
            "AGENTGUARD_GOVERNED_TOOLS": "mail",
            "AGENTGUARD_MAX_LIMIT": "100",
        }
    )

    assert settings.database_path == tmp_path / "x.db"
    assert settings.internal_email_domains == frozenset({"company.com", "partner.io"})
    assert settings.deny_email_domains == frozenset({"evil.com"})
    assert settings.governed_tools == frozenset({"mail"})
    assert settings.max_limit == 100
    assert settings.default_limit == 50


def test_settings_defaults() -> None:
    settings = Settings.from_env({})

    assert settings.internal_email_domains == frozenset({"example.com"})
    assert settings.deny_email_domains == frozenset()
    assert settings.governed_tools == frozenset({"gmail", "mail"})
    assert settings.append_max_attempts == 5


def test_settings_reject_inconsistent_limits() -> None:
    with pytest.raises(ValueError):
        Settings(default_limit=300, max_limit=200)


def test_clamp_limit_and_domain_list_helpers() -> None:
    assert clamp_limit(True) == 50
    assert clamp_limit(" 12 ") == 12
    assert clamp_limit(500, maximum=100) == 100
    assert parse_domain_list(None) == frozenset()
    assert parse_domain_list("A.com,b.COM") == frozenset({"a.com", "b.com"})


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("5.0", 5), (3.7, 3), ("12abc", 12), ("-3", 1), (float("nan"), 50), ("x5", 50)],
)
def test_clamp_limit_reads_leading_integer(raw: object, expected: int) -> None:
    assert clamp_limit(raw) == expected
