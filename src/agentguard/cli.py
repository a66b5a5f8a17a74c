"""Command-line interface for agentguard."""

from __future__ import annotations

import argparse
import csv
import json
import logging
import sys
from pathlib import Path
from typing import Any, Iterable, Iterator, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from agentguard.config import Settings
from agentguard.errors import AgentGuardError, Conflict, Forbidden, NotFound, ValidationError
from agentguard.ledger.jcs import CanonicalizationError, canonical_text, loads
from agentguard.service import AuditService
from agentguard.types import AuditEvent

CSV_FIELDS = (
    "seq",
    "id",
    "timestamp",
    "correlation_id",
    "actor_type",
    "actor_id",
    "action_type",
    "tool",
    "decision",
    "resource",
    "payload_redacted",
    "prev_hash",
    "hash",
)


def _event_dict(event: AuditEvent) -> dict[str, Any]:
    return event.model_dump()


def _flatten_event(entry: dict[str, Any]) -> dict[str, str]:
    row = {}
    for name in CSV_FIELDS:
        value = entry.get(name)
        if name in ("resource", "payload_redacted"):
            row[name] = canonical_text(value)
        else:
            row[name] = "" if value is None else str(value)
    return row


def _iter_events(service: AuditService) -> Iterator[dict[str, Any]]:
    with service.database.snapshot() as conn:
        for event in service.audit_log.iter_all(conn):
            yield _event_dict(event)


def _write_events(
    entries: Iterable[dict[str, Any]],
    output_format: str,
    output_path: Path | None,
) -> int:
    """Write events in the specified format, streaming one at a time.

    JSON and NDJSON lines are canonical JSON, so exported values keep the
    exact decimal text that was hashed.
    """
    output = sys.stdout
    close_output = False
    if output_path is not None:
        output = output_path.open("w", encoding="utf-8", newline="")
        close_output = True
    try:
        if output_format == "json":
            output.write("[")
            first = True
            for entry in entries:
                if not first:
                    output.write(",")
                first = False
                output.write(canonical_text(entry))
            output.write("]\n")
        elif output_format == "ndjson":
            for entry in entries:
                output.write(canonical_text(entry) + "\n")
        elif output_format == "csv":
            writer = csv.DictWriter(
                output,
                fieldnames=CSV_FIELDS,
                extrasaction="ignore",
                lineterminator="\n",
            )
            writer.writeheader()
            for entry in entries:
                writer.writerow(_flatten_event(entry))
        else:
            raise ValueError(f"unknown format: {output_format}")
    finally:
        if close_output:
            output.close()
    return 0


def _print_json(value: Any) -> None:
    print(canonical_text(value))


def _parse_object(raw: str | None, flag: str) -> dict[str, Any] | None:
    if raw is None:
        return None
    try:
        value = loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationError("invalid_json", field=flag, detail=str(exc)) from exc
    if not isinstance(value, dict):
        raise ValidationError("invalid_json", field=flag, detail="expected an object")
    return value


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="agentguard", add_help=True)
    parser.add_argument("--db", type=Path, help="Path to the SQLite database (default: $AGENTGUARD_DATABASE_PATH)")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Logging level",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    verify_parser = subparsers.add_parser("verify", help="Verify the audit hash chain")
    verify_parser.add_argument("--json", action="store_true", help="Output JSON")

    export_parser = subparsers.add_parser("export", help="Export every audit event in commit order")
    export_parser.add_argument(
        "--format",
        choices=("json", "ndjson", "csv"),
        default="ndjson",
        help="Output format",
    )
    export_parser.add_argument("--output", type=Path, help="Output file path")

    timeline_parser = subparsers.add_parser("timeline", help="Show one action lifecycle")
    timeline_parser.add_argument("correlation_id", help="Correlation id returned by submit")
    timeline_parser.add_argument("--json", action="store_true", help="Output JSON")

    approvals_parser = subparsers.add_parser("approvals", help="List approvals")
    approvals_parser.add_argument("--status", help="Filter by status (requested, approved, denied, expired)")
    approvals_parser.add_argument("--limit", help="Maximum rows to show")
    approvals_parser.add_argument("--json", action="store_true", help="Output JSON")

    decide_parser = subparsers.add_parser("decide", help="Approve or deny a pending approval")
    decide_parser.add_argument("approval_id", help="Approval id")
    decide_parser.add_argument("decision", choices=("approved", "denied"), help="Decision")
    decide_parser.add_argument("--approver", required=True, help="Approver id")
    decide_parser.add_argument("--reason", help="Free-text reason recorded with the decision")

    submit_parser = subparsers.add_parser("submit", help="Submit an action through policy")
    submit_parser.add_argument("--actor-type", dest="actor_type", default="agent", help="Actor type")
    submit_parser.add_argument("--actor-id", dest="actor_id", required=True, help="Actor id")
    submit_parser.add_argument("--tool", required=True, help="Tool name (for example: mail)")
    submit_parser.add_argument("--action", required=True, help="Action name (for example: send_email)")
    submit_parser.add_argument("--resource", help="Resource as a JSON object")
    submit_parser.add_argument("--payload", help="Payload as a JSON object (redacted before storage)")

    return parser.parse_args(argv)


def _cmd_verify(service: AuditService, json_output: bool) -> int:
    report = service.verify_chain()
    if json_output:
        _print_json(report.model_dump())
    elif report.valid:
        print(f"verification ok ({report.checked} events)")
    else:
        print(
            f"verify failed: chain broken at {report.broken_at_id} ({report.reason})",
            file=sys.stderr,
        )
    return 0 if report.valid else 1


def _cmd_export(service: AuditService, output_format: str, output_path: Path | None) -> int:
    try:
        return _write_events(_iter_events(service), output_format, output_path)
    except (OSError, CanonicalizationError) as exc:
        print(f"export failed: {exc}", file=sys.stderr)
        return 1


def _cmd_timeline(service: AuditService, console: Console, correlation_id: str, json_output: bool) -> int:
    timeline = service.get_timeline(correlation_id)
    if json_output:
        _print_json(timeline.model_dump())
        return 0
    if not timeline.events:
        print("no events for correlation id", file=sys.stderr)
        return 1
    table = Table(title=f"Timeline {escape(correlation_id)}")
    for column in ("seq", "timestamp", "action_type", "actor", "tool", "decision"):
        table.add_column(column)
    for event in timeline.events:
        table.add_row(
            str(event.seq),
            event.timestamp,
            event.action_type,
            escape(f"{event.actor_type}:{event.actor_id}"),
            escape(event.tool),
            escape(event.decision),
        )
    console.print(table)
    state = timeline.state.value if timeline.state is not None else "unknown"
    console.print(f"[bold]State:[/bold] {state}")
    return 0


def _cmd_approvals(
    service: AuditService, console: Console, status: str | None, limit: str | None, json_output: bool
) -> int:
    page = service.list_approvals(status, limit)
    if json_output:
        _print_json(page.model_dump())
        return 0
    table = Table(title="Approvals")
    for column in ("id", "status", "requested_at", "requested_by", "decided_by", "correlation_id"):
        table.add_column(column)
    for approval in page.items:
        table.add_row(
            approval.id,
            approval.status.value,
            approval.requested_at,
            escape(approval.requested_by),
            escape(approval.decided_by or ""),
            approval.correlation_id,
        )
    console.print(table)
    return 0


def _cmd_decide(
    service: AuditService, approval_id: str, decision: str, approver: str, reason: str | None
) -> int:
    try:
        result = service.decide_approval(approval_id, decision, approver, reason)
    except Forbidden as exc:
        _print_json(exc.to_dict())
        return 0
    except (NotFound, Conflict) as exc:
        print(f"decide failed: {exc}", file=sys.stderr)
        return 1
    _print_json(result.model_dump())
    return 0


def _cmd_submit(service: AuditService, args: argparse.Namespace) -> int:
    try:
        result = service.submit_action(
            actor_type=args.actor_type,
            actor_id=args.actor_id,
            tool=args.tool,
            action=args.action,
            resource=_parse_object(args.resource, "resource"),
            payload=_parse_object(args.payload, "payload"),
        )
    except Forbidden as exc:
        _print_json(exc.to_dict())
        return 0
    _print_json(result.model_dump())
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv if argv is not None else sys.argv[1:])
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")
    settings = Settings.from_env()
    if args.db is not None:
        settings = settings.model_copy(update={"database_path": args.db})
    console = Console()
    try:
        service = AuditService(settings)
        if args.command == "verify":
            return _cmd_verify(service, args.json)
        if args.command == "export":
            return _cmd_export(service, args.format, args.output)
        if args.command == "timeline":
            return _cmd_timeline(service, console, args.correlation_id, args.json)
        if args.command == "approvals":
            return _cmd_approvals(service, console, args.status, args.limit, args.json)
        if args.command == "decide":
            return _cmd_decide(service, args.approval_id, args.decision, args.approver, args.reason)
        if args.command == "submit":
            return _cmd_submit(service, args)
    except ValidationError as exc:
        print(f"invalid input: {exc}", file=sys.stderr)
        return 2
    except AgentGuardError as exc:
        print(f"{args.command} failed: {exc}", file=sys.stderr)
        return 1
    print("unknown command", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
