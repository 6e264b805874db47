"""
Toolgate CLI

Operator commands for inspecting the gate.

Commands:
    toolgate check TOOL -p key=value   — Evaluate a tool call (exit 1 when denied)
    toolgate tools                     — List registered tools and their risk
    toolgate policy show               — Show the active policy
    toolgate scan FILE                 — Scan a file (or - for stdin) for secrets/PII
    toolgate audit view                — Query recorded decisions
    toolgate audit tail                — Tail the daily JSON-lines audit file
    toolgate audit sessions            — List recorded sessions

Global options (also read from the environment):
    --policy   TOOLGATE_POLICY   policy file (YAML/JSON)
    --log-dir  TOOLGATE_LOG_DIR  audit log directory
    --db-url   TOOLGATE_DB_URL   audit database URL
"""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from typing import Any

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from toolgate import __version__
from toolgate.audit.log import AuditLog
from toolgate.core.models import AuditResult, EvaluationContext, PolicyConfig
from toolgate.exceptions import AuditPersistenceError, ConfigurationError
from toolgate.gate import PolicyGate
from toolgate.policy.config import DEFAULT_POLICY
from toolgate.policy.loader import load_policy
from toolgate.security.scanner import DEFAULT_MASK, ContentScanner

console = Console()
err_console = Console(stderr=True)

EXIT_DENIED = 1
EXIT_CONFIG = 2


@dataclass
class CliState:
    policy_path: str | None = None
    log_dir: str | None = None
    db_url: str | None = None

    def load_policy(self) -> PolicyConfig:
        if self.policy_path:
            return load_policy(self.policy_path)
        return DEFAULT_POLICY

    def audit_log(self) -> AuditLog:
        return AuditLog(db_url=self.db_url, log_dir=self.log_dir)


def _fail_config(exc: ConfigurationError) -> None:
    err_console.print(f"[bold red]Configuration error:[/] {escape(str(exc))}")
    sys.exit(EXIT_CONFIG)


def _parse_param(raw: str) -> tuple[str, Any]:
    if "=" not in raw:
        raise click.BadParameter(f"expected key=value, got {raw!r}", param_hint="--param")
    key, value = raw.split("=", 1)
    try:
        return key, json.loads(value)
    except json.JSONDecodeError:
        return key, value


@click.group()
@click.version_option(version=__version__, prog_name="toolgate")
@click.option("--policy", "policy_path", envvar="TOOLGATE_POLICY", type=click.Path(dir_okay=False),
              help="Policy file (YAML or JSON).")
@click.option("--log-dir", envvar="TOOLGATE_LOG_DIR", type=click.Path(file_okay=False),
              help="Audit log directory.")
@click.option("--db-url", envvar="TOOLGATE_DB_URL", help="Audit database URL or SQLite path.")
@click.pass_context
def app(ctx: click.Context, policy_path: str | None, log_dir: str | None, db_url: str | None) -> None:
    """Toolgate — policy gate for a local developer assistant"""
    ctx.obj = CliState(policy_path=policy_path, log_dir=log_dir, db_url=db_url)


@app.command()
@click.argument("tool")
@click.option("--param", "-p", "params", multiple=True, help="Tool parameter as key=value (repeatable).")
@click.option("--user", "user_id", default="anonymous", show_default=True, help="User identity.")
@click.option("--project", "project_id", default=None, help="Project identifier.")
@click.option("--approve", is_flag=True, help="Approve the tool for this user before evaluating.")
@click.option("--skip-confirmation", is_flag=True, help="Bypass the confirmation step.")
@click.option("--no-audit", is_flag=True, help="Do not record the decision.")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@click.pass_obj
def check(
    state: CliState,
    tool: str,
    params: tuple[str, ...],
    user_id: str,
    project_id: str | None,
    approve: bool,
    skip_confirmation: bool,
    no_audit: bool,
    json_output: bool,
) -> None:
    """Evaluate whether TOOL may run with the given parameters."""
    parameters = dict(_parse_param(p) for p in params)
    try:
        config = state.load_policy()
    except ConfigurationError as exc:
        _fail_config(exc)
        return

    audit = None if no_audit else state.audit_log()
    with PolicyGate(policy=config, audit=audit) as gate:
        if approve:
            gate.approve(tool, user_id, project_id)
        context = EvaluationContext(
            user_id=user_id,
            project_id=project_id,
            skip_confirmation=skip_confirmation,
        )
        verdict = gate.check(tool, parameters, context)

    if json_output:
        console.print_json(verdict.model_dump_json())
    elif verdict.allowed:
        console.print(f"[bold green]ALLOWED[/] {escape(tool)}")
    else:
        console.print(f"[bold red]DENIED[/] {escape(tool)}: {escape(verdict.reason or '')}")
        for suggestion in verdict.suggestions:
            console.print(f"  [dim]- {escape(suggestion)}[/]")

    if not verdict.allowed:
        sys.exit(EXIT_DENIED)


@app.command()
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
def tools(json_output: bool) -> None:
    """List registered tools with their risk metadata."""
    gate = PolicyGate()
    registered = gate.registry.all()

    if json_output:
        console.print_json(json.dumps({n: m.model_dump(mode="json") for n, m in registered.items()}))
        return

    table = Table(title="Registered Tools")
    table.add_column("Tool", style="bold")
    table.add_column("Risk")
    table.add_column("Confirmation")
    table.add_column("Description")
    risk_colors = {"read": "green", "write": "yellow", "exec": "red", "network": "magenta"}
    for name in sorted(registered):
        meta = registered[name]
        color = risk_colors.get(meta.risk_class.value, "white")
        table.add_row(
            name,
            f"[{color}]{meta.risk_class.value}[/]",
            meta.confirmation.value,
            meta.description,
        )
    console.print(table)


@app.group()
def policy() -> None:
    """Inspect the policy configuration."""


@policy.command("show")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@click.pass_obj
def policy_show(state: CliState, json_output: bool) -> None:
    """Show the active policy (the --policy file, or the defaults)."""
    try:
        config = state.load_policy()
    except ConfigurationError as exc:
        _fail_config(exc)
        return

    if json_output:
        console.print_json(config.model_dump_json())
        return

    source = state.policy_path or "built-in defaults"
    console.print(f"\n[bold]Policy[/] [dim]({escape(source)})[/]")
    for key, value in config.model_dump(mode="json").items():
        if isinstance(value, list):
            value = ", ".join(value) or "(empty)"
        console.print(f"  {key:22s} {escape(str(value))}")


@app.command()
@click.argument("source", type=click.File("r", encoding="utf-8"))
@click.option("--redact", is_flag=True, help="Print the redacted content.")
@click.option("--mask", default=DEFAULT_MASK, show_default=True, help="Mask character.")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
def scan(source: Any, redact: bool, mask: str, json_output: bool) -> None:
    """Scan SOURCE (a file, or - for stdin) for secrets and PII."""
    content = source.read()
    scanner = ContentScanner()
    try:
        result = scanner.scan(content, mask_char=mask)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--mask") from exc

    if json_output:
        data = result.model_dump(mode="json")
        if not redact:
            data.pop("redacted_content")
        console.print_json(json.dumps(data))
        return

    if redact:
        click.echo(result.redacted_content, nl=False)
        return

    findings = [("secret", i) for i in result.detected_secrets] + [("pii", i) for i in result.detected_pii]
    if not findings:
        console.print("[green]No secrets or PII detected.[/]")
        return

    table = Table(title=f"Findings ({len(findings)})")
    table.add_column("Kind")
    table.add_column("Type", style="bold")
    table.add_column("Severity")
    table.add_column("Offset", justify="right")
    for kind, item in findings:
        table.add_row(kind, escape(item.type), item.severity.value, f"{item.position.start}-{item.position.end}")
    console.print(table)


@app.group()
def audit() -> None:
    """Inspect the audit trail."""


@audit.command("view")
@click.option("--tool", default=None, help="Filter by tool name.")
@click.option("--result", type=click.Choice([r.value for r in AuditResult]), default=None,
              help="Filter by result.")
@click.option("--user", "user_id", default=None, help="Filter by user.")
@click.option("--limit", default=50, show_default=True, type=click.IntRange(1, 1000),
              help="Maximum events to show.")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@click.pass_obj
def audit_view(
    state: CliState,
    tool: str | None,
    result: str | None,
    user_id: str | None,
    limit: int,
    json_output: bool,
) -> None:
    """Show recorded decisions, most recent first."""
    with state.audit_log() as log:
        try:
            events = log.query(tool=tool, result=result, user_id=user_id, limit=limit)
        except AuditPersistenceError as exc:
            err_console.print(f"[bold red]Audit store unavailable:[/] {escape(str(exc))}")
            sys.exit(EXIT_CONFIG)

    if json_output:
        console.print_json(json.dumps([e.model_dump(mode="json") for e in events]))
        return

    if not events:
        console.print("No audit logs found.")
        return

    table = Table(title="Audit Log")
    table.add_column("Time")
    table.add_column("Tool", style="bold")
    table.add_column("Action")
    table.add_column("Result")
    table.add_column("User")
    table.add_column("Reason")
    colors = {"allowed": "green", "approved": "green", "denied": "red", "rejected": "red"}
    for event in events:
        color = colors[event.result.value]
        table.add_row(
            event.timestamp.isoformat(timespec="seconds"),
            escape(event.tool),
            escape(event.action),
            f"[{color}]{event.result.value.upper()}[/]",
            escape(event.user_id or ""),
            escape(event.reason or ""),
        )
    console.print(table)
    console.print(f"Total: {len(events)} event(s)")


@audit.command("tail")
@click.option("--count", "-n", default=50, show_default=True, type=click.IntRange(1, 10000),
              help="Number of lines.")
@click.pass_obj
def audit_tail(state: CliState, count: int) -> None:
    """Print the last lines of the daily audit files."""
    with state.audit_log() as log:
        lines = log.recent_lines(count)
    for line in lines:
        click.echo(line)


@audit.command("sessions")
@click.option("--limit", default=20, show_default=True, type=click.IntRange(1, 1000))
@click.pass_obj
def audit_sessions(state: CliState, limit: int) -> None:
    """List recorded sessions."""
    with state.audit_log() as log:
        try:
            sessions = log.list_sessions(limit)
        except AuditPersistenceError as exc:
            err_console.print(f"[bold red]Audit store unavailable:[/] {escape(str(exc))}")
            sys.exit(EXIT_CONFIG)

    if not sessions:
        console.print("No sessions found.")
        return

    table = Table(title="Sessions")
    table.add_column("Session")
    table.add_column("Started")
    table.add_column("Ended")
    table.add_column("Workspace")
    table.add_column("Actions", justify="right")
    for s in sessions:
        table.add_row(
            s.id,
            s.start_time.isoformat(timespec="seconds"),
            s.end_time.isoformat(timespec="seconds") if s.end_time else "(open)",
            escape(s.workspace or ""),
            str(s.actions_count),
        )
    console.print(table)


def cli() -> None:
    """Console-script entry point."""
    app()


if __name__ == "__main__":
    cli()
