"""
truthdesk CLI commands: inspect a truth store and its audit trail.

Commands:
  truthdesk status               - Store dashboard (exists, counts, HEAD, keys)
  truthdesk claims list          - Claims, newest first
  truthdesk claims show HASH     - One decoded claim
  truthdesk verifications list   - Verifications, newest first
  truthdesk audit list           - Audit trail, newest first (with search/filter)
  truthdesk audit add            - Prepend an entry to the audit trail
  truthdesk verify CLAIM         - Remote governance verification (optionally recorded)
  truthdesk verify-local CLAIM   - Local verification through the truthgit CLI
  truthdesk run -- ARGS...       - Pass-through to the truthgit CLI
  truthdesk version              - Show version info
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from truthdesk.errors import (
    InvalidIdentifierError,
    ObjectNotFoundError,
    TruthDeskError,
)

console = Console()

desk_app = typer.Typer(
    name="truthdesk",
    help="Read a truthgit store, proxy verifications, keep the audit trail",
    no_args_is_help=True,
)

_state: Dict[str, Any] = {"root": None}


def _configure_logging(verbose: bool) -> None:
    pkg_logger = logging.getLogger("truthdesk")
    pkg_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not any(isinstance(h, RichHandler) for h in pkg_logger.handlers):
        handler = RichHandler(console=Console(stderr=True), show_path=False, show_time=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        pkg_logger.addHandler(handler)


@desk_app.callback()
def main_callback(
    root: Optional[Path] = typer.Option(
        None, "--root", envvar="TRUTHDESK_HOME",
        help="Truth store root (default: ~/Almacen_IA/LumenSyntax-Main/.truth)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Global options."""
    _state["root"] = root
    _configure_logging(verbose)


def _store():
    from truthdesk.store import TruthStore

    return TruthStore(_state["root"])


def _audit_log():
    from truthdesk.audit import AuditLog
    from truthdesk.store import AUDIT_FILE

    return AuditLog(_store().root / AUDIT_FILE)


def _output_json(data: Dict[str, Any], exit_code: Optional[int] = None) -> NoReturn:
    """Print structured JSON to stdout and exit.

    Exit codes:
    - 0: success (status == "ok")
    - 1: error (status == "error")
    - 3: bad input (invalid hash, object not found)
    """
    print(json.dumps(data, indent=2, default=str))
    if exit_code is not None:
        raise typer.Exit(exit_code)
    if data.get("status", "ok") == "ok":
        raise typer.Exit(0)
    raise typer.Exit(1)


def _exit_code_for(error: Exception) -> int:
    if isinstance(error, (InvalidIdentifierError, ObjectNotFoundError)):
        return 3
    return 1


def _fail(command: str, error: Exception, output_json: bool) -> NoReturn:
    code = _exit_code_for(error)
    if output_json:
        _output_json({"command": command, "status": "error", "error": str(error)}, exit_code=code)
    console.print(f"[red]Error:[/] {error}")
    raise typer.Exit(code)


def _short(text: Any, width: int = 60) -> str:
    text = "" if text is None else str(text)
    return text if len(text) <= width else text[: width - 3] + "..."


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------

@desk_app.command("status")
def status_cmd(
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """One-screen dashboard: does the store exist, what does it hold?"""
    try:
        status = _store().status()
    except TruthDeskError as e:
        _fail("status", e, output_json)

    if output_json:
        _output_json({"command": "status", "status": "ok", **status.model_dump(mode="json")})

    if not status.exists:
        console.print(Panel.fit(
            f"[yellow]No truth repository found[/]\n\n"
            f"Path: {status.path}\n"
            f"Run [bold]truthgit init[/] to create one",
            title="truthdesk status",
        ))
        return

    table = Table(show_header=False, border_style="dim", pad_edge=False, box=None)
    table.add_column("label", style="bold", width=14)
    table.add_column("value")
    table.add_row("Path", status.path)
    table.add_row("Claims", str(status.claims_count))
    table.add_row("Verifications", str(status.verifications_count))
    table.add_row("HEAD", status.head_ref.strip() if status.head_ref else "[dim]none[/]")
    table.add_row("Keys", "[green]present[/]" if status.has_keys else "[yellow]missing[/]")

    console.print()
    console.print("[bold]truthdesk status[/]")
    console.print(table)
    console.print()


# ---------------------------------------------------------------------------
# claims / verifications
# ---------------------------------------------------------------------------

claims_app = typer.Typer(name="claims", help="Browse stored claims", no_args_is_help=True)
desk_app.add_typer(claims_app, name="claims")

verifications_app = typer.Typer(
    name="verifications", help="Browse stored verifications", no_args_is_help=True,
)
desk_app.add_typer(verifications_app, name="verifications")


@claims_app.command("list")
def claims_list_cmd(
    limit: Optional[int] = typer.Option(None, "--limit", "-n", min=1, help="Show at most N claims"),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List claims, newest first. Unreadable objects are skipped with a warning."""
    try:
        claims = _store().list_claims()
    except TruthDeskError as e:
        _fail("claims list", e, output_json)
    if limit is not None:
        claims = claims[:limit]

    if output_json:
        _output_json({"command": "claims list", "status": "ok", "count": len(claims), "claims": claims})

    if not claims:
        console.print("[dim]No claims found.[/]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("hash", style="cyan", no_wrap=True)
    table.add_column("created", style="dim")
    table.add_column("domain")
    table.add_column("state")
    table.add_column("conf", justify="right")
    table.add_column("content")
    for claim in claims:
        claim = claim if isinstance(claim, dict) else {"content": claim}
        metadata = claim.get("metadata") or {}
        table.add_row(
            _short(claim.get("$hash"), 14),
            str(metadata.get("created_at", "")) if isinstance(metadata, dict) else "",
            str(claim.get("domain", "")),
            str(claim.get("state", "")),
            str(claim.get("confidence", "")),
            _short(claim.get("content")),
        )
    console.print(table)


@claims_app.command("show")
def claims_show_cmd(
    content_hash: str = typer.Argument(..., metavar="HASH", help="Claim content hash"),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Resolve a claim by hash and print it."""
    try:
        claim = _store().get_claim(content_hash)
    except TruthDeskError as e:
        _fail("claims show", e, output_json)

    if output_json:
        _output_json({"command": "claims show", "status": "ok", "claim": claim})

    console.print_json(json.dumps(claim, default=str))


@verifications_app.command("list")
def verifications_list_cmd(
    limit: Optional[int] = typer.Option(None, "--limit", "-n", min=1, help="Show at most N verifications"),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List verifications, newest first."""
    try:
        verifications = _store().list_verifications()
    except TruthDeskError as e:
        _fail("verifications list", e, output_json)
    if limit is not None:
        verifications = verifications[:limit]

    if output_json:
        _output_json({
            "command": "verifications list",
            "status": "ok",
            "count": len(verifications),
            "verifications": verifications,
        })

    if not verifications:
        console.print("[dim]No verifications found.[/]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("timestamp", style="dim")
    table.add_column("record")
    for vf in verifications:
        vf = vf if isinstance(vf, dict) else {"value": vf}
        rest = {k: v for k, v in vf.items() if k != "timestamp"}
        table.add_row(str(vf.get("timestamp", "")), _short(json.dumps(rest, default=str), 80))
    console.print(table)


# ---------------------------------------------------------------------------
# audit
# ---------------------------------------------------------------------------

audit_app = typer.Typer(name="audit", help="Read and extend the audit trail", no_args_is_help=True)
desk_app.add_typer(audit_app, name="audit")

_ACTION_STYLES = {
    "proceed": "green",
    "abort": "red",
    "escalate": "yellow",
    "revise": "blue",
}


@audit_app.command("list")
def audit_list_cmd(
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Match claim, domain or id"),
    result_action: Optional[str] = typer.Option(
        None, "--result-action", "-a", help="Only entries with this result action (proceed, abort, ...)"
    ),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", min=1, help="Show at most N entries"),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show audit entries, newest first."""
    from truthdesk.audit import filter_entries

    try:
        entries = _audit_log().read()
    except TruthDeskError as e:
        _fail("audit list", e, output_json)
    entries = filter_entries(entries, query=search, action=result_action)
    if limit is not None:
        entries = entries[:limit]

    if output_json:
        _output_json({
            "command": "audit list",
            "status": "ok",
            "count": len(entries),
            "entries": [e.model_dump(mode="json") for e in entries],
        })

    if not entries:
        console.print("[dim]No audit entries yet.[/]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("id", style="cyan", no_wrap=True)
    table.add_column("timestamp", style="dim")
    table.add_column("domain")
    table.add_column("risk")
    table.add_column("result")
    table.add_column("conf", justify="right")
    table.add_column("claim")
    for entry in entries:
        style = _ACTION_STYLES.get(entry.result_action, "white")
        table.add_row(
            entry.id,
            entry.timestamp,
            entry.domain,
            entry.risk_profile,
            f"[{style}]{entry.result_status}/{entry.result_action}[/]",
            f"{entry.confidence:.2f}",
            _short(entry.claim, 50),
        )
    console.print(table)


@audit_app.command("add")
def audit_add_cmd(
    claim: str = typer.Option(..., "--claim", help="Claim text"),
    domain: str = typer.Option(..., "--domain", help="Claim domain"),
    risk_profile: str = typer.Option("medium", "--risk", help="Risk profile (low/medium/high)"),
    result_status: str = typer.Option(..., "--status", help="Resulting status"),
    result_action: str = typer.Option(..., "--result-action", help="Resulting action (proceed/abort/...)"),
    confidence: float = typer.Option(..., "--confidence", min=0.0, max=1.0, help="Resulting confidence"),
    action: str = typer.Option("manual", "--action", help="Action name recorded in the entry"),
    entry_id: Optional[str] = typer.Option(None, "--id", help="Entry id (default: generated)"),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Prepend an entry to the audit trail."""
    from datetime import datetime, timezone

    from truthdesk.audit import generate_entry_id
    from truthdesk.models import AuditEntry

    entry = AuditEntry(
        id=entry_id or generate_entry_id(),
        timestamp=datetime.now(timezone.utc).isoformat(),
        action=action,
        claim=claim,
        domain=domain,
        risk_profile=risk_profile,
        result_status=result_status,
        result_action=result_action,
        confidence=confidence,
    )
    try:
        _audit_log().append(entry)
    except TruthDeskError as e:
        _fail("audit add", e, output_json)

    if output_json:
        _output_json({"command": "audit add", "status": "ok", "entry": entry.model_dump(mode="json")})
    console.print(f"[green]Recorded[/] {entry.id}")


# ---------------------------------------------------------------------------
# verification proxies
# ---------------------------------------------------------------------------

def _print_verdict(result: Any, entry_id: Optional[str] = None) -> None:
    style = _ACTION_STYLES.get(result.action, "white")
    body = (
        f"[bold {style}]{result.status} / {result.action}[/]\n\n"
        f"Confidence: {result.confidence:.2f}\n"
        f"Reason:     {result.reason}\n"
        f"Audit ref:  {result.audit_ref}"
    )
    if result.ontological_type:
        body += f"\nType:       {result.ontological_type}"
    if entry_id:
        body += f"\n\n[dim]Recorded as {entry_id}[/]"
    console.print(Panel.fit(body, title="truthdesk verify"))


@desk_app.command("verify")
def verify_cmd(
    claim: str = typer.Argument(..., help="Claim text to verify"),
    domain: str = typer.Option("general", "--domain", "-d", help="Claim domain"),
    risk_profile: str = typer.Option("medium", "--risk", "-r", help="Risk profile (low/medium/high)"),
    record: bool = typer.Option(True, "--record/--no-record", help="Save the verdict to the audit trail"),
    api: Optional[str] = typer.Option(None, "--api-url", envvar="TRUTHGIT_API_URL", help="Governance API base URL"),
    output_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Ask the remote governance service for a verdict on a claim."""
    from truthdesk.audit import new_audit_entry
    from truthdesk.governance import GovernanceClient

    client = GovernanceClient(api)
    try:
        result = asyncio.run(client.verify(claim, domain, risk_profile))
    except TruthDeskError as e:
        _fail("verify", e, output_json)

    # The verdict is already issued; a failed write must not hide it.
    entry_id = None
    if record:
        entry = new_audit_entry(claim, domain, risk_profile, result)
        try:
            _audit_log().append(entry)
        except TruthDeskError as e:
            if output_json:
                _output_json({
                    "command": "verify",
                    "status": "error",
                    "result": result.model_dump(mode="json"),
                    "audit_entry": None,
                    "error": f"Verdict not recorded: {e}",
                }, exit_code=_exit_code_for(e))
            _print_verdict(result)
            console.print(f"[red]Error:[/] Verdict not recorded: {e}")
            raise typer.Exit(_exit_code_for(e))
        entry_id = entry.id

    if output_json:
        _output_json({
            "command": "verify",
            "status": "ok",
            "result": result.model_dump(mode="json"),
            "audit_entry": entry_id,
        })

    _print_verdict(result, entry_id)


@desk_app.command("verify-local")
def verify_local_cmd(
    claim: str = typer.Argument(..., help="Claim text to verify"),
    domain: str = typer.Option("general", "--domain", "-d", help="Claim domain"),
):
    """Verify a claim with the local truthgit CLI; prints its JSON output."""
    from truthdesk.runner import TruthGitCLI

    try:
        output = TruthGitCLI().verify_local(claim, domain)
    except TruthDeskError as e:
        _fail("verify-local", e, False)
    print(output, end="")


@desk_app.command(
    "run",
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)
def run_cmd(
    args: List[str] = typer.Argument(None, help="Arguments passed to truthgit"),
):
    """Run truthgit with the given arguments and print its stdout."""
    from truthdesk.runner import TruthGitCLI

    try:
        output = TruthGitCLI().run(args or [])
    except TruthDeskError as e:
        _fail("run", e, False)
    print(output, end="")


@desk_app.command("version")
def version_cmd():
    """Show version info."""
    from truthdesk import __version__

    console.print(f"truthdesk {__version__}")
