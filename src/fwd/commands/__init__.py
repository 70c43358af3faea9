"""Shared helpers and global options for fwd commands."""

import os
from pathlib import Path
from typing import Annotated, Optional

import typer

from fwd.core import (
    FwdError,
    FirewallError,
    ValidationError,
    console,
    ExecutionContext,
    create_context,
    CommandExecutor,
    Outcome,
    OutcomeKind,
)
from fwd.core.audit import AuditLogger, AuditResult
from fwd.core.config import DEFAULT_CONFIG_PATH
from fwd.services.firewall import FirewallService


DryRunOption = Annotated[bool, typer.Option("--dry-run", help="Show what would be done")]
VerboseOption = Annotated[
    int, typer.Option("--verbose", "-v", count=True, help="Increase verbosity (-v, -vv, -vvv)")
]
QuietOption = Annotated[bool, typer.Option("--quiet", "-q", help="Suppress non-error output")]
NoColorOption = Annotated[bool, typer.Option("--no-color", help="Disable colored output")]
ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        dir_okay=False,
        help=f"Path to configuration file. Default: $FWD_CONFIG or {DEFAULT_CONFIG_PATH}",
    ),
]


def get_firewall_service(
    dry_run: bool = False,
    verbose: int = 0,
    quiet: bool = False,
    no_color: bool = False,
    config: Optional[Path] = None,
) -> tuple[ExecutionContext, FirewallService]:
    """Create firewall service and context."""
    ctx = create_context(
        dry_run=dry_run,
        verbose=verbose,
        quiet=quiet,
        no_color=no_color,
        config=config,
    )
    return ctx, FirewallService(ctx, CommandExecutor(ctx))


def get_audit_logger(ctx: ExecutionContext) -> AuditLogger:
    """Audit logger configured from the context's configuration."""
    return AuditLogger(
        log_path=ctx.config.audit_log_path,
        enabled=ctx.config.audit.enabled,
    )


def audit_result(ctx: ExecutionContext, ok: bool) -> AuditResult:
    if ctx.dry_run:
        return AuditResult.DRY_RUN
    return AuditResult.SUCCESS if ok else AuditResult.FAILURE


def check_root(ctx: ExecutionContext) -> None:
    """Check for root privileges."""
    if os.geteuid() != 0 and not ctx.dry_run:
        ctx.console.error("This operation requires root privileges")
        ctx.console.hint("Run with: sudo fwd ...")
        raise typer.Exit(6)


def raise_for_outcome(outcome: Outcome, message: str, *, hint: Optional[str] = None) -> None:
    """Turn a failed Outcome into the matching exception."""
    if outcome.ok:
        return
    details = [outcome.message] if outcome.message else None
    if outcome.kind == OutcomeKind.VALIDATION_ERROR:
        raise ValidationError(message, details=details)
    raise FirewallError(message, hint=hint, details=details)


def handle_error(error: FwdError) -> None:
    """Handle an FwdError by printing formatted error and exiting."""
    console.error(error.message)

    if error.details:
        for detail in error.details:
            console.print(f"  [dim]{detail}[/dim]")

    if error.hint:
        console.hint(error.hint)

    raise typer.Exit(error.exit_code)
