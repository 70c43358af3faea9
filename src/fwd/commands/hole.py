"""Firewall hole commands.

Holes live only as long as the process that punched them, so the command
punches the requested holes, waits for SIGINT or SIGTERM, then plugs every
hole before exiting.
"""

import signal
from typing import Annotated, Optional

import typer

from fwd.commands import (
    ConfigOption,
    DryRunOption,
    NoColorOption,
    QuietOption,
    VerboseOption,
    audit_result,
    check_root,
    get_audit_logger,
    get_firewall_service,
    handle_error,
    raise_for_outcome,
)
from fwd.core import (
    FwdError,
    TeardownError,
    ValidationError,
    ExecutionContext,
    AuditResult,
)
from fwd.core.audit import AuditLogger
from fwd.services.firewall import FirewallService
from fwd.services.rules import Protocol


app = typer.Typer(
    name="hole",
    help="Open inbound firewall holes.",
    no_args_is_help=True,
)


def _raise_interrupt(signum: int, frame: object) -> None:
    raise KeyboardInterrupt


def _wait_for_shutdown(ctx: ExecutionContext) -> None:
    """Block until SIGINT or SIGTERM."""
    if ctx.dry_run:
        ctx.console.dry_run_msg("Keep holes open until interrupted")
        return

    ctx.console.info("Holes are open. Press Ctrl+C or send SIGTERM to close them.")
    previous = signal.signal(signal.SIGTERM, _raise_interrupt)
    try:
        while True:
            signal.pause()
    except KeyboardInterrupt:
        ctx.console.print()
    finally:
        signal.signal(signal.SIGTERM, previous)


def _punch_requested(
    ctx: ExecutionContext,
    firewall: FirewallService,
    audit: AuditLogger,
    requested: list[tuple[Protocol, int]],
    interface: str,
) -> None:
    for protocol, port in requested:
        outcome = firewall.punch_hole(protocol, port, interface)
        audit.hole_punched(
            protocol.value,
            port,
            interface,
            audit_result(ctx, outcome.ok),
            error=None if outcome.ok else str(outcome),
        )
        raise_for_outcome(
            outcome,
            f"Could not open {protocol.value.upper()} port {port}",
            hint="Run with -vvv to see the iptables commands",
        )


def _hold(
    ctx: ExecutionContext,
    firewall: FirewallService,
    audit: AuditLogger,
    requested: list[tuple[Protocol, int]],
    interface: str,
) -> None:
    """Punch, wait, then plug everything; the plug-all is always audited."""
    try:
        with firewall:
            try:
                _punch_requested(ctx, firewall, audit, requested, interface)
            except KeyboardInterrupt:
                ctx.console.print()
                ctx.console.warn("Interrupted while opening holes")
            else:
                ctx.console.success(f"Opened {len(requested)} hole(s)")
                _wait_for_shutdown(ctx)
    except TeardownError as e:
        audit.holes_plugged(AuditResult.FAILURE, remaining=e.remaining, error=e.message)
        raise
    except FwdError:
        audit.holes_plugged(audit_result(ctx, True))
        raise
    audit.holes_plugged(audit_result(ctx, True))
    ctx.console.success("All holes closed")


@app.command("hold")
def hold(
    tcp: Annotated[
        Optional[list[int]],
        typer.Option("--tcp", help="TCP port to open (repeatable)"),
    ] = None,
    udp: Annotated[
        Optional[list[int]],
        typer.Option("--udp", help="UDP port to open (repeatable)"),
    ] = None,
    interface: Annotated[
        str,
        typer.Option("--interface", "-i", help="Only accept traffic on this interface"),
    ] = "",
    dry_run: DryRunOption = False,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
    config: ConfigOption = None,
) -> None:
    """Open holes and keep them open until interrupted.

    Every hole opened by this command is closed again when it exits.

    [bold]Examples:[/bold]

        fwd hole hold --tcp 22 --tcp 80 -i eth0
        fwd hole hold --udp 5353 --dry-run
    """
    ctx, firewall = get_firewall_service(
        dry_run=dry_run,
        verbose=verbose,
        quiet=quiet,
        no_color=no_color,
        config=config,
    )
    check_root(ctx)

    requested = [(Protocol.TCP, port) for port in tcp or []]
    requested += [(Protocol.UDP, port) for port in udp or []]

    try:
        if not requested:
            raise ValidationError(
                "No ports to open",
                hint="Pass at least one --tcp or --udp port",
            )

        audit = get_audit_logger(ctx)
        with audit.correlation("hole_hold"):
            _hold(ctx, firewall, audit, requested, interface)

    except FwdError as e:
        handle_error(e)
