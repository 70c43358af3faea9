"""VPN steering commands.

Marks traffic of the given local users, routes marked packets through a
dedicated routing table and masquerades it on the VPN interface.
"""

from pathlib import Path
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
from fwd.core import FwdError


app = typer.Typer(
    name="vpn",
    help="Route user traffic through a VPN interface.",
    no_args_is_help=True,
)


UsernamesArgument = Annotated[
    list[str],
    typer.Argument(help="Local users (names or uids) whose traffic goes through the VPN"),
]

InterfaceOption = Annotated[
    str,
    typer.Option("--interface", "-i", help="VPN interface, e.g. tun0"),
]


def _apply(
    usernames: list[str],
    interface: str,
    add: bool,
    dry_run: bool,
    verbose: int,
    quiet: bool,
    no_color: bool,
    config: Optional[Path],
) -> None:
    ctx, firewall = get_firewall_service(
        dry_run=dry_run,
        verbose=verbose,
        quiet=quiet,
        no_color=no_color,
        config=config,
    )
    check_root(ctx)
    operation = "setup" if add else "teardown"

    try:
        audit = get_audit_logger(ctx)
        with audit.correlation(f"vpn_{operation}"):
            ctx.console.step(f"VPN {operation} on {interface} for {', '.join(usernames)}")
            outcome = firewall.apply_vpn_setup(usernames, interface, add)
            audit.vpn_changed(
                add,
                usernames,
                interface,
                audit_result(ctx, outcome.ok),
                error=None if outcome.ok else str(outcome),
            )

            raise_for_outcome(
                outcome,
                f"VPN {operation} failed on {interface}",
                hint="Run with -vvv to see the iptables and ip commands",
            )
            ctx.console.success(f"VPN {operation} complete on {interface}")

    except FwdError as e:
        handle_error(e)


@app.command("up")
def vpn_up(
    usernames: UsernamesArgument,
    interface: InterfaceOption,
    dry_run: DryRunOption = False,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
    config: ConfigOption = None,
) -> None:
    """Steer the users' traffic through the VPN interface.

    If any step fails, the steps already applied are undone.

    [bold]Examples:[/bold]

        fwd vpn up alice bob -i tun0
        fwd vpn up 10123 -i tun0 --dry-run
    """
    _apply(usernames, interface, True, dry_run, verbose, quiet, no_color, config)


@app.command("down")
def vpn_down(
    usernames: UsernamesArgument,
    interface: InterfaceOption,
    dry_run: DryRunOption = False,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
    config: ConfigOption = None,
) -> None:
    """Remove VPN steering for the users.

    Every removal is attempted even when an earlier one fails. Malformed
    user names are reported and skipped.

    [bold]Examples:[/bold]

        fwd vpn down alice bob -i tun0
    """
    _apply(usernames, interface, False, dry_run, verbose, quiet, no_color, config)
