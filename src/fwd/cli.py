"""fwd command line entry point.

The root app only carries --version; the command groups live in
``fwd.commands``.
"""

from typing import Annotated

import typer

from fwd import __version__
from fwd.commands.config import app as config_app
from fwd.commands.hole import app as hole_app
from fwd.commands.vpn import app as vpn_app
from fwd.core import console


app = typer.Typer(
    name="fwd",
    help="Firewall Daemon - inbound holes and VPN steering.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
)
app.add_typer(hole_app, name="hole")
app.add_typer(vpn_app, name="vpn")
app.add_typer(config_app, name="config")


def _print_version(value: bool) -> None:
    if value:
        console.print(f"fwd version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=_print_version,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """Open inbound ports on IPv4 and IPv6 and steer selected users'
    traffic through a VPN interface, undoing partial work on failure.

    [bold]Examples:[/bold]
        fwd hole hold --tcp 22 -i eth0
        fwd vpn up alice -i tun0
        fwd vpn down alice -i tun0
        fwd config show
    """


if __name__ == "__main__":
    app()
