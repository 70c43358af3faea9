"""Configuration commands: show, init, validate and example."""

from typing import Annotated

import typer

from fwd.commands import ConfigOption, NoColorOption, VerboseOption, handle_error
from fwd.core import AppConfig, FwdError, create_context
from fwd.core.config import (
    DEFAULT_CONFIG_PATH,
    EnvironmentOverrides,
    get_example_config,
    init_config,
)


app = typer.Typer(
    name="config",
    help="Inspect and create the fwd configuration file.",
    no_args_is_help=True,
)


def _firewall_settings(app_config: AppConfig) -> dict[str, object]:
    firewall = app_config.firewall
    return {
        "Platform": firewall.platform,
        "iptables": firewall.resolved_iptables_path,
        "ip6tables": firewall.resolved_ip6tables_path,
        "ip": firewall.resolved_ip_path,
        "Run commands as": firewall.unprivileged_user if firewall.drops_privileges else "caller",
        "IPv6 always enabled": firewall.ipv6_always_enabled,
        "User traffic mark": firewall.user_traffic_mark,
        "User traffic table": firewall.user_traffic_table,
        "Command timeout (s)": firewall.command_timeout,
        "Audit log": app_config.audit_log_path if app_config.audit.enabled else "disabled",
    }


def _warnings(app_config: AppConfig) -> list[str]:
    warnings = []
    if not app_config.config_path.exists():
        warnings.append(f"{app_config.config_path} not found, using defaults")
    if not app_config.firewall.drops_privileges:
        warnings.append("iptables and ip run with full root privileges")
    if not app_config.audit.enabled:
        warnings.append("Audit logging is disabled")
    return warnings


@app.command("show")
def config_show(
    config: ConfigOption = None,
    verbose: VerboseOption = 0,
    no_color: NoColorOption = False,
) -> None:
    """Show the effective firewall settings.

    With -v the loaded file is printed as well.
    """
    ctx = create_context(verbose=verbose, no_color=no_color, config=config)
    try:
        app_config = ctx.config
        ctx.console.settings(
            f"fwd settings ({app_config.config_path})",
            _firewall_settings(app_config),
        )
        if ctx.is_verbose:
            ctx.console.yaml(app_config.config.to_yaml(), title=str(app_config.config_path))
    except FwdError as e:
        handle_error(e)


@app.command("init")
def config_init(
    config: ConfigOption = None,
    force: Annotated[bool, typer.Option("--force", "-f", help="Overwrite an existing file")] = False,
    no_color: NoColorOption = False,
) -> None:
    """Write the example configuration file."""
    ctx = create_context(no_color=no_color)
    path = config or EnvironmentOverrides().fwd_config or DEFAULT_CONFIG_PATH
    try:
        init_config(path, force=force)
        ctx.console.success(f"Configuration file created: {path}")
    except FwdError as e:
        handle_error(e)


@app.command("validate")
def config_validate(
    config: ConfigOption = None,
    no_color: NoColorOption = False,
) -> None:
    """Check that the configuration file loads and every value is valid."""
    ctx = create_context(no_color=no_color, config=config)
    try:
        app_config = ctx.config
        ctx.console.success(f"Configuration is valid: {app_config.config_path}")
        for warning in _warnings(app_config):
            ctx.console.warn(warning)
    except FwdError as e:
        handle_error(e)


@app.command("example")
def config_example() -> None:
    """Print the example configuration."""
    create_context().console.print(get_example_config(), markup=False)
