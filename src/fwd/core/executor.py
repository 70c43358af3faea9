"""Command execution with capability scoping.

Provides:
- Safe command execution with output capture
- Privilege drop to an unprivileged user keeping only named capabilities
- Dry-run mode support
"""

import os
import shlex
import subprocess
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from fwd.core.context import ExecutionContext
from fwd.core.exceptions import ExecutionError


SETPRIV_PATH = "setpriv"

# Status reported when a command could not be run at all
NOT_RUN_STATUS = -1


class Capability(str, Enum):
    """Linux capabilities a command may keep after dropping root."""
    NET_ADMIN = "net_admin"
    NET_RAW = "net_raw"


# What iptables, ip6tables and ip(8) need to change rules
NETFILTER_CAPABILITIES = frozenset({Capability.NET_ADMIN, Capability.NET_RAW})


@dataclass
class CommandResult:
    """Result of a command execution."""
    command: list[str]
    return_code: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        """Check if command succeeded."""
        return self.return_code == 0


class CommandExecutor:
    """Safe command execution with dry-run support and output capture.

    Features:
    - Dry-run mode shows what would happen
    - Commands run as an unprivileged user with only the requested
      capabilities (via setpriv) when the caller is root
    - Timeout support
    """

    def __init__(
        self,
        ctx: ExecutionContext,
        *,
        setpriv_path: str = SETPRIV_PATH,
    ) -> None:
        """Initialize executor with context.

        Args:
            ctx: Execution context with flags and configuration
            setpriv_path: setpriv(1) binary used for the privilege drop
        """
        self.ctx = ctx
        self.setpriv_path = setpriv_path

    def sandbox_command(
        self,
        command: list[str],
        capabilities: Iterable[Capability],
    ) -> list[str]:
        """Wrap a command so it runs unprivileged with the given capabilities.

        The command is returned unchanged when no privilege drop is
        configured or the caller is not root (a non-root caller cannot
        switch users and already lacks everything else).

        Args:
            command: Command as list of strings
            capabilities: Capabilities the command keeps

        Returns:
            Command to execute
        """
        fw = self.ctx.config.firewall
        if not fw.drops_privileges or os.geteuid() != 0:
            return list(command)

        caps = ",".join(f"+{cap.value}" for cap in sorted(set(capabilities), key=lambda c: c.value))
        cap_set = f"-all,{caps}" if caps else "-all"
        user = fw.unprivileged_user

        return [
            self.setpriv_path,
            f"--reuid={user}",
            f"--regid={user}",
            "--clear-groups",
            f"--inh-caps={cap_set}",
            f"--ambient-caps={cap_set}",
            f"--bounding-set={cap_set}",
            "--",
        ] + list(command)

    def run(
        self,
        command: list[str],
        *,
        capabilities: Optional[Iterable[Capability]] = None,
        description: Optional[str] = None,
        check: bool = True,
        capture: bool = True,
        timeout: Optional[int] = None,
    ) -> CommandResult:
        """Execute a command safely.

        Args:
            command: Command as list of strings
            capabilities: Run sandboxed keeping only these capabilities
                (None runs the command as-is)
            description: Human-readable description for logging
            check: Raise exception on non-zero exit
            capture: Capture stdout/stderr
            timeout: Command timeout in seconds (default from config)

        Returns:
            CommandResult with output

        Raises:
            ExecutionError: If command fails and check=True, or times out
        """
        if description:
            self.ctx.console.step(description)

        cmd_display = shlex.join(command)
        self.ctx.console.debug(f"Running: {cmd_display}")

        # Dry-run mode
        if self.ctx.dry_run:
            self.ctx.console.dry_run_msg(f"Run: {cmd_display}")
            return CommandResult(
                command=command,
                return_code=0,
                stdout="",
                stderr="",
            )

        if capabilities is not None:
            command = self.sandbox_command(command, capabilities)

        if timeout is None:
            timeout = self.ctx.config.firewall.command_timeout

        try:
            result = subprocess.run(
                command,
                capture_output=capture,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            raise ExecutionError(
                f"Command timed out after {timeout}s: {description or cmd_display}",
                command=cmd_display,
            )
        except OSError as e:
            raise ExecutionError(
                f"Cannot run command: {description or cmd_display}",
                command=cmd_display,
                details=[str(e)],
            ) from e

        cmd_result = CommandResult(
            command=command,
            return_code=result.returncode,
            stdout=result.stdout if capture else "",
            stderr=result.stderr if capture else "",
        )

        if check and result.returncode != 0:
            raise ExecutionError(
                f"Command failed: {description or cmd_display}",
                command=cmd_display,
                return_code=result.returncode,
                stderr=result.stderr if capture else None,
            )

        return cmd_result

    def run_status(
        self,
        command: list[str],
        capabilities: Iterable[Capability] = NETFILTER_CAPABILITIES,
    ) -> int:
        """Run a command synchronously and return its exit status.

        A command that cannot be started or times out reports -1.

        Args:
            command: Command as list of strings
            capabilities: Capabilities the command keeps

        Returns:
            Exit status (0 = success)
        """
        try:
            result = self.run(command, capabilities=capabilities, check=False)
        except ExecutionError as e:
            self.ctx.console.error(e.message)
            for detail in e.details:
                self.ctx.console.debug(detail)
            return NOT_RUN_STATUS

        if not result.success:
            self.ctx.console.debug(
                f"Exit code {result.return_code}: {result.stderr.strip() or 'no output'}"
            )
        return result.return_code
