"""Rule construction and dual-stack rule application.

Builds iptables/ip6tables/ip(8) argument vectors for the four rule kinds
used by fwd and applies them across the IPv4 (primary) and IPv6
(secondary) packet filters:

- Accept rules follow a sticky tolerance policy: ip6tables failures are
  ignored until ip6tables has worked once on this host, and fatal after.
- Masquerade and user-mark rules are always applied to both filters;
  adds stop at the first IPv4 failure, removes are best-effort on both.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from fwd.core.context import ExecutionContext
from fwd.core.executor import CommandExecutor, NETFILTER_CAPABILITIES


class Protocol(str, Enum):
    """Transport protocol of a hole."""
    TCP = "tcp"
    UDP = "udp"


class IpVersion(str, Enum):
    """IP version of a routing-policy rule."""
    IPV4 = "ipv4"
    IPV6 = "ipv6"


class Subsystem(str, Enum):
    """Packet filter a rule is applied to."""
    PRIMARY = "primary"      # iptables
    SECONDARY = "secondary"  # ip6tables


@dataclass(frozen=True)
class AcceptRule:
    """Accept inbound traffic to a port, optionally on one interface."""
    protocol: Protocol
    port: int
    interface: str = ""

    def to_args(self, add: bool) -> list[str]:
        """Convert rule to iptables command arguments."""
        args = ["-I" if add else "-D", "INPUT", "-p", self.protocol.value, "--dport", str(self.port)]
        if self.interface:
            args.extend(["-i", self.interface])
        args.extend(["-j", "ACCEPT"])
        # Wait for the xtables lock instead of failing
        args.append("-w")
        return args

    def __str__(self) -> str:
        where = f" on {self.interface}" if self.interface else ""
        return f"ACCEPT {self.protocol.value}/{self.port}{where}"


@dataclass(frozen=True)
class MasqueradeRule:
    """NAT traffic leaving through an interface."""
    interface: str

    def to_args(self, add: bool) -> list[str]:
        return [
            "-t", "nat",
            "-A" if add else "-D", "POSTROUTING",
            "-o", self.interface,
            "-j", "MASQUERADE",
        ]

    def __str__(self) -> str:
        return f"MASQUERADE out {self.interface}"


@dataclass(frozen=True)
class MarkRule:
    """Mark packets sent by a user so routing policy can steer them."""
    username: str
    mark: str

    def to_args(self, add: bool) -> list[str]:
        return [
            "-t", "mangle",
            "-A" if add else "-D", "OUTPUT",
            "-m", "owner", "--uid-owner", self.username,
            "-j", "MARK", "--set-mark", self.mark,
        ]

    def __str__(self) -> str:
        return f"MARK {self.mark} for user {self.username}"


@dataclass(frozen=True)
class TrafficPolicyRule:
    """Route marked packets through a dedicated table."""
    ip_version: IpVersion
    mark: str
    table: str

    def to_args(self, add: bool) -> list[str]:
        args = ["-6"] if self.ip_version == IpVersion.IPV6 else []
        args.extend(["rule", "add" if add else "delete", "fwmark", self.mark, "table", self.table])
        return args

    def __str__(self) -> str:
        return f"{self.ip_version.value} fwmark {self.mark} -> table {self.table}"


class DualStackState:
    """Whether ip6tables is known to work on this host.

    Starts false (unless the platform guarantees IPv6) and flips to true the
    first time ip6tables accepts a rule. It never goes back.
    """

    def __init__(self, ipv6_enabled: bool = False) -> None:
        self._ipv6_enabled = ipv6_enabled

    @property
    def ipv6_enabled(self) -> bool:
        return self._ipv6_enabled

    def mark_ipv6_working(self) -> None:
        self._ipv6_enabled = True


class RuleApplier:
    """Applies firewall and routing rules through the command executor."""

    def __init__(
        self,
        ctx: ExecutionContext,
        executor: CommandExecutor,
        dual_stack: Optional[DualStackState] = None,
    ) -> None:
        """Initialize the rule applier.

        Args:
            ctx: Execution context
            executor: Command executor used for every tool invocation
            dual_stack: Shared IPv6 capability state (created if None)
        """
        self.ctx = ctx
        self.executor = executor

        fw = ctx.config.firewall
        self._tool_paths = {
            Subsystem.PRIMARY: fw.resolved_iptables_path,
            Subsystem.SECONDARY: fw.resolved_ip6tables_path,
        }
        self.ip_path = fw.resolved_ip_path
        self.mark = fw.user_traffic_mark
        self.table = fw.user_traffic_table

        if dual_stack is None:
            dual_stack = DualStackState(ipv6_enabled=fw.ipv6_always_enabled)
        self.dual_stack = dual_stack

    def tool_path(self, subsystem: Subsystem) -> str:
        """Path of the filter tool for a subsystem."""
        return self._tool_paths[subsystem]

    def _run(self, argv: list[str]) -> bool:
        return self.executor.run_status(argv, NETFILTER_CAPABILITIES) == 0

    # =========================================================================
    # Single-filter primitives
    # =========================================================================

    def add_accept_rule(
        self,
        subsystem: Subsystem,
        protocol: Protocol,
        port: int,
        interface: str,
    ) -> bool:
        rule = AcceptRule(protocol, port, interface)
        return self._run([self.tool_path(subsystem)] + rule.to_args(add=True))

    def delete_accept_rule(
        self,
        subsystem: Subsystem,
        protocol: Protocol,
        port: int,
        interface: str,
    ) -> bool:
        rule = AcceptRule(protocol, port, interface)
        return self._run([self.tool_path(subsystem)] + rule.to_args(add=False))

    def apply_masquerade(self, subsystem: Subsystem, interface: str, add: bool) -> bool:
        rule = MasqueradeRule(interface)
        return self._run([self.tool_path(subsystem)] + rule.to_args(add))

    def apply_mark_for_user_traffic(self, subsystem: Subsystem, username: str, add: bool) -> bool:
        rule = MarkRule(username, self.mark)
        return self._run([self.tool_path(subsystem)] + rule.to_args(add))

    def apply_rule_for_user_traffic(self, ip_version: IpVersion, add: bool) -> bool:
        """Add or delete the fwmark routing-policy rule for one IP version."""
        rule = TrafficPolicyRule(ip_version, self.mark, self.table)
        return self._run([self.ip_path] + rule.to_args(add))

    # =========================================================================
    # Dual-stack protocols
    # =========================================================================

    def add_accept_rules(self, protocol: Protocol, port: int, interface: str) -> bool:
        """Add an accept rule to iptables and, when possible, ip6tables.

        Returns:
            True if the rule is installed everywhere it is required
        """
        primary = self.tool_path(Subsystem.PRIMARY)
        secondary = self.tool_path(Subsystem.SECONDARY)

        if not self.add_accept_rule(Subsystem.PRIMARY, protocol, port, interface):
            self.ctx.console.error(f"Could not add ACCEPT rule using '{primary}'")
            return False

        if self.add_accept_rule(Subsystem.SECONDARY, protocol, port, interface):
            # From now on ip6tables has to keep working
            self.dual_stack.mark_ipv6_working()
        elif self.dual_stack.ipv6_enabled:
            self.ctx.console.error(
                f"Could not add ACCEPT rule using '{secondary}', aborting operation"
            )
            if not self.delete_accept_rule(Subsystem.PRIMARY, protocol, port, interface):
                self.ctx.console.error(
                    f"Could not remove ACCEPT rule using '{primary}' after aborting"
                )
            return False
        else:
            self.ctx.console.warn(f"Could not add ACCEPT rule using '{secondary}', ignoring")

        return True

    def delete_accept_rules(self, protocol: Protocol, port: int, interface: str) -> bool:
        """Delete an accept rule from iptables, and from ip6tables if in use."""
        ip4_success = self.delete_accept_rule(Subsystem.PRIMARY, protocol, port, interface)
        ip6_success = (
            not self.dual_stack.ipv6_enabled
            or self.delete_accept_rule(Subsystem.SECONDARY, protocol, port, interface)
        )
        return ip4_success and ip6_success

    def _apply46(
        self,
        apply: Callable[[Subsystem], bool],
        add: bool,
        what: str,
    ) -> bool:
        success = True
        for subsystem in (Subsystem.PRIMARY, Subsystem.SECONDARY):
            if apply(subsystem):
                continue
            self.ctx.console.error(
                f"{'Adding' if add else 'Removing'} {what} failed "
                f"using '{self.tool_path(subsystem)}'"
            )
            success = False
            if add and subsystem == Subsystem.PRIMARY:
                return False
        return success

    def apply_masquerade46(self, interface: str, add: bool) -> bool:
        """Add or remove masquerading on an interface in both filters."""
        return self._apply46(
            lambda subsystem: self.apply_masquerade(subsystem, interface, add),
            add,
            f"masquerade for interface {interface}",
        )

    def apply_mark_for_user_traffic46(self, username: str, add: bool) -> bool:
        """Add or remove the traffic mark for a user in both filters."""
        return self._apply46(
            lambda subsystem: self.apply_mark_for_user_traffic(subsystem, username, add),
            add,
            f"mark for user {username}",
        )
