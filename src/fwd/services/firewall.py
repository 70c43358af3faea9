"""Firewall service.

Single entry point combining hole tracking and VPN steering over one shared
executor and one IPv6 capability state. Closing the service (or leaving its
``with`` block) plugs every hole it opened.

Callers must serialize access; nothing here is locked.
"""

from types import TracebackType
from typing import Optional, Sequence

from fwd.core.context import ExecutionContext
from fwd.core.executor import CommandExecutor
from fwd.core.result import Outcome
from fwd.services.holes import HoleRegistry
from fwd.services.rules import DualStackState, Protocol, RuleApplier
from fwd.services.vpn import VpnOrchestrator


class FirewallService:
    """Holes and VPN steering for one process."""

    def __init__(
        self,
        ctx: ExecutionContext,
        executor: Optional[CommandExecutor] = None,
    ) -> None:
        """Initialize the firewall service.

        Args:
            ctx: Execution context
            executor: Command executor (created from ctx if None)
        """
        self.ctx = ctx
        self.executor = executor or CommandExecutor(ctx)
        self.dual_stack = DualStackState(
            ipv6_enabled=ctx.config.firewall.ipv6_always_enabled,
        )
        self.rules = RuleApplier(ctx, self.executor, self.dual_stack)
        self.holes = HoleRegistry(ctx, self.rules)
        self.vpn = VpnOrchestrator(ctx, self.rules)

    # Holes
    def punch_hole(self, protocol: Protocol, port: int, interface: str = "") -> Outcome:
        return self.holes.punch_hole(protocol, port, interface)

    def plug_hole(self, protocol: Protocol, port: int, interface: str = "") -> Outcome:
        return self.holes.plug_hole(protocol, port, interface)

    def punch_tcp_hole(self, port: int, interface: str = "") -> bool:
        return self.holes.punch_tcp_hole(port, interface)

    def punch_udp_hole(self, port: int, interface: str = "") -> bool:
        return self.holes.punch_udp_hole(port, interface)

    def plug_tcp_hole(self, port: int, interface: str = "") -> bool:
        return self.holes.plug_tcp_hole(port, interface)

    def plug_udp_hole(self, port: int, interface: str = "") -> bool:
        return self.holes.plug_udp_hole(port, interface)

    def plug_all_holes(self) -> None:
        """Plug every open hole; raises TeardownError if any remain."""
        self.holes.plug_all_holes()

    # VPN
    def apply_vpn_setup(self, usernames: Sequence[str], interface: str, add: bool) -> Outcome:
        return self.vpn.apply_vpn_setup(usernames, interface, add)

    def request_vpn_setup(self, usernames: Sequence[str], interface: str) -> bool:
        return self.vpn.request_vpn_setup(usernames, interface)

    def remove_vpn_setup(self, usernames: Sequence[str], interface: str) -> bool:
        return self.vpn.remove_vpn_setup(usernames, interface)

    # Lifecycle
    def close(self) -> None:
        self.plug_all_holes()

    def __enter__(self) -> "FirewallService":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()
