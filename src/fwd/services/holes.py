"""Firewall hole tracking.

A hole is an inbound (port, interface) pair accepted by the firewall. The
registry only tracks holes whose rules are confirmed installed, so it is the
record of what this process must close before it goes away.

Punching is idempotent. Plugging is not: plugging a hole that was never
punched is reported as an error, because it usually means the caller lost
track of its own state.
"""

from typing import NamedTuple

from fwd.core.context import ExecutionContext
from fwd.core.exceptions import TeardownError, ValidationError
from fwd.core.result import Outcome
from fwd.core.validation import validate_interface_name, validate_port
from fwd.services.rules import Protocol, RuleApplier


class Hole(NamedTuple):
    """An open inbound port on an interface ("" = any interface)."""
    port: int
    interface: str

    def describe(self, protocol: Protocol) -> str:
        where = f"'{self.interface}'" if self.interface else "any interface"
        return f"{protocol.value.upper()} port {self.port} on {where}"


class HoleRegistry:
    """Punches and plugs holes, tracking the ones currently open."""

    def __init__(self, ctx: ExecutionContext, rules: RuleApplier) -> None:
        self.ctx = ctx
        self.rules = rules
        self._holes: dict[Protocol, set[Hole]] = {
            Protocol.TCP: set(),
            Protocol.UDP: set(),
        }

    def holes(self, protocol: Protocol) -> frozenset[Hole]:
        """Holes currently open for a protocol."""
        return frozenset(self._holes[protocol])

    def is_tracked(self, protocol: Protocol, port: int, interface: str) -> bool:
        return Hole(port, interface) in self._holes[protocol]

    def punch_hole(self, protocol: Protocol, port: int, interface: str) -> Outcome:
        """Open a hole for a port on an interface.

        Args:
            protocol: TCP or UDP
            port: Destination port (1-65535)
            interface: Input interface, "" for any

        Returns:
            Outcome of the operation; an already open hole is a success
        """
        try:
            validate_port(port)
            validate_interface_name(interface)
        except ValidationError as e:
            self.ctx.console.error(e.message)
            return Outcome.validation(e.message)

        hole = Hole(port, interface)
        holes = self._holes[protocol]
        if hole in holes:
            self.ctx.console.debug(f"Hole already open: {hole.describe(protocol)}")
            return Outcome.success("already open")

        self.ctx.console.step(f"Punching hole for {hole.describe(protocol)}")
        if not self.rules.add_accept_rules(protocol, port, interface):
            self.ctx.console.error("Adding ACCEPT rules failed")
            return Outcome.external(f"Adding ACCEPT rules failed for {hole.describe(protocol)}")

        holes.add(hole)
        return Outcome.success()

    def plug_hole(self, protocol: Protocol, port: int, interface: str) -> Outcome:
        """Close a hole previously opened with punch_hole.

        Args:
            protocol: TCP or UDP
            port: Destination port (1-65535)
            interface: Input interface, "" for any

        Returns:
            Outcome of the operation; an unknown hole is a state error
        """
        try:
            validate_port(port)
        except ValidationError as e:
            self.ctx.console.error(e.message)
            return Outcome.validation(e.message)

        hole = Hole(port, interface)
        holes = self._holes[protocol]
        if hole not in holes:
            message = f"No open hole for {hole.describe(protocol)}"
            self.ctx.console.error(message)
            return Outcome.state(message)

        self.ctx.console.step(f"Plugging hole for {hole.describe(protocol)}")
        if not self.rules.delete_accept_rules(protocol, port, interface):
            self.ctx.console.error("Deleting ACCEPT rules failed")
            return Outcome.external(f"Deleting ACCEPT rules failed for {hole.describe(protocol)}")

        holes.discard(hole)
        return Outcome.success()

    def plug_all_holes(self) -> None:
        """Close every open hole.

        Raises:
            TeardownError: If any hole is still open afterwards
        """
        for protocol in (Protocol.TCP, Protocol.UDP):
            # Iterate over a copy, plug_hole removes from the live set
            for hole in sorted(self._holes[protocol]):
                self.plug_hole(protocol, hole.port, hole.interface)

        remaining = [
            hole.describe(protocol)
            for protocol in (Protocol.TCP, Protocol.UDP)
            for hole in sorted(self._holes[protocol])
        ]
        if remaining:
            raise TeardownError(
                f"Failed to plug all holes ({len(remaining)} still open)",
                remaining=remaining,
            )

    # Boolean interface
    def punch_tcp_hole(self, port: int, interface: str) -> bool:
        return self.punch_hole(Protocol.TCP, port, interface).ok

    def punch_udp_hole(self, port: int, interface: str) -> bool:
        return self.punch_hole(Protocol.UDP, port, interface).ok

    def plug_tcp_hole(self, port: int, interface: str) -> bool:
        return self.plug_hole(Protocol.TCP, port, interface).ok

    def plug_udp_hole(self, port: int, interface: str) -> bool:
        return self.plug_hole(Protocol.UDP, port, interface).ok
