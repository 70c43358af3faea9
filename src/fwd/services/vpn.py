"""VPN traffic steering.

Steering a set of users into a VPN takes four kinds of rules, applied in
this order:

1. ``ip rule add fwmark <mark> table <table>`` (IPv4)
2. the same rule for IPv6
3. masquerading on the VPN interface (iptables and ip6tables)
4. one owner-match MARK rule per user (iptables and ip6tables)

Setup is all-or-nothing: the first failure undoes what this call already
installed, newest first. Teardown attempts every step whatever happens and
reports whether all of them worked.
"""

from dataclasses import dataclass, field
from typing import Callable, Sequence

from fwd.core.context import ExecutionContext
from fwd.core.exceptions import ValidationError
from fwd.core.result import Outcome
from fwd.core.validation import validate_interface_name, validate_username
from fwd.services.rules import IpVersion, RuleApplier


@dataclass
class VpnSetupProgress:
    """The part of a setup that has been installed so far."""
    ipv4_rule: bool = False
    ipv6_rule: bool = False
    masquerade: bool = False
    usernames: list[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (self.ipv4_rule or self.ipv6_rule or self.masquerade or self.usernames)


class VpnOrchestrator:
    """Installs and removes the rule set that routes users through a VPN."""

    def __init__(self, ctx: ExecutionContext, rules: RuleApplier) -> None:
        self.ctx = ctx
        self.rules = rules

    def apply_vpn_setup(
        self,
        usernames: Sequence[str],
        interface: str,
        add: bool,
    ) -> Outcome:
        """Install (add=True) or remove (add=False) VPN steering.

        Args:
            usernames: Users whose traffic is steered, processed in order
            interface: VPN interface to masquerade on
            add: Install when True, remove when False

        Returns:
            Outcome of the operation
        """
        try:
            validate_interface_name(interface, allow_empty=False)
            if add:
                for username in usernames:
                    validate_username(username)
        except ValidationError as e:
            self.ctx.console.error(e.message)
            return Outcome.validation(e.message)

        if add:
            return self._setup(list(usernames), interface)
        return self._teardown(list(usernames), interface)

    def _setup(self, usernames: list[str], interface: str) -> Outcome:
        self.ctx.console.step(
            f"Setting up VPN steering on '{interface}' for {len(usernames)} user(s)"
        )
        progress = VpnSetupProgress()

        if not self.rules.apply_rule_for_user_traffic(IpVersion.IPV4, add=True):
            return self._abort("Adding rule for IPv4 user traffic failed", progress, interface)
        progress.ipv4_rule = True

        if not self.rules.apply_rule_for_user_traffic(IpVersion.IPV6, add=True):
            return self._abort("Adding rule for IPv6 user traffic failed", progress, interface)
        progress.ipv6_rule = True

        if not self.rules.apply_masquerade46(interface, add=True):
            return self._abort(f"Adding masquerade on '{interface}' failed", progress, interface)
        progress.masquerade = True

        for username in usernames:
            if not self.rules.apply_mark_for_user_traffic46(username, add=True):
                return self._abort(f"Adding mark for user {username} failed", progress, interface)
            progress.usernames.append(username)

        return Outcome.success()

    def _abort(self, message: str, progress: VpnSetupProgress, interface: str) -> Outcome:
        self.ctx.console.error(message)
        if not progress.empty and not self.rollback(progress, interface):
            self.ctx.console.error("Rollback of VPN setup was incomplete")
        return Outcome.external(message)

    def rollback(self, progress: VpnSetupProgress, interface: str) -> bool:
        """Remove the installed part of a setup, newest rule first.

        Every removal is attempted even if an earlier one fails.

        Args:
            progress: What the failed setup had installed
            interface: VPN interface used by the setup

        Returns:
            True if every removal succeeded
        """
        self.ctx.console.warn("Rolling back VPN setup...")
        steps: list[tuple[str, Callable[[], bool]]] = [
            (
                f"Remove mark for user {username}",
                lambda u=username: self.rules.apply_mark_for_user_traffic46(u, add=False),
            )
            for username in reversed(progress.usernames)
        ]
        if progress.masquerade:
            steps.append((
                f"Remove masquerade on '{interface}'",
                lambda: self.rules.apply_masquerade46(interface, add=False),
            ))
        if progress.ipv6_rule:
            steps.append((
                "Remove rule for IPv6 user traffic",
                lambda: self.rules.apply_rule_for_user_traffic(IpVersion.IPV6, add=False),
            ))
        if progress.ipv4_rule:
            steps.append((
                "Remove rule for IPv4 user traffic",
                lambda: self.rules.apply_rule_for_user_traffic(IpVersion.IPV4, add=False),
            ))
        return self._run_all(steps, prefix="Rollback: ")

    def _teardown(self, usernames: list[str], interface: str) -> Outcome:
        self.ctx.console.step(
            f"Removing VPN steering on '{interface}' for {len(usernames)} user(s)"
        )
        steps: list[tuple[str, Callable[[], bool]]] = [
            (
                "Remove rule for IPv4 user traffic",
                lambda: self.rules.apply_rule_for_user_traffic(IpVersion.IPV4, add=False),
            ),
            (
                "Remove rule for IPv6 user traffic",
                lambda: self.rules.apply_rule_for_user_traffic(IpVersion.IPV6, add=False),
            ),
            (
                f"Remove masquerade on '{interface}'",
                lambda: self.rules.apply_masquerade46(interface, add=False),
            ),
        ]
        skipped = []
        for username in usernames:
            try:
                validate_username(username)
            except ValidationError as e:
                self.ctx.console.error(f"Skipping removal of mark: {e.message}")
                skipped.append(username)
                continue
            steps.append((
                f"Remove mark for user {username}",
                lambda u=username: self.rules.apply_mark_for_user_traffic46(u, add=False),
            ))

        removed = self._run_all(steps)
        if skipped:
            return Outcome.validation(f"Invalid user name(s) skipped: {', '.join(skipped)}")
        if removed:
            return Outcome.success()
        return Outcome.external(f"Removing VPN steering on '{interface}' failed")

    def _run_all(self, steps: list[tuple[str, Callable[[], bool]]], prefix: str = "") -> bool:
        success = True
        for description, step in steps:
            self.ctx.console.debug(f"{prefix}{description}")
            if not step():
                self.ctx.console.error(f"{prefix}{description} failed")
                success = False
        return success

    # Boolean interface
    def request_vpn_setup(self, usernames: Sequence[str], interface: str) -> bool:
        return self.apply_vpn_setup(usernames, interface, add=True).ok

    def remove_vpn_setup(self, usernames: Sequence[str], interface: str) -> bool:
        return self.apply_vpn_setup(usernames, interface, add=False).ok
