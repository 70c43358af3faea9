"""Unit tests for rule construction and dual-stack application."""

import pytest

from fwd.core.executor import NETFILTER_CAPABILITIES
from fwd.services.rules import (
    AcceptRule,
    DualStackState,
    IpVersion,
    MarkRule,
    MasqueradeRule,
    Protocol,
    RuleApplier,
    Subsystem,
    TrafficPolicyRule,
)

from conftest import IP, IP6TABLES, IPTABLES, make_app_config, make_executor


class TestRuleArguments:
    """Tests for the argument vectors of each rule kind."""

    def test_accept_rule_with_interface(self):
        """Accept rules insert at the top of INPUT and wait for the lock."""
        rule = AcceptRule(Protocol.TCP, 22, "eth0")
        assert rule.to_args(add=True) == [
            "-I", "INPUT", "-p", "tcp", "--dport", "22",
            "-i", "eth0", "-j", "ACCEPT", "-w",
        ]

    def test_accept_rule_any_interface(self):
        """An empty interface omits the -i match."""
        rule = AcceptRule(Protocol.UDP, 5353)
        args = rule.to_args(add=False)
        assert args == ["-D", "INPUT", "-p", "udp", "--dport", "5353", "-j", "ACCEPT", "-w"]
        assert "-i" not in args

    def test_masquerade_rule(self):
        """Masquerade lives in the nat table's POSTROUTING chain."""
        rule = MasqueradeRule("tun0")
        assert rule.to_args(add=True) == [
            "-t", "nat", "-A", "POSTROUTING", "-o", "tun0", "-j", "MASQUERADE",
        ]
        assert rule.to_args(add=False)[2] == "-D"

    def test_mark_rule(self):
        """Mark rules match the owner in mangle OUTPUT."""
        rule = MarkRule("alice", "1")
        assert rule.to_args(add=True) == [
            "-t", "mangle", "-A", "OUTPUT", "-m", "owner", "--uid-owner", "alice",
            "-j", "MARK", "--set-mark", "1",
        ]

    def test_traffic_policy_rule(self):
        """IPv6 policy rules carry the -6 flag, IPv4 ones do not."""
        assert TrafficPolicyRule(IpVersion.IPV4, "1", "1").to_args(add=True) == [
            "rule", "add", "fwmark", "1", "table", "1",
        ]
        assert TrafficPolicyRule(IpVersion.IPV6, "1", "7").to_args(add=False) == [
            "-6", "rule", "delete", "fwmark", "1", "table", "7",
        ]

    def test_rule_str(self):
        """Rules render readably for log messages."""
        assert str(AcceptRule(Protocol.TCP, 80)) == "ACCEPT tcp/80"
        assert str(AcceptRule(Protocol.TCP, 80, "eth0")) == "ACCEPT tcp/80 on eth0"


class TestDualStackState:
    """Tests for the IPv6 capability flag."""

    def test_starts_disabled(self):
        """The flag is off until ip6tables proves itself."""
        assert DualStackState().ipv6_enabled is False

    def test_sticky(self):
        """Once set, the flag never resets."""
        state = DualStackState()
        state.mark_ipv6_working()
        state.mark_ipv6_working()
        assert state.ipv6_enabled is True

    def test_initial_value_from_config(self, mock_ctx):
        """Hosts configured for IPv6 start with the flag set."""
        mock_ctx.config = make_app_config(ipv6_always_enabled=True)
        applier = RuleApplier(mock_ctx, make_executor())
        assert applier.dual_stack.ipv6_enabled is True


class TestRuleApplierPrimitives:
    """Tests for single-filter rule application."""

    def test_tool_paths_from_config(self, mock_ctx):
        """Each subsystem maps to its configured tool."""
        applier = RuleApplier(mock_ctx, make_executor())
        assert applier.tool_path(Subsystem.PRIMARY) == IPTABLES
        assert applier.tool_path(Subsystem.SECONDARY) == IP6TABLES
        assert applier.ip_path == IP

    def test_android_tool_paths(self, mock_ctx):
        """Android uses the tools under /system/bin."""
        mock_ctx.config = make_app_config(platform="android")
        applier = RuleApplier(mock_ctx, make_executor())
        assert applier.tool_path(Subsystem.PRIMARY) == "/system/bin/iptables"
        assert applier.ip_path == "/system/bin/ip"

    def test_commands_keep_netfilter_capabilities(self, mock_ctx):
        """Every command runs with NET_ADMIN and NET_RAW only."""
        executor = make_executor()
        applier = RuleApplier(mock_ctx, executor)
        applier.apply_rule_for_user_traffic(IpVersion.IPV4, add=True)
        executor.run_status.assert_called_once_with(
            [IP, "rule", "add", "fwmark", "1", "table", "1"],
            NETFILTER_CAPABILITIES,
        )

    def test_non_zero_status_is_failure(self, mock_ctx):
        """Any non-zero exit status counts as failure."""
        executor = make_executor(fail=lambda argv: True)
        applier = RuleApplier(mock_ctx, executor)
        assert applier.apply_masquerade(Subsystem.PRIMARY, "tun0", add=True) is False

    def test_custom_mark_and_table(self, mock_ctx):
        """Mark and table ids come from configuration."""
        mock_ctx.config = make_app_config(user_traffic_mark="42", user_traffic_table="100")
        executor = make_executor()
        applier = RuleApplier(mock_ctx, executor)
        applier.apply_mark_for_user_traffic(Subsystem.SECONDARY, "alice", add=True)
        applier.apply_rule_for_user_traffic(IpVersion.IPV6, add=True)
        assert executor.commands[0][0] == IP6TABLES
        assert executor.commands[0][-1] == "42"
        assert executor.commands[1] == [IP, "-6", "rule", "add", "fwmark", "42", "table", "100"]


class TestAddAcceptRules:
    """Tests for the tolerant dual-stack accept protocol."""

    def test_both_succeed_sets_flag(self, mock_ctx):
        """A working ip6tables flips the IPv6 flag."""
        executor = make_executor()
        applier = RuleApplier(mock_ctx, executor)

        assert applier.add_accept_rules(Protocol.TCP, 22, "eth0") is True
        assert [cmd[0] for cmd in executor.commands] == [IPTABLES, IP6TABLES]
        assert applier.dual_stack.ipv6_enabled is True

    def test_secondary_failure_tolerated_before_ipv6_works(self, mock_ctx):
        """ip6tables failures are ignored while IPv6 is not known to work."""
        executor = make_executor(fail=lambda argv: argv[0] == IP6TABLES)
        applier = RuleApplier(mock_ctx, executor)

        assert applier.add_accept_rules(Protocol.TCP, 22, "") is True
        assert len(executor.commands) == 2
        assert applier.dual_stack.ipv6_enabled is False
        mock_ctx.console.warn.assert_called_once()

    def test_secondary_failure_fatal_after_ipv6_works(self, mock_ctx):
        """Once IPv6 worked, a failing ip6tables undoes the iptables rule."""
        executor = make_executor(fail=lambda argv: argv[0] == IP6TABLES)
        applier = RuleApplier(mock_ctx, executor, DualStackState(ipv6_enabled=True))

        assert applier.add_accept_rules(Protocol.UDP, 53, "eth0") is False
        assert executor.commands == [
            [IPTABLES] + AcceptRule(Protocol.UDP, 53, "eth0").to_args(add=True),
            [IP6TABLES] + AcceptRule(Protocol.UDP, 53, "eth0").to_args(add=True),
            [IPTABLES] + AcceptRule(Protocol.UDP, 53, "eth0").to_args(add=False),
        ]

    def test_primary_failure_stops(self, mock_ctx):
        """ip6tables is not attempted when iptables fails."""
        executor = make_executor(fail=lambda argv: argv[0] == IPTABLES)
        applier = RuleApplier(mock_ctx, executor)

        assert applier.add_accept_rules(Protocol.TCP, 22, "") is False
        assert len(executor.commands) == 1
        assert applier.dual_stack.ipv6_enabled is False

    def test_flag_shared_between_operations(self, mock_ctx):
        """A success on one port makes later ip6tables failures fatal."""
        broken = {"ip6": False}
        executor = make_executor(fail=lambda argv: broken["ip6"] and argv[0] == IP6TABLES)
        applier = RuleApplier(mock_ctx, executor)

        assert applier.add_accept_rules(Protocol.TCP, 22, "") is True
        broken["ip6"] = True
        assert applier.add_accept_rules(Protocol.TCP, 80, "") is False


class TestDeleteAcceptRules:
    """Tests for dual-stack accept rule removal."""

    def test_skips_secondary_when_ipv6_unused(self, mock_ctx):
        """ip6tables is left alone if it never worked."""
        executor = make_executor()
        applier = RuleApplier(mock_ctx, executor)

        assert applier.delete_accept_rules(Protocol.TCP, 22, "") is True
        assert [cmd[0] for cmd in executor.commands] == [IPTABLES]

    def test_deletes_both_when_ipv6_enabled(self, mock_ctx):
        """Both filters are cleaned once IPv6 is in use."""
        executor = make_executor()
        applier = RuleApplier(mock_ctx, executor, DualStackState(ipv6_enabled=True))

        assert applier.delete_accept_rules(Protocol.TCP, 22, "") is True
        assert [cmd[0] for cmd in executor.commands] == [IPTABLES, IP6TABLES]

    def test_primary_failure_still_tries_secondary(self, mock_ctx):
        """Removal is best effort; the result is the AND of both."""
        executor = make_executor(fail=lambda argv: argv[0] == IPTABLES)
        applier = RuleApplier(mock_ctx, executor, DualStackState(ipv6_enabled=True))

        assert applier.delete_accept_rules(Protocol.TCP, 22, "") is False
        assert len(executor.commands) == 2


class TestApply46:
    """Tests for masquerade and mark rules on both filters."""

    def test_add_success(self, mock_ctx):
        """Adds go to iptables then ip6tables."""
        executor = make_executor()
        applier = RuleApplier(mock_ctx, executor)

        assert applier.apply_masquerade46("tun0", add=True) is True
        assert executor.commands == [
            [IPTABLES] + MasqueradeRule("tun0").to_args(add=True),
            [IP6TABLES] + MasqueradeRule("tun0").to_args(add=True),
        ]

    def test_add_primary_failure_short_circuits(self, mock_ctx):
        """A failed iptables add skips ip6tables."""
        executor = make_executor(fail=lambda argv: argv[0] == IPTABLES)
        applier = RuleApplier(mock_ctx, executor)

        assert applier.apply_mark_for_user_traffic46("alice", add=True) is False
        assert len(executor.commands) == 1

    def test_add_secondary_failure_is_fatal(self, mock_ctx):
        """Masquerade and marks are always required on IPv6."""
        executor = make_executor(fail=lambda argv: argv[0] == IP6TABLES)
        applier = RuleApplier(mock_ctx, executor)

        assert applier.apply_masquerade46("tun0", add=True) is False
        assert len(executor.commands) == 2

    def test_remove_attempts_both(self, mock_ctx):
        """Removes try both filters even after a failure."""
        executor = make_executor(fail=lambda argv: argv[0] == IPTABLES)
        applier = RuleApplier(mock_ctx, executor)

        assert applier.apply_mark_for_user_traffic46("alice", add=False) is False
        assert [cmd[0] for cmd in executor.commands] == [IPTABLES, IP6TABLES]
        assert mock_ctx.console.error.call_count == 1

    @pytest.mark.parametrize("add", [True, False])
    def test_mark_uses_configured_mark(self, mock_ctx, add):
        """Mark rules carry the configured mark value."""
        executor = make_executor()
        applier = RuleApplier(mock_ctx, executor)

        applier.apply_mark_for_user_traffic46("alice", add=add)
        for cmd in executor.commands:
            assert cmd[1:] == MarkRule("alice", "1").to_args(add)
