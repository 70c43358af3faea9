"""Unit tests for the FirewallService facade."""

import pytest

from fwd.core.exceptions import TeardownError
from fwd.services.firewall import FirewallService
from fwd.services.rules import Protocol

from conftest import IP6TABLES, IPTABLES, make_app_config, make_executor


class TestFirewallService:
    """Tests for FirewallService."""

    def test_components_share_state(self, mock_ctx):
        """Holes and VPN steering use one executor and one IPv6 flag."""
        service = FirewallService(mock_ctx, make_executor())

        assert service.rules.dual_stack is service.dual_stack
        assert service.holes.rules is service.rules
        assert service.vpn.rules is service.rules

    def test_ipv6_flag_from_config(self, mock_ctx):
        """IPv6 starts enabled when configured."""
        mock_ctx.config = make_app_config(ipv6_always_enabled=True)
        service = FirewallService(mock_ctx, make_executor())
        assert service.dual_stack.ipv6_enabled is True

    def test_hole_operations(self, mock_ctx):
        """The boolean hole interface delegates to the registry."""
        service = FirewallService(mock_ctx, make_executor())

        assert service.punch_tcp_hole(22) is True
        assert service.punch_udp_hole(53, "eth0") is True
        assert service.plug_tcp_hole(22) is True
        assert service.plug_udp_hole(53) is False
        assert service.plug_udp_hole(53, "eth0") is True

    def test_context_manager_plugs_holes(self, mock_ctx):
        """Leaving the with block closes every hole."""
        executor = make_executor()

        with FirewallService(mock_ctx, executor) as service:
            service.punch_hole(Protocol.TCP, 443)
            service.punch_hole(Protocol.UDP, 1194)

        assert service.holes.holes(Protocol.TCP) == frozenset()
        assert service.holes.holes(Protocol.UDP) == frozenset()
        assert sum("-D" in cmd for cmd in executor.commands) == 4

    def test_close_raises_when_holes_remain(self, mock_ctx):
        """A hole that cannot be plugged is fatal on close."""
        executor = make_executor(fail=lambda argv: "-D" in argv)
        service = FirewallService(mock_ctx, executor)
        service.punch_tcp_hole(22)

        with pytest.raises(TeardownError):
            service.close()

    def test_vpn_and_holes_share_ipv6_flag(self, mock_ctx):
        """A hole that proves ip6tables works makes later IPv6 failures fatal."""
        broken = {"ip6": False}
        executor = make_executor(fail=lambda argv: broken["ip6"] and argv[0] == IP6TABLES)
        service = FirewallService(mock_ctx, executor)

        assert service.punch_tcp_hole(22) is True
        broken["ip6"] = True
        assert service.punch_tcp_hole(80) is False
        assert executor.commands[-1][0] == IPTABLES
        assert "-D" in executor.commands[-1]

    def test_vpn_operations(self, mock_ctx):
        """VPN setup and removal delegate to the orchestrator."""
        service = FirewallService(mock_ctx, make_executor())

        assert service.request_vpn_setup(["alice"], "tun0") is True
        assert service.remove_vpn_setup(["alice"], "tun0") is True
        assert service.apply_vpn_setup(["alice"], "", add=True).ok is False
