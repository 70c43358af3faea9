"""Service abstractions for firewall rule management."""

from fwd.services.firewall import FirewallService
from fwd.services.holes import Hole, HoleRegistry
from fwd.services.rules import DualStackState, IpVersion, Protocol, RuleApplier, Subsystem
from fwd.services.vpn import VpnOrchestrator, VpnSetupProgress

__all__ = [
    "FirewallService",
    "Hole",
    "HoleRegistry",
    "DualStackState",
    "IpVersion",
    "Protocol",
    "RuleApplier",
    "Subsystem",
    "VpnOrchestrator",
    "VpnSetupProgress",
]
