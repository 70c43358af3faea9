"""Firewall Daemon CLI - Inbound hole punching and VPN traffic steering.

Drives iptables, ip6tables and ip(8) as an unprivileged, capability-scoped
process to open firewall holes and route selected users through a VPN.
"""

__version__ = "1.0.0"
__author__ = "Firewall Daemon Team"
