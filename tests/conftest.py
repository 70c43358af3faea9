"""Shared fixtures for fwd tests."""

from typing import Callable
from unittest.mock import Mock

import pytest

from fwd.core.config import AppConfig, FirewallConfig, MachineConfig


IPTABLES = "/sbin/iptables"
IP6TABLES = "/sbin/ip6tables"
IP = "/bin/ip"


def make_app_config(**firewall: object) -> AppConfig:
    """AppConfig built in memory, never touching /etc/fwd."""
    return AppConfig(config=MachineConfig(firewall=FirewallConfig(**firewall)))


def make_executor(fail: Callable[[list[str]], bool] = lambda argv: False) -> Mock:
    """Executor double that records every argv and fails the matching ones."""
    executor = Mock()
    executor.commands = []

    def run_status(command, capabilities=None):
        executor.commands.append(list(command))
        return 1 if fail(command) else 0

    executor.run_status.side_effect = run_status
    return executor


@pytest.fixture
def mock_ctx():
    """Create a mock execution context with default configuration."""
    ctx = Mock()
    ctx.dry_run = False
    ctx.console = Mock()
    ctx.config = make_app_config()
    return ctx
