"""Core framework components for the Firewall Daemon CLI."""

from fwd.core.exceptions import (
    FwdError,
    ConfigurationError,
    ValidationError,
    ExecutionError,
    FirewallError,
    TeardownError,
)

from fwd.core.context import ExecutionContext, create_context
from fwd.core.output import console, Console, Verbosity
from fwd.core.config import AppConfig, MachineConfig, FirewallConfig
from fwd.core.result import Outcome, OutcomeKind
from fwd.core.audit import AuditLogger, AuditEvent, AuditEventType, AuditResult
from fwd.core.executor import CommandExecutor, CommandResult, Capability, NETFILTER_CAPABILITIES

__all__ = [
    # Exceptions
    "FwdError",
    "ConfigurationError",
    "ValidationError",
    "ExecutionError",
    "FirewallError",
    "TeardownError",
    # Context
    "ExecutionContext",
    "create_context",
    # Output
    "console",
    "Console",
    "Verbosity",
    # Config
    "AppConfig",
    "MachineConfig",
    "FirewallConfig",
    # Results
    "Outcome",
    "OutcomeKind",
    # Audit
    "AuditLogger",
    "AuditEvent",
    "AuditEventType",
    "AuditResult",
    # Executor
    "CommandExecutor",
    "CommandResult",
    "Capability",
    "NETFILTER_CAPABILITIES",
]
