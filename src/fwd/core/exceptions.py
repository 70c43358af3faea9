"""Custom exceptions for the Firewall Daemon CLI.

All exceptions provide:
- Clear error messages
- Optional hints for resolution
- Optional details for debugging
- Exit codes for proper shell integration
"""

from typing import Optional


class FwdError(Exception):
    """Base exception for all fwd errors.

    Attributes:
        message: Human-readable error description
        hint: Suggested action to resolve the error
        details: Additional context for debugging
        exit_code: Shell exit code (1-127)
    """

    exit_code: int = 1

    def __init__(
        self,
        message: str,
        *,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or []

    def __str__(self) -> str:
        return self.message


class ConfigurationError(FwdError):
    """Configuration file or settings errors.

    Raised when:
    - Config file unreadable
    - Invalid YAML syntax
    - Invalid configuration values
    """
    exit_code = 2


class ValidationError(FwdError):
    """Input validation errors.

    Raised when:
    - Port is zero or out of range
    - Interface name is malformed
    - Username is malformed
    """
    exit_code = 3


class ExecutionError(FwdError):
    """Command execution failures.

    Raised when:
    - Command returns non-zero exit code
    - Command cannot be started
    - Command times out
    """
    exit_code = 5

    def __init__(
        self,
        message: str,
        *,
        command: Optional[str] = None,
        return_code: Optional[int] = None,
        stderr: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        if not details:
            details = []
        if return_code is not None:
            details.append(f"Exit code: {return_code}")
        if stderr:
            details.append(f"Error output: {stderr}")
        super().__init__(message, hint=hint, details=details)
        self.command = command
        self.return_code = return_code
        self.stderr = stderr


class FirewallError(FwdError):
    """Firewall operation failed.

    Raised when:
    - A hole could not be punched or plugged
    - VPN setup or teardown failed
    """
    exit_code = 15

    def __init__(
        self,
        message: str,
        *,
        rule: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message, hint=hint, details=details)
        self.rule = rule


class TeardownError(FwdError):
    """Holes are still open after a full teardown.

    This is fatal: a process exiting while it still owns open holes leaves
    the host exposed with nobody tracking the rules.
    """
    exit_code = 20

    def __init__(
        self,
        message: str,
        *,
        remaining: Optional[list[str]] = None,
        hint: Optional[str] = None,
    ) -> None:
        self.remaining = remaining or []
        super().__init__(
            message,
            hint=hint or "Inspect the INPUT chain and remove the listed rules by hand",
            details=[f"Still open: {hole}" for hole in self.remaining],
        )
