"""Typed operation outcomes.

Hole and VPN operations report an Outcome instead of a bare bool so callers
and tests can tell validation problems, tool failures and tracking errors
apart. An Outcome is truthy only when it succeeded, which keeps the plain
boolean contract available.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class OutcomeKind(str, Enum):
    """Classification of an operation result."""
    OK = "ok"
    VALIDATION_ERROR = "validation_error"
    EXTERNAL_FAILURE = "external_failure"
    STATE_ERROR = "state_error"


@dataclass(frozen=True)
class Outcome:
    """Result of a hole or VPN operation."""
    kind: OutcomeKind
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.OK

    def __bool__(self) -> bool:
        return self.ok

    def __str__(self) -> str:
        if self.message:
            return f"{self.kind.value}: {self.message}"
        return self.kind.value

    @classmethod
    def success(cls, message: Optional[str] = None) -> "Outcome":
        return cls(OutcomeKind.OK, message)

    @classmethod
    def validation(cls, message: str) -> "Outcome":
        return cls(OutcomeKind.VALIDATION_ERROR, message)

    @classmethod
    def external(cls, message: str) -> "Outcome":
        return cls(OutcomeKind.EXTERNAL_FAILURE, message)

    @classmethod
    def state(cls, message: str) -> "Outcome":
        return cls(OutcomeKind.STATE_ERROR, message)
