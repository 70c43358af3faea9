"""Audit trail of firewall changes.

Every hole punched, every plug-all on exit and every VPN setup or teardown
is appended to a JSON-lines file, one object per line. Writers take an
exclusive flock on the file, and the file is rotated to numbered backups
(``audit.log.1``, ``audit.log.2``, ...) once it outgrows ``max_bytes``.
"""

import fcntl
import json
import os
import uuid
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional, Sequence

from fwd.core.config import DEFAULT_AUDIT_LOG_PATH
from fwd.core.output import console


DEFAULT_MAX_BYTES = 10 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 5
LOG_FILE_MODE = 0o640


class AuditEventType(str, Enum):
    HOLE_PUNCH = "hole.punch"
    HOLE_PLUG_ALL = "hole.plug_all"
    VPN_SETUP = "vpn.setup"
    VPN_TEARDOWN = "vpn.teardown"


class AuditResult(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    DRY_RUN = "dry_run"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class AuditEvent:
    """One firewall change as written to the audit log.

    Hole events carry ``protocol``, ``port`` and ``interface``. A failed
    plug-all lists the holes left open in ``remaining``. VPN events carry
    ``interface`` and ``usernames``.
    """

    event_type: AuditEventType
    result: AuditResult
    interface: str = ""
    protocol: Optional[str] = None
    port: Optional[int] = None
    usernames: list[str] = field(default_factory=list)
    remaining: list[str] = field(default_factory=list)
    error: Optional[str] = None
    uid: int = field(default_factory=os.getuid)
    timestamp: str = field(default_factory=_now)
    correlation_id: Optional[str] = None

    def to_json(self) -> str:
        record = asdict(self)
        record["event_type"] = self.event_type.value
        record["result"] = self.result.value
        return json.dumps(record, sort_keys=True)


class AuditLogger:
    """Appends AuditEvents to a JSON-lines file."""

    def __init__(
        self,
        log_path: Optional[Path] = None,
        enabled: bool = True,
        max_bytes: int = DEFAULT_MAX_BYTES,
        backup_count: int = DEFAULT_BACKUP_COUNT,
    ) -> None:
        self.log_path = Path(log_path or DEFAULT_AUDIT_LOG_PATH)
        self.enabled = enabled
        self.max_bytes = max_bytes
        self.backup_count = max(1, backup_count)
        self._correlation_id: Optional[str] = None

    @contextmanager
    def correlation(self, operation: str) -> Iterator[str]:
        """Tag every event logged inside the block with one id."""
        outer = self._correlation_id
        self._correlation_id = f"{operation}-{uuid.uuid4().hex[:12]}"
        try:
            yield self._correlation_id
        finally:
            self._correlation_id = outer

    def log(self, event: AuditEvent) -> None:
        if not self.enabled:
            return
        event.correlation_id = self._correlation_id
        try:
            self._append(event.to_json())
            if self.log_path.stat().st_size > self.max_bytes:
                self._rotate()
        except OSError as e:
            # Audit failures never fail the command
            console.warn(f"Could not write audit log {self.log_path}: {e}")

    def _append(self, line: str) -> None:
        self.log_path.parent.mkdir(mode=0o750, parents=True, exist_ok=True)
        fd = os.open(self.log_path, os.O_WRONLY | os.O_APPEND | os.O_CREAT, LOG_FILE_MODE)
        with os.fdopen(fd, "a") as f:
            fcntl.flock(f, fcntl.LOCK_EX)
            f.write(line + "\n")
            f.flush()
            os.fsync(f.fileno())

    def _backup_path(self, index: int) -> Path:
        return self.log_path.with_name(f"{self.log_path.name}.{index}")

    def _rotate(self) -> None:
        # .N-1 -> .N, ..., .1 -> .2, then the live file -> .1
        for index in range(self.backup_count - 1, 0, -1):
            older = self._backup_path(index)
            if older.exists():
                older.replace(self._backup_path(index + 1))
        self.log_path.replace(self._backup_path(1))
        self.log_path.touch(mode=LOG_FILE_MODE)

    # Events emitted by the commands

    def hole_punched(
        self,
        protocol: str,
        port: int,
        interface: str,
        result: AuditResult,
        error: Optional[str] = None,
    ) -> None:
        self.log(AuditEvent(
            AuditEventType.HOLE_PUNCH,
            result,
            interface=interface,
            protocol=protocol,
            port=port,
            error=error,
        ))

    def holes_plugged(
        self,
        result: AuditResult,
        remaining: Sequence[str] = (),
        error: Optional[str] = None,
    ) -> None:
        self.log(AuditEvent(
            AuditEventType.HOLE_PLUG_ALL,
            result,
            remaining=list(remaining),
            error=error,
        ))

    def vpn_changed(
        self,
        add: bool,
        usernames: Sequence[str],
        interface: str,
        result: AuditResult,
        error: Optional[str] = None,
    ) -> None:
        event_type = AuditEventType.VPN_SETUP if add else AuditEventType.VPN_TEARDOWN
        self.log(AuditEvent(
            event_type,
            result,
            interface=interface,
            usernames=list(usernames),
            error=error,
        ))
