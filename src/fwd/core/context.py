"""Per-invocation state shared by the commands, the executor and the services."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from fwd.core.config import AppConfig
from fwd.core.output import Console, console, Verbosity


@dataclass
class ExecutionContext:
    """Global CLI flags of one fwd run plus its lazily loaded configuration.

    ``config_path`` of None means ``$FWD_CONFIG`` or /etc/fwd/config.yaml.
    Creating a context configures the shared console.
    """

    dry_run: bool = False
    verbosity: int = Verbosity.NORMAL
    no_color: bool = False
    config_path: Optional[Path] = None
    _config: Optional[AppConfig] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        console.configure(self.verbosity, dry_run=self.dry_run, no_color=self.no_color)

    @property
    def config(self) -> AppConfig:
        if self._config is None:
            self._config = AppConfig(config_path=self.config_path)
        return self._config

    @property
    def console(self) -> Console:
        return console

    @property
    def is_verbose(self) -> bool:
        return self.verbosity >= Verbosity.VERBOSE


def create_context(
    dry_run: bool = False,
    verbose: int = 0,
    quiet: bool = False,
    no_color: bool = False,
    config: Optional[Path] = None,
) -> ExecutionContext:
    """Map the global options to a context; --quiet wins over -v."""
    verbosity = Verbosity.QUIET if quiet else min(Verbosity.NORMAL + verbose, Verbosity.DEBUG)
    return ExecutionContext(dry_run=dry_run, verbosity=verbosity, no_color=no_color, config_path=config)
