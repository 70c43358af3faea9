"""Configuration management using Pydantic.

Provides:
- Typed configuration models with validation
- YAML file loading with defaults
- Environment variable overrides
- Configuration initialization and display
"""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from fwd.core.exceptions import ConfigurationError


# Default configuration paths
DEFAULT_CONFIG_PATH = Path("/etc/fwd/config.yaml")
DEFAULT_AUDIT_LOG_PATH = Path("/var/log/fwd/audit.log")

# Tool locations per platform: (iptables, ip6tables, ip)
PLATFORM_TOOL_PATHS: dict[str, tuple[str, str, str]] = {
    "linux": ("/sbin/iptables", "/sbin/ip6tables", "/bin/ip"),
    "android": ("/system/bin/iptables", "/system/bin/ip6tables", "/system/bin/ip"),
}

# Value carried by packets of steered users, and the table they route through
DEFAULT_USER_TRAFFIC_MARK = "1"
DEFAULT_USER_TRAFFIC_TABLE = "1"


class FirewallConfig(BaseModel):
    """Packet filter and routing tool configuration."""

    platform: str = "linux"

    # None means "use the platform default"
    iptables_path: Optional[str] = None
    ip6tables_path: Optional[str] = None
    ip_path: Optional[str] = None

    # Commands run as this user with only the capabilities they need.
    # None runs them as the calling user.
    unprivileged_user: Optional[str] = "nobody"

    # Hosts where ip6tables is always present can insist on it from the start
    ipv6_always_enabled: bool = False

    user_traffic_mark: str = DEFAULT_USER_TRAFFIC_MARK
    user_traffic_table: str = DEFAULT_USER_TRAFFIC_TABLE

    command_timeout: Optional[int] = None

    @field_validator("platform")
    @classmethod
    def validate_platform(cls, v: str) -> str:
        if v not in PLATFORM_TOOL_PATHS:
            raise ValueError(f"Platform must be one of: {sorted(PLATFORM_TOOL_PATHS)}")
        return v

    @field_validator("user_traffic_mark", "user_traffic_table")
    @classmethod
    def validate_numeric(cls, v: str) -> str:
        if not v.isdigit():
            raise ValueError("Mark and table id must be non-negative integers")
        return v

    @field_validator("command_timeout")
    @classmethod
    def validate_timeout(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError("command_timeout must be positive")
        return v

    @property
    def resolved_iptables_path(self) -> str:
        return self.iptables_path or PLATFORM_TOOL_PATHS[self.platform][0]

    @property
    def resolved_ip6tables_path(self) -> str:
        return self.ip6tables_path or PLATFORM_TOOL_PATHS[self.platform][1]

    @property
    def resolved_ip_path(self) -> str:
        return self.ip_path or PLATFORM_TOOL_PATHS[self.platform][2]

    @property
    def drops_privileges(self) -> bool:
        """Android runs the tools with capabilities but keeps the caller's uid."""
        return self.platform != "android" and self.unprivileged_user is not None


class AuditConfig(BaseModel):
    """Audit trail configuration."""

    enabled: bool = True
    log_path: Path = DEFAULT_AUDIT_LOG_PATH


class MachineConfig(BaseModel):
    """Root configuration model, loaded from /etc/fwd/config.yaml."""

    firewall: FirewallConfig = Field(default_factory=FirewallConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)

    @classmethod
    def load(cls, path: Path) -> "MachineConfig":
        """Load configuration from YAML file.

        Args:
            path: Path to configuration file

        Returns:
            Loaded configuration

        Raises:
            ConfigurationError: If file not found or invalid
        """
        if not path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {path}",
                hint="Create it with: fwd config init",
            )

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in configuration file: {path}",
                details=[str(e)],
            ) from e
        except PermissionError:
            raise ConfigurationError(
                f"Cannot read configuration file: {path}",
                hint="Check file permissions or run with sudo",
            )

        try:
            return cls(**data)
        except Exception as e:
            raise ConfigurationError(
                f"Invalid configuration: {e}",
                details=[str(e)],
            ) from e

    @classmethod
    def load_or_default(cls, path: Optional[Path] = None) -> "MachineConfig":
        """Load configuration, falling back to defaults if file doesn't exist."""
        if path is None:
            path = DEFAULT_CONFIG_PATH

        if path.exists():
            return cls.load(path)
        return cls()

    def to_yaml(self) -> str:
        """Convert configuration to YAML string."""
        data = self.model_dump(mode="json")
        return yaml.dump(data, default_flow_style=False, sort_keys=False)


class EnvironmentOverrides(BaseSettings):
    """Settings taken from environment variables."""

    fwd_config: Optional[Path] = Field(None, alias="FWD_CONFIG")
    fwd_audit_log: Optional[Path] = Field(None, alias="FWD_AUDIT_LOG")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


class AppConfig:
    """Application configuration combining config file and environment.

    This is the main interface for accessing configuration throughout the app.
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        config: Optional[MachineConfig] = None,
    ) -> None:
        """Initialize application configuration.

        Args:
            config_path: Path to config file (FWD_CONFIG or default if None)
            config: Pre-loaded config (skips file loading if provided)
        """
        self._env = EnvironmentOverrides()
        self.config_path = config_path or self._env.fwd_config or DEFAULT_CONFIG_PATH
        self._config = config or MachineConfig.load_or_default(self.config_path)

    @property
    def config(self) -> MachineConfig:
        """Get the machine configuration."""
        return self._config

    @property
    def firewall(self) -> FirewallConfig:
        """Shortcut to firewall config."""
        return self._config.firewall

    @property
    def audit(self) -> AuditConfig:
        """Shortcut to audit config."""
        return self._config.audit

    @property
    def audit_log_path(self) -> Path:
        """Audit log location, FWD_AUDIT_LOG taking precedence."""
        return self._env.fwd_audit_log or self._config.audit.log_path


def get_example_config() -> str:
    """Generate example configuration file content."""
    return """# Firewall Daemon Configuration

firewall:
  platform: linux             # linux, android
  # Tool paths default to the platform's locations
  # iptables_path: /sbin/iptables
  # ip6tables_path: /sbin/ip6tables
  # ip_path: /bin/ip
  unprivileged_user: nobody   # commands drop to this user with NET_ADMIN/NET_RAW
  ipv6_always_enabled: false  # true: ip6tables failures are never tolerated
  user_traffic_mark: "1"
  user_traffic_table: "1"
  # command_timeout: 30

audit:
  enabled: true
  log_path: /var/log/fwd/audit.log
"""


def init_config(path: Path, force: bool = False) -> None:
    """Initialize a new configuration file.

    Args:
        path: Path to create config file
        force: Overwrite if exists

    Raises:
        ConfigurationError: If file exists and force is False
    """
    if path.exists() and not force:
        raise ConfigurationError(
            f"Configuration file already exists: {path}",
            hint="Use --force to overwrite",
        )

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(get_example_config())
    os.chmod(path, 0o644)
