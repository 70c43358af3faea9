"""Input validation utilities.

Provides validation for:
- TCP/UDP port numbers
- Network interface names
- Local user names passed to the iptables owner match

All validators return the validated value or raise ValidationError.
"""

import re

from fwd.core.exceptions import ValidationError


MIN_PORT = 1
MAX_PORT = 65535

# Interface names must be shorter than IFNAMSIZ (16 in current kernels).
# See netdevice(7).
INTERFACE_NAME_SIZE = 16

# Letters, digits, underscores, periods and hyphens, not starting with a
# hyphen. A trailing '$' is allowed for Samba machine accounts.
USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_.][A-Za-z0-9_.-]*\$?$")
MAX_USERNAME_LENGTH = 32


def validate_port(value: int) -> int:
    """Validate a port number.

    Args:
        value: Port number to validate

    Returns:
        The validated port number

    Raises:
        ValidationError: If port is not an integer, or is zero or out of range
    """
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(
            f"Invalid port number: {value!r}",
            hint="Port must be an integer",
        )
    if not MIN_PORT <= value <= MAX_PORT:
        raise ValidationError(
            f"Invalid port number: {value}",
            hint=f"Port must be between {MIN_PORT} and {MAX_PORT}",
        )
    return value


def is_valid_interface_name(name: str) -> bool:
    """Check an interface name without raising.

    The empty string is accepted and means "any interface".
    """
    if len(name) >= INTERFACE_NAME_SIZE:
        return False
    if name.startswith(("-", ".")) or name.endswith(("-", ".")):
        return False
    # str.isalnum() accepts non-ASCII letters, the kernel does not
    return all((c.isascii() and c.isalnum()) or c in "-." for c in name)


def validate_interface_name(name: str, *, allow_empty: bool = True) -> str:
    """Validate a network interface name.

    Rules:
    - Shorter than 16 characters
    - Only letters, digits, hyphens and periods
    - Must not start or end with a hyphen or period

    Args:
        name: Interface name to validate
        allow_empty: Accept "" (meaning any interface)

    Returns:
        The validated interface name

    Raises:
        ValidationError: If the name is malformed
    """
    if not name and not allow_empty:
        raise ValidationError(
            "Interface name cannot be empty",
            hint="Provide an interface such as 'tun0' or 'eth0'",
        )

    if not is_valid_interface_name(name):
        raise ValidationError(
            f"Invalid interface name: '{name}'",
            hint=(
                f"Use fewer than {INTERFACE_NAME_SIZE} letters, digits, "
                "hyphens or periods, not starting or ending with '-' or '.'"
            ),
        )
    return name


def validate_username(name: str) -> str:
    """Validate a user name (or numeric uid) for an owner match.

    Args:
        name: User name or uid

    Returns:
        The validated user name

    Raises:
        ValidationError: If the name is malformed
    """
    if not name or len(name) > MAX_USERNAME_LENGTH or not USERNAME_PATTERN.fullmatch(name):
        raise ValidationError(
            f"Invalid user name: '{name}'",
            hint=(
                f"Use at most {MAX_USERNAME_LENGTH} letters, digits, '_', '.' or '-' "
                "(not starting with '-'), or a numeric uid"
            ),
        )
    return name
