"""Device script generation for subscriber automation.

Pure functions that build RouterOS scheduler scripts and artifact values
from primitive inputs. Every value interpolated into script text is
validated first and escaped for the RouterOS scripting dialect, so a
malformed address can never produce a script that fails only when the
device runs it.
"""

import ipaddress
import re

from routeros_gateway.domain.exceptions import ScriptValidationError

DEFAULT_AUTHORIZED_LIST = "authorized-dhcp-users"
DEFAULT_PENDING_LIST = "pending-dhcp-users"
DEFAULT_PENDING_TIMEOUT = "1d"
DEFAULT_SCHEDULER_PREFIX = "deactivate-dhcp-"

_MAC_PATTERN = re.compile(r"^[0-9A-Fa-f]{2}(:[0-9A-Fa-f]{2}){5}$")
_LIST_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
_DURATION_PATTERN = re.compile(r"^(\d+w)?(\d+d)?(\d+h)?(\d+m)?(\d+s)?$")

# Characters with special meaning inside a double-quoted RouterOS string
_ESCAPES = {"\\": "\\\\", '"': '\\"', "$": "\\$"}


def quote_routeros_string(value: str) -> str:
    """Quote a value as a RouterOS double-quoted string.

    Example:
        >>> quote_routeros_string('say "hi" to $user')
        '"say \\\\"hi\\\\" to \\\\$user"'
    """
    return '"' + "".join(_ESCAPES.get(ch, ch) for ch in value) + '"'


def validate_ipv4_address(address: str) -> str:
    """Return the address if it is a dotted-quad IPv4 address.

    Raises:
        ScriptValidationError: If the address is not valid IPv4
    """
    try:
        return str(ipaddress.IPv4Address(address))
    except (ipaddress.AddressValueError, ValueError) as e:
        raise ScriptValidationError(
            f"Invalid subscriber address: '{address}'",
            context={"field": "address", "value": address},
        ) from e


def validate_mac_address(mac_address: str | None) -> str:
    """Return the upper-cased hardware address, or "" when none is given.

    Raises:
        ScriptValidationError: If the value is not XX:XX:XX:XX:XX:XX
    """
    if not mac_address:
        return ""
    if not _MAC_PATTERN.match(mac_address):
        raise ScriptValidationError(
            f"Invalid hardware address: '{mac_address}'",
            context={"field": "mac_address", "value": mac_address},
        )
    return mac_address.upper()


def _validate_list_name(field: str, value: str) -> str:
    if not _LIST_NAME_PATTERN.match(value):
        raise ScriptValidationError(
            f"Invalid address-list name: '{value}'", context={"field": field, "value": value}
        )
    return value


def scheduler_job_name(address: str, prefix: str = DEFAULT_SCHEDULER_PREFIX) -> str:
    """Deterministic scheduler job name for a subscriber address.

    Example:
        >>> scheduler_job_name("10.0.0.5")
        'deactivate-dhcp-10-0-0-5'
    """
    return prefix + re.sub(r"[^A-Za-z0-9]", "-", address)


def connection_match_pattern(address: str) -> str:
    """Regex matching connection src-address values of one host.

    Connection src-address carries the port ("10.0.0.5:51234"), so the
    pattern is anchored on both sides of the address.

    Example:
        >>> connection_match_pattern("10.0.0.5")
        '^10[.]0[.]0[.]5:'
    """
    return "^" + address.replace(".", "[.]") + ":"


def build_deactivation_script(
    address: str,
    mac_address: str | None,
    authorized_list: str = DEFAULT_AUTHORIZED_LIST,
    pending_list: str = DEFAULT_PENDING_LIST,
    pending_timeout: str = DEFAULT_PENDING_TIMEOUT,
) -> str:
    """Build the on-event script of a subscriber's deactivation job.

    The script, in order: removes the address from the authorized list,
    drops live connections from the address, and, if a DHCP lease still
    exists for it, re-adds the address to the pending list with the given
    timeout and the hardware address as comment.

    Args:
        address: Subscriber IPv4 address
        mac_address: Subscriber hardware address (may be None)
        authorized_list: Address-list of paying subscribers
        pending_list: Address-list of expired subscribers still holding a lease
        pending_timeout: RouterOS duration of the pending entry

    Returns:
        Single-line RouterOS script

    Raises:
        ScriptValidationError: If any value cannot be embedded safely
    """
    address = validate_ipv4_address(address)
    mac = validate_mac_address(mac_address)
    _validate_list_name("authorized_list", authorized_list)
    _validate_list_name("pending_list", pending_list)
    if not pending_timeout or not _DURATION_PATTERN.match(pending_timeout):
        raise ScriptValidationError(
            f"Invalid pending timeout: '{pending_timeout}'",
            context={"field": "pending_timeout", "value": pending_timeout},
        )

    quoted_address = quote_routeros_string(address)
    return (
        "/ip firewall address-list remove [find where address="
        f"{quoted_address} and list={quote_routeros_string(authorized_list)}]; "
        "/ip firewall connection remove [find where src-address~"
        f"{quote_routeros_string(connection_match_pattern(address))}]; "
        f":local leaseId [/ip dhcp-server lease find where address={quoted_address}]; "
        ":if ([:len $leaseId] > 0) do={ "
        f"/ip firewall address-list add address={quoted_address} "
        f"list={quote_routeros_string(pending_list)} timeout={pending_timeout} "
        f"comment={quote_routeros_string(mac)}; }}"
    )


def format_rate_limit(speed_limit: float) -> str:
    """Symmetric simple-queue max-limit for a speed in Mbit/s.

    Example:
        >>> format_rate_limit(10)
        '10M/10M'
        >>> format_rate_limit(2.5)
        '2.5M/2.5M'
    """
    if speed_limit <= 0:
        raise ScriptValidationError(
            f"Speed limit must be positive, got {speed_limit}",
            context={"field": "speed_limit", "value": speed_limit},
        )
    value = int(speed_limit) if float(speed_limit).is_integer() else speed_limit
    return f"{value}M/{value}M"
