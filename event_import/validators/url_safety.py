"""SSRF guard for user-submitted URLs.

Pure string/IP parsing: no DNS lookups, no network access. Anything that
cannot be parsed is treated as unsafe.
"""

import ipaddress
import re
from typing import Optional
from urllib.parse import urlsplit

from event_import.errors import UnsafeUrlError

ALLOWED_SCHEMES = {"http", "https"}

BLOCKED_HOSTNAMES = {
    "localhost",
    "127.0.0.1",
    "::1",
    "0.0.0.0",
    "metadata.google.internal",
}

BLOCKED_NETWORKS = [
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("169.254.0.0/16"),  # Link-local, cloud metadata
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]


def _parse_ipv4_part(part: str) -> Optional[int]:
    if re.fullmatch(r"0x[0-9a-f]*", part):
        return int(part[2:] or "0", 16)
    if re.fullmatch(r"0[0-7]+", part):
        return int(part, 8)
    if re.fullmatch(r"[0-9]+", part):
        return int(part)
    return None


def parse_numeric_ipv4(hostname: str) -> Optional[ipaddress.IPv4Address]:
    """Read the inet_aton shorthand forms resolvers accept.

    "2852039166", "0xa9fea9fe", "0251.0376.0251.0376" and "169.254.43518"
    are all 169.254.169.254. Returns None for anything that is not purely
    numeric, so ordinary hostnames pass through.
    """
    parts = hostname.split(".")
    if not 1 <= len(parts) <= 4:
        return None
    values = [_parse_ipv4_part(part) for part in parts]
    if any(value is None for value in values):
        return None

    # Leading parts are single bytes; the last one fills the remaining bytes
    *head, last = values
    if any(value > 0xFF for value in head) or last >= 1 << (8 * (4 - len(head))):
        return None
    number = last
    for index, value in enumerate(head):
        number |= value << (8 * (3 - index))
    return ipaddress.IPv4Address(number)


def _is_blocked_ip(hostname: str) -> bool:
    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        ip = parse_numeric_ipv4(hostname)
        if ip is None:
            return False  # Not an IP literal

    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped:
        ip = ip.ipv4_mapped

    if ip.is_loopback or ip.is_unspecified or ip.is_link_local:
        return True
    return any(ip in network for network in BLOCKED_NETWORKS if ip.version == network.version)


def is_safe(url: str) -> bool:
    """Check a URL is not aimed at an internal, loopback or metadata target."""
    if not url or not isinstance(url, str):
        return False

    try:
        parts = urlsplit(url.strip())
        scheme = parts.scheme.lower()
        hostname = (parts.hostname or "").lower().rstrip(".")
        parts.port  # Raises ValueError on a malformed port
    except ValueError:
        return False

    if scheme not in ALLOWED_SCHEMES:
        return False
    if not hostname:
        return False

    if hostname in BLOCKED_HOSTNAMES:
        return False
    if hostname.endswith(".internal") or hostname.endswith(".localhost"):
        return False

    return not _is_blocked_ip(hostname)


def assert_safe(url: str) -> str:
    """Return the URL unchanged, or raise UnsafeUrlError."""
    if not is_safe(url):
        raise UnsafeUrlError()
    return url
