from __future__ import annotations

"""Input validation shared by all probers.

Everything here runs before any network I/O and raises `ValidationError` for
malformed input.
"""

import ipaddress
import re
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from ..errors import ValidationError

DOMAIN_PATTERN = re.compile(r"^([a-zA-Z0-9_]([a-zA-Z0-9_-]{0,61}[a-zA-Z0-9_])?\.)+[a-zA-Z]{2,}$")
IPV4_PATTERN = re.compile(r"^(\d{1,3}\.){3}\d{1,3}$")
IPV6_PATTERN = re.compile(r"^([0-9a-fA-F]{0,4}:){2,7}[0-9a-fA-F]{0,4}$")
HOST_PORT_PATTERN = re.compile(r"^(.+?):(\d+)$")
HOST_LABEL_PATTERN = re.compile(r"^[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?$")
MAX_DOMAIN_LENGTH = 253
DEFAULT_TLS_PORT = 443

DOMAIN = "domain"
IPV4 = "ipv4"
IPV6 = "ipv6"


@dataclass(frozen=True)
class ProbeTarget:
    value: str
    kind: str


def require_text(value: Any, message: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(message)
    return value.strip()


def is_valid_domain(domain: str) -> bool:
    if not domain or len(domain) > MAX_DOMAIN_LENGTH:
        return False
    return bool(DOMAIN_PATTERN.match(domain))


def is_ip_address(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def is_valid_host(host: str) -> bool:
    """IP address, domain name, or a single-label name such as `localhost`."""
    return is_ip_address(host) or is_valid_domain(host) or bool(HOST_LABEL_PATTERN.match(host))


def normalize_nameserver(value: Any) -> Optional[str]:
    """Optional nameserver override: an IP address or a domain name."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    nameserver = require_text(value, "Invalid nameserver format").lower().rstrip(".")
    if not (is_ip_address(nameserver) or is_valid_domain(nameserver)):
        raise ValidationError("Invalid nameserver format")
    return nameserver


def normalize_domain(value: Any) -> str:
    """Trim, lowercase, drop a trailing dot and validate domain syntax."""
    domain = require_text(value, "Domain is required").lower().rstrip(".")
    if not is_valid_domain(domain):
        raise ValidationError("Invalid domain name format")
    return domain


def validate_port(value: Any, default: int = DEFAULT_TLS_PORT) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationError("Invalid port number")
    try:
        port = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Invalid port number") from exc
    if port < 1 or port > 65535:
        raise ValidationError("Invalid port number")
    return port


def parse_host(value: Any, port: Any = None) -> Tuple[str, int]:
    """Split `host[:port]`; an explicit `port` argument wins over the suffix."""
    text = require_text(value, "Invalid hostname provided")
    host = text
    embedded: Optional[str] = None
    if not text.startswith("[") and text.count(":") == 1:
        match = HOST_PORT_PATTERN.match(text)
        if match:
            host, embedded = match.group(1), match.group(2)
    elif text.startswith("[") and "]" in text:
        # [IPv6]:port
        host, _, rest = text[1:].partition("]")
        if rest.startswith(":") and rest[1:].isdigit():
            embedded = rest[1:]
    host = host.strip().lower()
    if not host or not is_valid_host(host):
        raise ValidationError("Invalid hostname provided")
    return host, validate_port(port if port is not None else embedded)


def classify_target(value: Any) -> ProbeTarget:
    """Decide whether `value` is an IPv4 address, an IPv6 address or a domain."""
    text = require_text(value, "Target IP or domain is required").lower()
    if IPV4_PATTERN.match(text):
        try:
            ipaddress.IPv4Address(text)
        except ValueError as exc:
            raise ValidationError(f"Invalid IPv4 address: {text}") from exc
        return ProbeTarget(text, IPV4)
    if IPV6_PATTERN.match(text):
        try:
            ipaddress.IPv6Address(text)
        except ValueError as exc:
            raise ValidationError(f"Invalid IPv6 address: {text}") from exc
        return ProbeTarget(text, IPV6)
    domain = text.rstrip(".")
    if not is_valid_domain(domain):
        raise ValidationError("Invalid domain name format")
    return ProbeTarget(domain, DOMAIN)
