from __future__ import annotations

"""Static rosters and runtime settings for netdiag.

Rosters (public resolvers, blacklist zones, cipher presets) are built once as
tuples of frozen dataclasses and handed to each prober. Runtime settings are
layered as: explicit arguments / CLI flags > environment (`.env` supported via
python-dotenv) > built-in defaults.

`NETDIAG_ROSTERS` may point to a JSON file replacing the resolver and/or
blacklist rosters:

    {"resolvers": [{"ip": "1.1.1.1", "name": "Cloudflare"}],
     "blacklists": [{"zone": "bl.example.org", "name": "Example", "kind": "ip"}]}
"""

import ipaddress
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from dotenv import load_dotenv

from .engine.runtime import logger

load_dotenv()


@dataclass(frozen=True)
class Resolver:
    ip: str
    name: str


@dataclass(frozen=True)
class Blacklist:
    zone: str
    name: str
    description: str = ""
    url: str = ""
    kind: str = "ip"  # "ip" or "domain"


@dataclass(frozen=True)
class CipherPreset:
    name: str
    level: str
    description: str
    ciphers: Tuple[str, ...]
    protocols: Tuple[str, ...]
    recommendation: str = ""


RESOLVERS: Tuple[Resolver, ...] = (
    Resolver("1.1.1.1", "Cloudflare"),
    Resolver("8.8.8.8", "Google"),
    Resolver("9.9.9.9", "Quad9"),
    Resolver("208.67.222.222", "OpenDNS"),
    Resolver("76.76.2.0", "ControlD"),
    Resolver("94.140.14.14", "AdGuard"),
    Resolver("185.228.168.9", "CleanBrowsing"),
    Resolver("77.88.8.8", "Yandex"),
)

BLACKLISTS: Tuple[Blacklist, ...] = (
    Blacklist("dbl.spamhaus.org", "Spamhaus DBL", "Domain blocklist", "https://www.spamhaus.org/lookup/", kind="domain"),
    Blacklist("dnsbl.sorbs.net", "SORBS", "Spam sources", "https://www.sorbs.net/lookup.shtml"),
    Blacklist("bl.spamcop.net", "SpamCop", "Spam reports", "https://www.spamcop.net/bl.shtml"),
    Blacklist("b.barracudacentral.org", "Barracuda", "Reputation system", "https://barracudacentral.org/lookups"),
    Blacklist("dnsbl-1.uceprotect.net", "UCEPROTECT L1", "Single IPs", "https://www.uceprotect.net/en/rblcheck.php"),
    Blacklist("dnsbl-2.uceprotect.net", "UCEPROTECT L2", "ISP ranges", "https://www.uceprotect.net/en/rblcheck.php"),
    Blacklist("dnsbl-3.uceprotect.net", "UCEPROTECT L3", "Countries/ASNs", "https://www.uceprotect.net/en/rblcheck.php"),
    Blacklist("psbl.surriel.com", "PSBL", "Passive spam block", "https://psbl.org/"),
    Blacklist("dnsbl.dronebl.org", "DroneBL", "Drones/zombies", "https://dronebl.org/lookup"),
    Blacklist("spam.dnsbl.sorbs.net", "SORBS Spam", "Verified spam", "https://www.sorbs.net/lookup.shtml"),
    Blacklist("dul.dnsbl.sorbs.net", "SORBS DUL", "Dynamic IPs", "https://www.sorbs.net/lookup.shtml"),
    Blacklist("bl.blocklist.de", "Blocklist.de", "Blocklist.de (abusive mail servers)", "https://www.blocklist.de/en/index.html"),
    Blacklist("bl.mailspike.net", "Mailspike", "Mailspike abuse list", "https://mailspike.org/"),
    Blacklist("all.spamrats.com", "SpamRats", "SpamRats RBL", "https://www.spamrats.com/"),
    Blacklist("multi.surbl.org", "SURBL Multi", "URI/domain lists (phishing/malware/abuse)", "https://www.surbl.org/"),
    Blacklist("dnsrbl.org", "DNSRBL", "DNS Real-time Blackhole List", "https://dnsrbl.org/"),
)

CIPHER_PRESETS: Tuple[CipherPreset, ...] = (
    CipherPreset(
        name="Modern",
        level="modern",
        description="TLS 1.3 only with AEAD ciphers",
        ciphers=("TLS_AES_128_GCM_SHA256", "TLS_AES_256_GCM_SHA384", "TLS_CHACHA20_POLY1305_SHA256"),
        protocols=("TLSv1.3",),
    ),
    CipherPreset(
        name="Intermediate",
        level="intermediate",
        description="TLS 1.2+ with secure ciphers",
        ciphers=(
            "ECDHE-ECDSA-AES128-GCM-SHA256",
            "ECDHE-RSA-AES128-GCM-SHA256",
            "ECDHE-ECDSA-AES256-GCM-SHA384",
            "ECDHE-RSA-AES256-GCM-SHA384",
        ),
        protocols=("TLSv1.2", "TLSv1.3"),
    ),
    CipherPreset(
        name="Legacy",
        level="legacy",
        description="Compatibility mode (not recommended)",
        ciphers=("ECDHE-RSA-AES128-SHA", "AES128-SHA", "AES256-SHA"),
        protocols=("TLSv1", "TLSv1.1", "TLSv1.2"),
        recommendation="Consider upgrading to more secure cipher suites",
    ),
)


@dataclass(frozen=True)
class Settings:
    dns: Optional[str] = None
    concurrency: int = 64
    dns_timeout: float = 5.0
    tls_timeout: float = 10.0
    dnsbl_timeout: float = 1.0
    axfr_timeout: float = 10.0
    resolvers: Tuple[Resolver, ...] = RESOLVERS
    blacklists: Tuple[Blacklist, ...] = BLACKLISTS
    cipher_presets: Tuple[CipherPreset, ...] = CIPHER_PRESETS


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r", name, raw)
        return default
    return value if value > 0 else default


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r", name, raw)
        return default
    return value if value > 0 else default


def _is_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def _parse_resolvers(items: Any) -> Tuple[Resolver, ...]:
    out: List[Resolver] = []
    for spec in items if isinstance(items, list) else []:
        if not isinstance(spec, dict):
            continue
        ip = str(spec.get("ip") or "").strip()
        name = str(spec.get("name") or ip).strip()
        if ip and _is_ip(ip):
            out.append(Resolver(ip, name))
    return tuple(out)


def _parse_blacklists(items: Any) -> Tuple[Blacklist, ...]:
    out: List[Blacklist] = []
    for spec in items if isinstance(items, list) else []:
        if not isinstance(spec, dict):
            continue
        zone = str(spec.get("zone") or "").strip().lower().strip(".")
        kind = str(spec.get("kind") or "ip").strip().lower()
        if not zone or kind not in ("ip", "domain"):
            continue
        out.append(
            Blacklist(
                zone=zone,
                name=str(spec.get("name") or zone).strip(),
                description=str(spec.get("description") or "").strip(),
                url=str(spec.get("url") or "").strip(),
                kind=kind,
            )
        )
    return tuple(out)


def load_rosters(path: Optional[Path] = None) -> Dict[str, tuple]:
    """Load optional roster overrides; fall back to built-in tables."""
    rosters: Dict[str, tuple] = {"resolvers": RESOLVERS, "blacklists": BLACKLISTS}
    if path is None:
        custom = (os.getenv("NETDIAG_ROSTERS") or "").strip()
        if not custom:
            return rosters
        path = Path(custom).expanduser()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Cannot read roster file %s: %s", path, exc)
        return rosters
    if not isinstance(data, dict):
        logger.warning("Roster file %s must contain a JSON object", path)
        return rosters

    resolvers = _parse_resolvers(data.get("resolvers"))
    if resolvers:
        rosters["resolvers"] = resolvers
    blacklists = _parse_blacklists(data.get("blacklists"))
    if blacklists:
        rosters["blacklists"] = blacklists
    return rosters


def load_settings(**overrides: Any) -> Settings:
    """Build effective settings; `None` overrides are ignored."""
    rosters = load_rosters()
    values: Dict[str, Any] = {
        "dns": (os.getenv("NETDIAG_DNS") or "").strip() or None,
        "concurrency": _env_int("NETDIAG_CONCURRENCY", 64),
        "dns_timeout": _env_float("NETDIAG_DNS_TIMEOUT", 5.0),
        "tls_timeout": _env_float("NETDIAG_TLS_TIMEOUT", 10.0),
        "dnsbl_timeout": _env_float("NETDIAG_DNSBL_TIMEOUT", 1.0),
        "axfr_timeout": _env_float("NETDIAG_AXFR_TIMEOUT", 10.0),
        "resolvers": rosters["resolvers"],
        "blacklists": rosters["blacklists"],
    }
    for key, value in overrides.items():
        if value is not None:
            values[key] = value
    return Settings(**values)
