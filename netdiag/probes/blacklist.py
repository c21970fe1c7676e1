from __future__ import annotations

"""DNS blacklist (RBL/DBL) checker.

An IP is looked up in every IP zone as `<reversed ip>.<zone>`; a domain is
looked up in the domain zones as `<domain>.<zone>` and each of its addresses
is then checked like a bare IP. An A answer means listed, NXDOMAIN/NODATA
means clean.
"""

import ipaddress
from typing import Any, Dict, List, Optional, Sequence, Tuple

import dns.exception

from ..config import Blacklist, Settings, load_settings
from ..engine.dns_client import default_resolver_ip, query_record
from ..engine.runtime import AMBIGUOUS_ERROR, Endpoint, ProbeOutcome, TIMEOUT, in_executor, io_pool, logger, now_iso, run_bounded
from ..errors import DNSQueryError, DomainNotFound, NoData, QueryTimeout, ResolutionError
from .validation import DOMAIN, ProbeTarget, classify_target

ERROR_RANGE_PREFIX = "127.255."
REFUSAL_PHRASES = (
    "open resolver",
    "query refused",
    "not supported",
    "check.spamhaus.org",
    "blocked - see",
    "access denied",
    "please use",
)
BLOCKED_MESSAGE = "RBL query blocked or unsupported"


def reverse_ipv4(ip: str) -> str:
    return ".".join(reversed(ip.split(".")))


def reverse_ipv6(ip: str) -> str:
    nibbles = ipaddress.IPv6Address(ip).exploded.replace(":", "")
    return ".".join(reversed(nibbles))


def reverse_ip(ip: str) -> str:
    if ipaddress.ip_address(ip).version == 4:
        return reverse_ipv4(ip)
    return reverse_ipv6(ip)


def classify_listing(addresses: Sequence[str], reason: Optional[str] = None) -> Tuple[bool, Optional[str]]:
    """Return `(listed, error)` for a positive blacklist answer.

    Answers in 127.255.0.0/16 and TXT reasons that read like a refusal mean
    the zone declined to answer; those are errors, never listings.
    """
    response = addresses[0] if addresses else ""
    text = (reason or "").lower()
    if response.startswith(ERROR_RANGE_PREFIX) or any(phrase in text for phrase in REFUSAL_PHRASES):
        return False, reason or BLOCKED_MESSAGE
    return True, None


def summarize(results: List[Dict[str, Any]]) -> Dict[str, int]:
    return {
        "totalChecked": len(results),
        "listedCount": sum(1 for r in results if r.get("listed")),
        "cleanCount": sum(1 for r in results if not r.get("listed") and not r.get("error")),
        "errorCount": sum(1 for r in results if r.get("error")),
    }


class BlacklistCheck:
    def __init__(self, target: Any, settings: Optional[Settings] = None):
        self.target: ProbeTarget = classify_target(target)
        self.settings = settings or load_settings()
        self.resolver_ip = self.settings.dns or default_resolver_ip()
        self.zones: Sequence[Blacklist] = self.settings.blacklists

    def _zones(self, kind: str) -> List[Blacklist]:
        return [z for z in self.zones if z.kind == kind]

    def _resolve_target(self) -> List[str]:
        """A and AAAA addresses of a domain target; at least one is required."""
        timeout = self.settings.dns_timeout
        ips: List[str] = []
        first_error: Optional[Exception] = None
        for rdtype in ("A", "AAAA"):
            try:
                ips.extend(query_record(self.resolver_ip, self.target.value, rdtype, timeout))
            except (DNSQueryError, OSError) as exc:
                first_error = first_error or exc
        if ips:
            return ips

        domain = self.target.value
        if isinstance(first_error, DomainNotFound):
            message = f'Domain "{domain}" does not exist or could not be found'
        elif isinstance(first_error, NoData):
            message = f'Domain "{domain}" exists but has no A or AAAA records'
        elif isinstance(first_error, QueryTimeout):
            message = f'DNS lookup timed out for "{domain}"'
        else:
            message = f'Could not resolve domain "{domain}" to any IP addresses'
        raise ResolutionError(f"Failed to resolve domain: {message}")

    def _lookup(self, query: str) -> Any:
        """A answer plus optional TXT reason; a blocked answer is an ambiguous outcome."""
        timeout = self.settings.dnsbl_timeout
        addresses = query_record(self.resolver_ip, query, "A", timeout)
        reason: Optional[str] = None
        try:
            reason = " ".join(query_record(self.resolver_ip, query, "TXT", timeout)) or None
        except (DNSQueryError, OSError, dns.exception.DNSException) as exc:
            logger.debug("No TXT reason for %s: %s", query, exc)
        listed, error = classify_listing(addresses, reason)
        if not listed:
            return ProbeOutcome.ambiguous_error(error or BLOCKED_MESSAGE)
        return {"addresses": addresses, "reason": reason}

    def _endpoints(self, ips: List[str]) -> List[Tuple[Endpoint, Blacklist]]:
        pairs: List[Tuple[Endpoint, Blacklist]] = []
        if self.target.kind == DOMAIN:
            for zone in self._zones("domain"):
                query = f"{self.target.value}.{zone.zone}"
                pairs.append((Endpoint(zone.zone, zone.name, query), zone))
            for ip in ips:
                for zone in self._zones("ip"):
                    query = f"{reverse_ip(ip)}.{zone.zone}"
                    pairs.append((Endpoint(zone.zone, f"{zone.name} ({ip})", query), zone))
        else:
            for zone in self._zones("ip"):
                query = f"{reverse_ip(self.target.value)}.{zone.zone}"
                pairs.append((Endpoint(zone.zone, zone.name, query), zone))
        return pairs

    @staticmethod
    def _result(endpoint: Endpoint, zone: Blacklist, outcome: ProbeOutcome) -> Dict[str, Any]:
        result: Dict[str, Any] = {"rbl": endpoint.label, "listed": False, "responseTime": outcome.elapsed_ms}
        if outcome.kind == AMBIGUOUS_ERROR:
            result["error"] = outcome.detail
            return result
        if outcome.ok:
            addresses = outcome.value["addresses"]
            reason = outcome.value["reason"]
            result.update(
                {
                    "listed": True,
                    "response": addresses[0],
                    "reason": reason,
                    "url": zone.url,
                    "description": zone.description,
                }
            )
            return result

        if isinstance(outcome.error, (DomainNotFound, NoData)):
            return result
        if outcome.kind == TIMEOUT or isinstance(outcome.error, QueryTimeout):
            result["error"] = "Query timeout"
        elif isinstance(outcome.error, DNSQueryError):
            result["error"] = outcome.error.label
        else:
            result["error"] = outcome.detail or "Lookup failed"
        logger.debug("Blacklist lookup %s failed: %s", endpoint.query, result["error"])
        return result

    async def run(self) -> Dict[str, Any]:
        with io_pool(self.settings.concurrency) as executor:
            ips: List[str] = []
            if self.target.kind == DOMAIN:
                ips = await in_executor(self._resolve_target, executor=executor)
            pairs = self._endpoints(ips)

            def make(endpoint: Endpoint):
                async def op() -> Dict[str, Any]:
                    return await in_executor(self._lookup, endpoint.query, executor=executor)

                return op

            # A lookup plus the optional TXT lookup.
            budget_ms = self.settings.dnsbl_timeout * 2 * 1000.0
            outcomes = await run_bounded([make(e) for e, _ in pairs], budget_ms, self.settings.concurrency)

        results = [self._result(e, z, o) for (e, z), o in zip(pairs, outcomes)]
        summary = summarize(results)
        if summary["listedCount"]:
            logger.warning("%s is listed on %d blacklist(s)", self.target.value, summary["listedCount"])
        response: Dict[str, Any] = {
            "target": self.target.value,
            "targetType": self.target.kind,
            "results": results,
            "summary": summary,
            "timestamp": now_iso(),
        }
        if self.target.kind == DOMAIN:
            response["resolvedIPs"] = ips
        return response
