from __future__ import annotations

"""Zone-transfer (AXFR) vulnerability prober.

Every authoritative nameserver of a domain (or a single nameserver given by
the caller) is asked for a full zone transfer. A server is vulnerable when
the transcript holds at least one zone record.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ..config import Settings, load_settings
from ..engine.dns_client import default_resolver_ip, query_record, resolve_addresses, zone_transfer
from ..engine.runtime import REFUSED as OUTCOME_REFUSED
from ..engine.runtime import (
    ProbeOutcome,
    TIMEOUT,
    in_executor,
    io_pool,
    logger,
    now_iso,
    run_bounded,
)
from ..errors import DNSQueryError, DomainNotFound, NoData, QueryTimeout, ResolutionError
from .validation import is_ip_address, normalize_domain, normalize_nameserver

MAX_NAMESERVERS = 10
MAX_RECORDS_DISPLAY = 50

RECORD_LINE = re.compile(r"^\S+\s+\d+\s+IN\s+\w+\s+")
FAILURE_MARKERS = ("failed",)
TIMEOUT_MARKERS = ("connection timed out", "no servers could be reached")

VULNERABLE = "vulnerable"
REFUSED = "refused"
TIMED_OUT = "timeout"

REFUSED_MESSAGE = "Transfer refused (secure)"
TIMEOUT_MESSAGE = "Connection timeout"


@dataclass(frozen=True)
class TransferVerdict:
    status: str
    records: Tuple[str, ...] = ()

    @property
    def vulnerable(self) -> bool:
        return self.status == VULNERABLE


def classify_zone_transfer(text: str) -> TransferVerdict:
    """Decide the outcome of one AXFR attempt from its transcript.

    Markers are looked for in `;` metadata lines only, so record data that
    happens to contain "failed" never hides a real transfer.
    """
    lines = [line.strip() for line in (text or "").splitlines() if line.strip()]
    meta = [line.lower() for line in lines if line.startswith(";")]
    if any(marker in line for line in meta for marker in FAILURE_MARKERS):
        return TransferVerdict(REFUSED)
    if any(marker in line for line in meta for marker in TIMEOUT_MARKERS):
        return TransferVerdict(TIMED_OUT)

    records = tuple(line for line in lines if not line.startswith(";") and RECORD_LINE.match(line))
    if records:
        return TransferVerdict(VULNERABLE, records)
    return TransferVerdict(REFUSED)


def summarize(results: List[Dict[str, Any]]) -> Dict[str, int]:
    vulnerable = sum(1 for r in results if r.get("vulnerable"))
    errors = sum(1 for r in results if r.get("error"))
    return {
        "total": len(results),
        "vulnerable": vulnerable,
        "secure": sum(1 for r in results if not r.get("vulnerable") and not r.get("error")),
        "errors": errors,
    }


class ZoneTransferProbe:
    """AXFR attempts against each nameserver of `domain`."""

    def __init__(self, domain: Any, nameserver: Any = None, settings: Optional[Settings] = None):
        self.domain = normalize_domain(domain)
        self.nameserver = normalize_nameserver(nameserver)
        self.settings = settings or load_settings()
        self.resolver_ip = self.settings.dns or default_resolver_ip()

    def _lookup_nameservers(self) -> List[str]:
        try:
            names = query_record(self.resolver_ip, self.domain, "NS", self.settings.dns_timeout)
        except (DomainNotFound, NoData) as exc:
            raise ResolutionError("Domain not found or has no nameservers") from exc
        except (DNSQueryError, OSError) as exc:
            raise ResolutionError(f"Failed to resolve nameservers: {exc}") from exc
        return names

    def _attempt(self, nameserver: str) -> Any:
        """Resolve one nameserver and try the transfer; runs on a worker thread."""
        if is_ip_address(nameserver):
            ip = nameserver
        else:
            ip = resolve_addresses(nameserver, self.resolver_ip, self.settings.dns_timeout)[0]
        timeout = self.settings.axfr_timeout
        verdict = classify_zone_transfer(zone_transfer(self.domain, ip, timeout=timeout / 2, lifetime=timeout))
        if verdict.status == REFUSED:
            return ProbeOutcome.refused(0.0, REFUSED_MESSAGE, value={"ip": ip})
        return {"ip": ip, "verdict": verdict}

    def _result(self, nameserver: str, outcome: ProbeOutcome) -> Dict[str, Any]:
        if outcome.kind == OUTCOME_REFUSED:
            return {
                "nameserver": nameserver,
                "ip": outcome.value["ip"],
                "vulnerable": False,
                "status": REFUSED,
                "message": outcome.detail,
                "responseTime": outcome.elapsed_ms,
            }
        if not outcome.ok:
            if outcome.kind == TIMEOUT or isinstance(outcome.error, QueryTimeout):
                error = "Query timeout"
            elif isinstance(outcome.error, DNSQueryError):
                error = f"Nameserver not resolvable: {outcome.error.label}"
            else:
                error = outcome.detail or "Failed to resolve nameserver"
            logger.debug("AXFR %s @%s failed: %s", self.domain, nameserver, error)
            return {
                "nameserver": nameserver,
                "ip": "N/A",
                "vulnerable": False,
                "status": TIMED_OUT if outcome.kind == TIMEOUT else "error",
                "error": error,
                "responseTime": outcome.elapsed_ms,
            }

        verdict: TransferVerdict = outcome.value["verdict"]
        result: Dict[str, Any] = {
            "nameserver": nameserver,
            "ip": outcome.value["ip"],
            "vulnerable": verdict.vulnerable,
            "status": verdict.status,
            "responseTime": outcome.elapsed_ms,
        }
        if verdict.vulnerable:
            logger.warning("Zone transfer allowed for %s by %s", self.domain, nameserver)
            result["recordCount"] = len(verdict.records)
            result["records"] = list(verdict.records[:MAX_RECORDS_DISPLAY])
        else:
            result["error"] = TIMEOUT_MESSAGE
        return result

    async def run(self) -> Dict[str, Any]:
        with io_pool(self.settings.concurrency) as executor:
            if self.nameserver:
                nameservers = [self.nameserver]
            else:
                nameservers = await in_executor(self._lookup_nameservers, executor=executor)
                logger.debug("Nameservers for %s: %s", self.domain, ", ".join(nameservers))
            if not nameservers:
                raise ResolutionError("No nameservers found for domain")
            nameservers = nameservers[:MAX_NAMESERVERS]

            def make(ns: str):
                async def op() -> Dict[str, Any]:
                    return await in_executor(self._attempt, ns, executor=executor)

                return op

            # Name resolution plus the transfer share one per-server budget.
            budget_ms = (self.settings.axfr_timeout + self.settings.dns_timeout) * 1000.0
            outcomes = await run_bounded([make(ns) for ns in nameservers], budget_ms, self.settings.concurrency)

        results = [self._result(ns, o) for ns, o in zip(nameservers, outcomes)]
        return {
            "domain": self.domain,
            "nameservers": results,
            "summary": summarize(results),
            "timestamp": now_iso(),
        }
