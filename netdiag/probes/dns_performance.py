from __future__ import annotations

"""Resolver performance comparator.

The same query is fanned out to every resolver in the roster; the per-resolver
timings are then reduced to fastest/slowest/average/median/success-rate.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Sequence

from ..config import Resolver, Settings, load_settings
from ..engine.dns_client import RECORD_TYPES, query_record
from ..engine.runtime import (
    ProbeOutcome,
    TIMEOUT,
    in_executor,
    io_pool,
    logger,
    now_iso,
    run_bounded,
)
from ..errors import DomainNotFound, NoData, QueryRefused, QueryTimeout, ServerFailure, ValidationError
from .validation import normalize_domain

MAX_RECORDS = 10


def validate_record_type(value: Any) -> str:
    record_type = str(value or "A").strip().upper()
    if record_type not in RECORD_TYPES:
        raise ValidationError(f"Invalid record type. Supported types: {', '.join(RECORD_TYPES)}")
    return record_type


def describe_failure(outcome: ProbeOutcome, record_type: str, timeout: float) -> str:
    exc = outcome.error
    if outcome.kind == TIMEOUT or isinstance(exc, QueryTimeout):
        return f"Query timeout (>{timeout:g}s)"
    if isinstance(exc, DomainNotFound):
        return "Domain not found"
    if isinstance(exc, NoData):
        return f"No {record_type} records"
    if isinstance(exc, ServerFailure):
        return "Server failure"
    if isinstance(exc, QueryRefused):
        return "Query refused"
    if exc is not None and str(exc):
        return str(exc).split("\n", 1)[0]
    return outcome.detail or "Unknown error"


def round_half_up(value: float, places: int = 0) -> float:
    """Round halves away from zero (12.5 -> 13), unlike the builtin `round`."""
    exponent = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(exponent, rounding=ROUND_HALF_UP))


def _median(values: Sequence[float]) -> float:
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2
    return ordered[mid]


def compute_statistics(results: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Reduce per-resolver results to the summary block.

    Ties on fastest/slowest keep the earliest resolver in roster order.
    """
    successful = [r for r in results if r.get("success")]
    if not successful:
        return {
            "fastest": {"resolver": "N/A", "time": 0},
            "slowest": {"resolver": "N/A", "time": 0},
            "average": 0,
            "median": 0,
            "successRate": 0,
        }

    fastest = successful[0]
    slowest = successful[0]
    for item in successful[1:]:
        if item["responseTime"] < fastest["responseTime"]:
            fastest = item
        if item["responseTime"] > slowest["responseTime"]:
            slowest = item

    times = [r["responseTime"] for r in successful]
    return {
        "fastest": {"resolver": fastest["resolverName"], "time": fastest["responseTime"]},
        "slowest": {"resolver": slowest["resolverName"], "time": slowest["responseTime"]},
        "average": round_half_up(sum(times) / len(times), 2),
        "median": round_half_up(_median(times), 2),
        "successRate": int(round_half_up(len(successful) / len(results) * 100)),
    }


class ResolverPerformance:
    """Time one query against each resolver of the roster."""

    def __init__(self, domain: Any, record_type: Any = "A", settings: Optional[Settings] = None):
        self.domain = normalize_domain(domain)
        self.record_type = validate_record_type(record_type)
        self.settings = settings or load_settings()
        self.resolvers: Sequence[Resolver] = self.settings.resolvers

    def _result(self, resolver: Resolver, outcome: ProbeOutcome) -> Dict[str, Any]:
        if outcome.ok:
            return {
                "resolver": resolver.ip,
                "resolverName": resolver.name,
                "success": True,
                "responseTime": outcome.elapsed_ms,
                "records": list(outcome.value or [])[:MAX_RECORDS],
            }
        error = describe_failure(outcome, self.record_type, self.settings.dns_timeout)
        logger.debug("Resolver %s (%s) failed: %s", resolver.name, resolver.ip, error)
        return {
            "resolver": resolver.ip,
            "resolverName": resolver.name,
            "success": False,
            "responseTime": outcome.elapsed_ms,
            "error": error,
        }

    async def run(self) -> Dict[str, Any]:
        logger.debug("dns-performance %s %s against %d resolvers", self.domain, self.record_type, len(self.resolvers))
        timeout = self.settings.dns_timeout

        with io_pool(min(len(self.resolvers), self.settings.concurrency)) as executor:

            def make(resolver: Resolver):
                async def op() -> List[str]:
                    return await in_executor(query_record, resolver.ip, self.domain, self.record_type, timeout, executor=executor)

                return op

            outcomes = await run_bounded(
                [make(r) for r in self.resolvers],
                timeout_ms=timeout * 1000.0,
                concurrency=self.settings.concurrency,
            )

        results = [self._result(r, o) for r, o in zip(self.resolvers, outcomes)]
        return {
            "domain": self.domain,
            "recordType": self.record_type,
            "results": results,
            "statistics": compute_statistics(results),
            "timestamp": now_iso(),
        }
