from __future__ import annotations

import asyncio

import pytest

import netdiag.probes.dns_performance as perf
from netdiag.config import Resolver, Settings
from netdiag.errors import DomainNotFound, NoData, QueryRefused, QueryTimeout, ServerFailure, ValidationError

RESOLVERS = (
    Resolver("192.0.2.1", "One"),
    Resolver("192.0.2.2", "Two"),
    Resolver("192.0.2.3", "Three"),
    Resolver("192.0.2.4", "Four"),
    Resolver("192.0.2.5", "Five"),
    Resolver("192.0.2.6", "Six"),
)


def _ok(name, time):
    return {"resolverName": name, "success": True, "responseTime": time}


def test_statistics_odd_count_median():
    stats = perf.compute_statistics([_ok("a", 30.0), _ok("b", 10.0), _ok("c", 20.0)])
    assert stats["fastest"] == {"resolver": "b", "time": 10.0}
    assert stats["slowest"] == {"resolver": "a", "time": 30.0}
    assert stats["median"] == 20.0
    assert stats["average"] == 20.0
    assert stats["successRate"] == 100


def test_statistics_even_count_median_and_rounding():
    results = [_ok("a", 10.0), _ok("b", 11.0), _ok("c", 20.333), _ok("d", 40.0), {"success": False}]
    stats = perf.compute_statistics(results)
    assert stats["median"] == 15.67
    assert stats["average"] == 20.33
    assert stats["successRate"] == 80


def test_statistics_round_half_up():
    one_of_eight = perf.compute_statistics([_ok("a", 1.125)] + [{"success": False}] * 7)
    assert one_of_eight["successRate"] == 13
    assert one_of_eight["average"] == 1.13
    assert one_of_eight["median"] == 1.13

    five_of_eight = perf.compute_statistics([_ok(str(i), 10.0) for i in range(5)] + [{"success": False}] * 3)
    assert five_of_eight["successRate"] == 63
    assert perf.round_half_up(2.5) == 3.0
    assert perf.round_half_up(0.125, 2) == 0.13


def test_statistics_without_success():
    stats = perf.compute_statistics([{"success": False}, {"success": False}])
    assert stats["fastest"] == {"resolver": "N/A", "time": 0}
    assert stats["slowest"] == {"resolver": "N/A", "time": 0}
    assert stats["average"] == 0 and stats["median"] == 0 and stats["successRate"] == 0


def test_record_type_validation():
    assert perf.validate_record_type("mx") == "MX"
    assert perf.validate_record_type(None) == "A"
    with pytest.raises(ValidationError):
        perf.validate_record_type("PTR")


def test_run_labels_failures(monkeypatch):
    failures = {
        "192.0.2.2": DomainNotFound("x"),
        "192.0.2.3": NoData("x"),
        "192.0.2.4": QueryTimeout("x"),
        "192.0.2.5": ServerFailure("x"),
        "192.0.2.6": QueryRefused("x"),
    }

    def fake_query(resolver_ip, domain, record_type, timeout=5.0):
        if resolver_ip in failures:
            raise failures[resolver_ip]
        return [f"mx{i}.example.com" for i in range(15)]

    monkeypatch.setattr(perf, "query_record", fake_query)
    settings = Settings(resolvers=RESOLVERS, dns_timeout=5.0)
    result = asyncio.run(perf.ResolverPerformance("example.com", "mx", settings=settings).run())

    assert result["recordType"] == "MX"
    errors = [r.get("error") for r in result["results"]]
    assert errors == [
        None,
        "Domain not found",
        "No MX records",
        "Query timeout (>5s)",
        "Server failure",
        "Query refused",
    ]
    assert len(result["results"][0]["records"]) == perf.MAX_RECORDS
    assert result["statistics"]["successRate"] == 17
    assert result["statistics"]["fastest"]["resolver"] == "One"
