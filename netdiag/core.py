from __future__ import annotations

"""Public API for netdiag probes.

Each diagnostic has an async function (`*_async`) and a synchronous wrapper.
`run_probe` dispatches a JSON-style request by kind; `DIAGNOSE` is the
synchronous entry point used by scripts.
"""

from typing import Any, Dict, Mapping, Optional

from .config import Settings, load_settings
from .engine.runtime import _run_coro_sync, logger
from .errors import DiagnosticError, ValidationError
from .probes import BlacklistCheck, ResolverPerformance, TLSProbe, ZoneTransferProbe

KINDS = ("axfr", "dns-performance", "dnsbl", "tls")


async def axfr_check_async(domain: Any, nameserver: Any = None, settings: Optional[Settings] = None) -> Dict[str, Any]:
    return await ZoneTransferProbe(domain, nameserver, settings=settings).run()


async def dns_performance_async(domain: Any, record_type: Any = "A", settings: Optional[Settings] = None) -> Dict[str, Any]:
    return await ResolverPerformance(domain, record_type, settings=settings).run()


async def blacklist_check_async(target: Any, settings: Optional[Settings] = None) -> Dict[str, Any]:
    return await BlacklistCheck(target, settings=settings).run()


async def tls_probe_async(action: Any, settings: Optional[Settings] = None, **request: Any) -> Dict[str, Any]:
    return await TLSProbe(action, settings=settings, **request).run()


def axfr_check(domain: Any, nameserver: Any = None, settings: Optional[Settings] = None) -> Dict[str, Any]:
    return _run_coro_sync(axfr_check_async(domain, nameserver, settings))


def dns_performance(domain: Any, record_type: Any = "A", settings: Optional[Settings] = None) -> Dict[str, Any]:
    return _run_coro_sync(dns_performance_async(domain, record_type, settings))


def blacklist_check(target: Any, settings: Optional[Settings] = None) -> Dict[str, Any]:
    return _run_coro_sync(blacklist_check_async(target, settings))


def tls_probe(action: Any, settings: Optional[Settings] = None, **request: Any) -> Dict[str, Any]:
    return _run_coro_sync(tls_probe_async(action, settings=settings, **request))


async def run_probe_async(kind: str, request: Mapping[str, Any], settings: Optional[Settings] = None) -> Dict[str, Any]:
    """Dispatch one request dict.

    Request keys follow the wire format: `domain`/`nameserver` for axfr,
    `domain`/`recordType` for dns-performance, `target` for dnsbl, and
    `action` plus `host`/`hostname`/`port`/`servername`/`protocols` for tls.
    """
    if not isinstance(request, Mapping):
        raise ValidationError("Request body must be a JSON object")
    settings = settings or load_settings()
    name = str(kind or "").strip().lower()
    logger.debug("run_probe %s", name)
    try:
        if name == "axfr":
            return await axfr_check_async(request.get("domain"), request.get("nameserver"), settings)
        if name == "dns-performance":
            return await dns_performance_async(request.get("domain"), request.get("recordType", "A"), settings)
        if name == "dnsbl":
            return await blacklist_check_async(request.get("target"), settings)
        if name == "tls":
            fields = {k: v for k, v in request.items() if k != "action"}
            return await tls_probe_async(request.get("action"), settings=settings, **fields)
    except ValidationError:
        raise
    except DiagnosticError as exc:
        logger.warning("%s probe failed: %s", name, exc)
        raise
    raise ValidationError(f"Unknown probe kind: {kind}. Supported: {', '.join(KINDS)}")


def run_probe(kind: str, request: Mapping[str, Any], settings: Optional[Settings] = None) -> Dict[str, Any]:
    return _run_coro_sync(run_probe_async(kind, request, settings))


def DIAGNOSE(kind: str, settings: Optional[Settings] = None, **request: Any) -> Dict[str, Any]:
    """Synchronous public entry point.

    Example:
        DIAGNOSE("dnsbl", target="127.0.0.2")
        DIAGNOSE("tls", action="versions", host="example.com")
    """
    return run_probe(kind, request, settings=settings)


__all__ = [
    "DIAGNOSE",
    "KINDS",
    "axfr_check",
    "axfr_check_async",
    "blacklist_check",
    "blacklist_check_async",
    "dns_performance",
    "dns_performance_async",
    "run_probe",
    "run_probe_async",
    "tls_probe",
    "tls_probe_async",
]
