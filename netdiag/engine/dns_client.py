from __future__ import annotations

"""DNS query client.

Single-record queries against an explicit resolver IP and AXFR requests against
an explicit nameserver IP. Calls are blocking (dnspython); probers run them on
a thread pool through `netdiag.engine.runtime.in_executor`.
"""

from typing import Any, List, Optional

import dns.exception
import dns.message
import dns.name
import dns.query
import dns.rcode
import dns.rdatatype
import dns.resolver

from ..errors import DomainNotFound, NetworkFailure, NoData, QueryRefused, QueryTimeout, ServerFailure
from .runtime import logger

RECORD_TYPES = ("A", "AAAA", "MX", "TXT", "NS", "CNAME", "SOA")
FALLBACK_RESOLVER = "8.8.8.8"

TRANSFER_FAILED_LINE = "; Transfer failed."
TIMED_OUT_LINE = ";; connection timed out; no servers could be reached"


def default_resolver_ip() -> str:
    """First resolver from the system configuration, or a public fallback."""
    try:
        nameservers = dns.resolver.get_default_resolver().nameservers
    except (dns.resolver.NoResolverConfiguration, OSError) as exc:
        logger.debug("No system resolver configuration: %s", exc)
        return FALLBACK_RESOLVER
    for ns in nameservers:
        text = str(ns).strip()
        if text:
            return text
    return FALLBACK_RESOLVER


def _name_text(name: Any) -> str:
    return name.to_text(omit_final_dot=True)


def format_rdata(rdtype: str, rr: Any) -> str:
    """Normalize one rdata into the display string used in results."""
    if rdtype in ("A", "AAAA"):
        return str(rr.address)
    if rdtype in ("NS", "CNAME"):
        return _name_text(rr.target)
    if rdtype == "MX":
        return f"{rr.preference} {_name_text(rr.exchange)}"
    if rdtype == "TXT":
        return " ".join(chunk.decode("utf-8", errors="replace") for chunk in rr.strings)
    if rdtype == "SOA":
        return (
            f"{_name_text(rr.mname)} {_name_text(rr.rname)} {rr.serial} "
            f"{rr.refresh} {rr.retry} {rr.expire} {rr.minimum}"
        )
    return rr.to_text()


def query_record(resolver_ip: str, domain: str, record_type: str, timeout: float = 5.0) -> List[str]:
    """Send one query for `record_type` to `resolver_ip` and normalize the answer.

    Raises one of `DomainNotFound`, `NoData`, `QueryTimeout`, `ServerFailure`
    or `QueryRefused`, chosen from the response code, and `NetworkFailure`
    when no usable response arrives.
    """
    rdtype_text = str(record_type or "").upper()
    if rdtype_text not in RECORD_TYPES:
        raise ValueError(f"Unsupported record type: {record_type}")
    rdtype = dns.rdatatype.from_text(rdtype_text)

    query = dns.message.make_query(dns.name.from_text(domain), rdtype)
    try:
        response, _ = dns.query.udp_with_fallback(query, resolver_ip, timeout=timeout)
    except (dns.exception.Timeout, TimeoutError) as exc:
        raise QueryTimeout(f"No response from {resolver_ip} within {timeout:g}s") from exc
    except (dns.exception.DNSException, OSError, EOFError) as exc:
        raise NetworkFailure(f"{resolver_ip}: {exc.__class__.__name__}: {exc}") from exc

    rcode = response.rcode()
    if rcode == dns.rcode.NXDOMAIN:
        raise DomainNotFound(f"{domain} does not exist")
    if rcode == dns.rcode.REFUSED:
        raise QueryRefused(f"{resolver_ip} refused the query")
    if rcode != dns.rcode.NOERROR:
        raise ServerFailure(f"{resolver_ip} answered {dns.rcode.to_text(rcode)}")

    records: List[str] = []
    for rrset in response.answer:
        if rrset.rdtype != rdtype:
            continue
        for rr in rrset:
            value = format_rdata(rdtype_text, rr)
            if value not in records:
                records.append(value)
    if not records:
        raise NoData(f"No {rdtype_text} records for {domain}")
    return records


def resolve_addresses(host: str, resolver_ip: str, timeout: float = 5.0) -> List[str]:
    """A records, falling back to AAAA; raises the last DNS error if both fail."""
    try:
        return query_record(resolver_ip, host, "A", timeout)
    except (DomainNotFound, QueryTimeout):
        raise
    except (NoData, ServerFailure, QueryRefused):
        return query_record(resolver_ip, host, "AAAA", timeout)


def zone_transfer(domain: str, nameserver_ip: str, timeout: float = 5.0, lifetime: Optional[float] = None) -> str:
    """Request AXFR of `domain` from `nameserver_ip`; return a dig-style transcript.

    Records are rendered as `name TTL IN TYPE rdata` lines. Failures are
    reported as `;` comment lines so the caller's classifier sees one format.
    """
    lines: List[str] = [f"; <<>> netdiag <<>> @{nameserver_ip} {domain} AXFR"]
    count = 0
    try:
        for message in dns.query.xfr(
            where=nameserver_ip,
            zone=domain,
            timeout=timeout,
            lifetime=lifetime or max(timeout * 2, timeout + 1.0),
        ):
            for rrset in message.answer:
                for line in rrset.to_text().splitlines():
                    if line.strip():
                        lines.append(line)
                        count += 1
    except (dns.exception.Timeout, TimeoutError):
        lines.append(TIMED_OUT_LINE)
        return "\n".join(lines)
    except (dns.exception.DNSException, EOFError, ConnectionError) as exc:
        rcode = getattr(exc, "rcode", None)
        reason = dns.rcode.to_text(rcode) if rcode is not None else f"{exc.__class__.__name__}: {exc}"
        lines.append(f";; communications error to {nameserver_ip}: {reason}")
        lines.append(TRANSFER_FAILED_LINE)
        return "\n".join(lines)
    except OSError as exc:
        lines.append(f";; communications error to {nameserver_ip}: {exc.__class__.__name__}: {exc}")
        lines.append(TRANSFER_FAILED_LINE)
        return "\n".join(lines)

    lines.append(f";; XFR size: {count} records")
    return "\n".join(lines)
