"""Exception types raised by netdiag.

Only `ValidationError` and `ResolutionError` (plus `TLSConnectionError` for
single-endpoint TLS actions) abort a request. `DNSQueryError` subclasses are
raised by the DNS client and absorbed into per-endpoint results by probers.
"""

from __future__ import annotations


class DiagnosticError(Exception):
    """Base class for all netdiag errors."""


class ValidationError(DiagnosticError):
    """Bad or missing input, rejected before any network I/O."""


class ResolutionError(DiagnosticError):
    """Cannot find IPs or nameservers for the requested target."""


class TLSConnectionError(DiagnosticError):
    HOST_NOT_FOUND = "HostNotFound"
    CONNECTION_REFUSED = "ConnectionRefused"
    TIMEOUT = "Timeout"
    CONNECTION_FAILED = "ConnectionFailed"

    def __init__(self, kind: str, message: str):
        super().__init__(message)
        self.kind = kind


class DNSQueryError(DiagnosticError):
    """A single DNS query did not produce records."""

    label = "Query failed"


class DomainNotFound(DNSQueryError):
    label = "Domain not found"


class NoData(DNSQueryError):
    label = "No data"


class QueryTimeout(DNSQueryError):
    label = "Query timeout"


class ServerFailure(DNSQueryError):
    label = "Server failure"


class QueryRefused(DNSQueryError):
    label = "Query refused"


class NetworkFailure(DNSQueryError):
    """The resolver could not be reached (unreachable network, ICMP refusal, bad reply)."""

    label = "Network error"
