"""Probers: one module per diagnostic, plus shared input validation."""

from .axfr import ZoneTransferProbe, classify_zone_transfer
from .blacklist import BlacklistCheck, classify_listing, reverse_ipv4, reverse_ipv6
from .dns_performance import ResolverPerformance, compute_statistics
from .tls import TLSProbe

__all__ = [
    "BlacklistCheck",
    "ResolverPerformance",
    "TLSProbe",
    "ZoneTransferProbe",
    "classify_listing",
    "classify_zone_transfer",
    "compute_statistics",
    "reverse_ipv4",
    "reverse_ipv6",
]
