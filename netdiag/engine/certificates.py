from __future__ import annotations

"""Certificate metadata and chain ordering.

`CertificateInfo` wraps a `cryptography` certificate; expiry fields are
computed on every read from the wall clock, never cached.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.x509.oid import AuthorityInformationAccessOID, ExtendedKeyUsageOID, NameOID

MAX_CHAIN_DEPTH = 10

EKU_NAMES = {
    ExtendedKeyUsageOID.SERVER_AUTH: "TLS Web Server Authentication",
    ExtendedKeyUsageOID.CLIENT_AUTH: "TLS Web Client Authentication",
    ExtendedKeyUsageOID.CODE_SIGNING: "Code Signing",
    ExtendedKeyUsageOID.EMAIL_PROTECTION: "E-mail Protection",
    ExtendedKeyUsageOID.TIME_STAMPING: "Time Stamping",
    ExtendedKeyUsageOID.OCSP_SIGNING: "OCSP Signing",
}


def _attr(name: x509.Name, oid: x509.ObjectIdentifier) -> str:
    values = name.get_attributes_for_oid(oid)
    return str(values[0].value) if values else ""


def _colon_hex(data: bytes) -> str:
    return ":".join(f"{b:02X}" for b in data)


def _extension(cert: x509.Certificate, ext_type: Any) -> Any:
    try:
        return cert.extensions.get_extension_for_class(ext_type).value
    except x509.ExtensionNotFound:
        return None
    except ValueError:
        # Malformed extension payloads are reported as absent.
        return None


def fingerprint256(cert: x509.Certificate) -> str:
    return _colon_hex(cert.fingerprint(hashes.SHA256()))


@dataclass(frozen=True)
class CertificateInfo:
    cert: x509.Certificate

    @property
    def subject(self) -> Dict[str, str]:
        name = self.cert.subject
        return {
            "CN": _attr(name, NameOID.COMMON_NAME),
            "O": _attr(name, NameOID.ORGANIZATION_NAME),
            "OU": _attr(name, NameOID.ORGANIZATIONAL_UNIT_NAME),
            "C": _attr(name, NameOID.COUNTRY_NAME),
        }

    @property
    def issuer(self) -> Dict[str, str]:
        name = self.cert.issuer
        return {
            "CN": _attr(name, NameOID.COMMON_NAME),
            "O": _attr(name, NameOID.ORGANIZATION_NAME),
            "C": _attr(name, NameOID.COUNTRY_NAME),
        }

    @property
    def valid_from(self) -> datetime:
        return self.cert.not_valid_before_utc

    @property
    def valid_to(self) -> datetime:
        return self.cert.not_valid_after_utc

    def days_until_expiry(self, now: Optional[datetime] = None) -> int:
        current = now or datetime.now(timezone.utc)
        return math.ceil((self.valid_to - current).total_seconds() / 86400.0)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.now(timezone.utc)) > self.valid_to

    def is_not_yet_valid(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.now(timezone.utc)) < self.valid_from

    @property
    def is_self_issued(self) -> bool:
        return self.cert.subject == self.cert.issuer

    @property
    def serial_number(self) -> str:
        return format(self.cert.serial_number, "X")

    @property
    def fingerprint(self) -> str:
        return _colon_hex(self.cert.fingerprint(hashes.SHA1()))

    @property
    def fingerprint256(self) -> str:
        return fingerprint256(self.cert)

    @property
    def subject_alt_names(self) -> List[str]:
        san = _extension(self.cert, x509.SubjectAlternativeName)
        if san is None:
            return []
        names: List[str] = list(san.get_values_for_type(x509.DNSName))
        names.extend(f"IP Address:{ip}" for ip in san.get_values_for_type(x509.IPAddress))
        return names

    @property
    def key_usage(self) -> List[str]:
        eku = _extension(self.cert, x509.ExtendedKeyUsage)
        if eku is None:
            return []
        return [EKU_NAMES.get(oid, oid.dotted_string) for oid in eku]

    @property
    def ocsp_urls(self) -> List[str]:
        aia = _extension(self.cert, x509.AuthorityInformationAccess)
        if aia is None:
            return []
        return [
            str(desc.access_location.value)
            for desc in aia
            if desc.access_method == AuthorityInformationAccessOID.OCSP
        ]

    def to_dict(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "issuer": self.issuer,
            "subjectDN": self.cert.subject.rfc4514_string(),
            "issuerDN": self.cert.issuer.rfc4514_string(),
            "validFrom": self.valid_from.isoformat(),
            "validTo": self.valid_to.isoformat(),
            "daysUntilExpiry": self.days_until_expiry(now),
            "isExpired": self.is_expired(now),
            "isNotYetValid": self.is_not_yet_valid(now),
            "serialNumber": self.serial_number,
            "fingerprint": self.fingerprint,
            "fingerprint256": self.fingerprint256,
            "subjectAltNames": self.subject_alt_names,
            "keyUsage": self.key_usage,
            "version": self.cert.version.name,
        }


def build_chain(
    leaf: x509.Certificate,
    presented: Sequence[x509.Certificate],
    max_depth: int = MAX_CHAIN_DEPTH,
) -> List[CertificateInfo]:
    """Order certificates from `leaf` toward a root by following issuer links.

    Stops at a self-issued certificate, a certificate already visited, a
    missing issuer, or `max_depth` entries.
    """
    chain: List[CertificateInfo] = [CertificateInfo(leaf)]
    seen = {fingerprint256(leaf)}
    current = leaf
    while len(chain) < max_depth:
        if current.issuer == current.subject:
            break
        parent = None
        for candidate in presented:
            if candidate.subject == current.issuer and fingerprint256(candidate) not in seen:
                parent = candidate
                break
        if parent is None:
            break
        chain.append(CertificateInfo(parent))
        seen.add(fingerprint256(parent))
        current = parent
    return chain
