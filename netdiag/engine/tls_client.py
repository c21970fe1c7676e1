from __future__ import annotations

"""TLS probe client.

Every function opens one short-lived connection with certificate verification
disabled: the goal is auditing the remote configuration, not trusting it.
Functions are blocking and are scheduled on a thread pool by the probers.

Two stacks are used:
- stdlib `ssl` for pinned-version, ALPN and per-cipher handshakes
- pyOpenSSL for the full presented chain and the OCSP status callback
"""

import ipaddress
import select
import socket
import ssl
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from OpenSSL import SSL

from ..errors import TLSConnectionError
from .certificates import CertificateInfo, build_chain
from .runtime import logger

TLS_VERSIONS = ("TLSv1", "TLSv1.1", "TLSv1.2", "TLSv1.3")
LEGACY_VERSIONS = {"TLSv1", "TLSv1.1"}
DEFAULT_ALPN = ("h2", "http/1.1")
OCSP_GRACE_SECONDS = 0.1

_SSL_VERSIONS: Dict[str, Any] = {
    "TLSv1": ssl.TLSVersion.TLSv1,
    "TLSv1.1": ssl.TLSVersion.TLSv1_1,
    "TLSv1.2": ssl.TLSVersion.TLSv1_2,
    "TLSv1.3": ssl.TLSVersion.TLSv1_3,
}


def _is_ip(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def _sni(host: str, servername: Optional[str]) -> Optional[str]:
    name = (servername or host or "").strip()
    if not name or _is_ip(name):
        return None
    return name


def client_context(
    min_version: Optional[str] = None,
    max_version: Optional[str] = None,
    ciphers: Optional[str] = None,
    alpn: Optional[Sequence[str]] = None,
    seclevel0: bool = False,
) -> ssl.SSLContext:
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    if ciphers or seclevel0:
        # OpenSSL 3 refuses TLS 1.0/1.1 and static-RSA suites at the default
        # security level; level 0 lets the probe see what the server accepts.
        spec = ciphers or "DEFAULT"
        context.set_ciphers(f"{spec}:@SECLEVEL=0" if seclevel0 else spec)
    if min_version:
        context.minimum_version = _SSL_VERSIONS[min_version]
    if max_version:
        context.maximum_version = _SSL_VERSIONS[max_version]
    if alpn:
        context.set_alpn_protocols(list(alpn))
    return context


def handshake(
    host: str,
    port: int,
    context: ssl.SSLContext,
    servername: Optional[str] = None,
    timeout: float = 10.0,
) -> Dict[str, Any]:
    """Complete one handshake and report what was negotiated."""
    with socket.create_connection((host, int(port)), timeout=timeout) as sock:
        with context.wrap_socket(sock, server_hostname=_sni(host, servername)) as tls_sock:
            cipher = tls_sock.cipher()
            return {
                "protocol": tls_sock.version(),
                "cipher": {"name": cipher[0], "version": cipher[1], "bits": cipher[2]} if cipher else None,
                "alpn": tls_sock.selected_alpn_protocol(),
            }


def probe_version(host: str, port: int, version: str, servername: Optional[str] = None, timeout: float = 5.0) -> Dict[str, Any]:
    """Handshake with min and max version both pinned to `version`.

    Legacy versions get a second attempt at security level 0. Raises the last
    handshake error when the version is not accepted.
    """
    if version not in _SSL_VERSIONS:
        raise ValueError(f"Unknown TLS version: {version}")
    try:
        return handshake(host, port, client_context(version, version), servername, timeout)
    except (ssl.SSLError, OSError):
        if version not in LEGACY_VERSIONS:
            raise
    return handshake(host, port, client_context(version, version, seclevel0=True), servername, timeout)


def probe_alpn(
    host: str,
    port: int,
    protocols: Sequence[str] = DEFAULT_ALPN,
    servername: Optional[str] = None,
    timeout: float = 10.0,
) -> Dict[str, Any]:
    detail = handshake(host, port, client_context(alpn=protocols), servername, timeout)
    negotiated = detail.get("alpn") or None
    return {
        "requestedProtocols": list(protocols),
        "negotiatedProtocol": negotiated,
        "tlsVersion": detail.get("protocol"),
        "success": bool(negotiated),
        "servername": _sni(host, servername) or host,
    }


def probe_cipher(
    host: str,
    port: int,
    cipher: str,
    min_version: str,
    max_version: str,
    servername: Optional[str] = None,
    timeout: float = 5.0,
) -> Optional[str]:
    """Offer a single TLS <=1.2 cipher; return the negotiated cipher name."""
    legacy = min_version in LEGACY_VERSIONS
    context = client_context(min_version, max_version, ciphers=cipher, seclevel0=legacy)
    detail = handshake(host, port, context, servername, timeout)
    negotiated = detail.get("cipher") or {}
    return negotiated.get("name")


def connection_error(exc: BaseException, host: str, port: int) -> TLSConnectionError:
    """Map a socket/TLS failure onto a `TLSConnectionError` kind."""
    if isinstance(exc, TLSConnectionError):
        return exc
    if isinstance(exc, socket.gaierror):
        return TLSConnectionError(TLSConnectionError.HOST_NOT_FOUND, f"Host not found: {host}")
    if isinstance(exc, ConnectionRefusedError):
        return TLSConnectionError(TLSConnectionError.CONNECTION_REFUSED, f"Connection refused: {host}:{port}")
    if isinstance(exc, TimeoutError):
        return TLSConnectionError(TLSConnectionError.TIMEOUT, f"Connection timeout: {host}:{port}")
    message = str(exc).strip().split("\n", 1)[0] or exc.__class__.__name__
    return TLSConnectionError(TLSConnectionError.CONNECTION_FAILED, f"Connection failed: {message}")


def check_reachable(host: str, port: int, servername: Optional[str] = None, timeout: float = 5.0) -> Dict[str, Any]:
    """Plain TLS connect; failures are raised as `TLSConnectionError`."""
    try:
        return handshake(host, port, client_context(), servername, timeout)
    except (ssl.SSLError, OSError) as exc:
        raise connection_error(exc, host, port) from exc


def _wait_handshake(conn: SSL.Connection, sock: socket.socket, deadline: float) -> None:
    # Sockets with a timeout are non-blocking underneath, so pyOpenSSL
    # surfaces WantRead/WantWrite instead of blocking.
    while True:
        try:
            conn.do_handshake()
            return
        except SSL.WantReadError:
            readers, writers = [sock], []
        except SSL.WantWriteError:
            readers, writers = [], [sock]
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise TimeoutError("TLS handshake timed out")
        ready = select.select(readers, writers, [], remaining)
        if not any(ready):
            raise TimeoutError("TLS handshake timed out")


def _close(conn: SSL.Connection, sock: socket.socket) -> None:
    try:
        conn.shutdown()
    except (SSL.Error, OSError):
        pass
    sock.close()


def _openssl_session(
    host: str,
    port: int,
    servername: Optional[str],
    timeout: float,
    alpn: Optional[Sequence[str]] = None,
    ocsp_callback: Optional[Callable[[SSL.Connection, bytes, Any], bool]] = None,
    inspect: Optional[Callable[[SSL.Connection], Any]] = None,
) -> Any:
    context = SSL.Context(SSL.TLS_CLIENT_METHOD)
    context.set_verify(SSL.VERIFY_NONE)
    if alpn:
        context.set_alpn_protos([p.encode("ascii") for p in alpn])
    if ocsp_callback is not None:
        context.set_ocsp_client_callback(ocsp_callback)

    deadline = time.monotonic() + timeout
    sock = socket.create_connection((host, int(port)), timeout=timeout)
    conn = SSL.Connection(context, sock)
    try:
        sni = _sni(host, servername)
        if sni:
            conn.set_tlsext_host_name(sni.encode("idna"))
        if ocsp_callback is not None:
            conn.request_ocsp()
        conn.set_connect_state()
        _wait_handshake(conn, sock, deadline)
        return inspect(conn) if inspect else None
    finally:
        _close(conn, sock)


def fetch_certificate(host: str, port: int = 443, servername: Optional[str] = None, timeout: float = 10.0) -> Dict[str, Any]:
    """Default negotiation; returns the ordered chain plus negotiated parameters."""

    def inspect(conn: SSL.Connection) -> Dict[str, Any]:
        leaf = conn.get_peer_certificate()
        presented = [c.to_cryptography() for c in (conn.get_peer_cert_chain() or [])]
        if leaf is None and presented:
            leaf_cert = presented[0]
        elif leaf is not None:
            leaf_cert = leaf.to_cryptography()
        else:
            raise ssl.SSLError("Server presented no certificate")
        alpn = conn.get_alpn_proto_negotiated()
        return {
            "leaf": leaf_cert,
            "presented": presented,
            "protocol": conn.get_protocol_version_name(),
            "cipher": {
                "name": conn.get_cipher_name(),
                "version": conn.get_cipher_version(),
                "bits": conn.get_cipher_bits(),
            },
            "alpn": alpn.decode("ascii", errors="replace") if alpn else None,
        }

    raw = _openssl_session(host, port, servername, timeout, alpn=DEFAULT_ALPN, inspect=inspect)
    chain: List[CertificateInfo] = build_chain(raw["leaf"], raw["presented"])
    return {
        "chain": [info.to_dict() for info in chain],
        "protocol": raw["protocol"],
        "cipher": raw["cipher"] if raw["cipher"].get("name") else None,
        "alpnProtocol": raw["alpn"],
        "servername": _sni(host, servername) or host,
        "peerCertificate": chain[0].to_dict(),
    }


def check_ocsp_stapling(
    hostname: str,
    port: int = 443,
    timeout: float = 5.0,
    grace: float = OCSP_GRACE_SECONDS,
) -> Dict[str, Any]:
    """Request a stapled OCSP response and report whether one arrived."""
    stapled = threading.Event()
    payload: Dict[str, bytes] = {}

    def on_ocsp(conn: SSL.Connection, data: bytes, _user: Any) -> bool:
        if data:
            payload["data"] = data
            stapled.set()
        return True

    def inspect(conn: SSL.Connection) -> Optional[CertificateInfo]:
        leaf = conn.get_peer_certificate()
        return CertificateInfo(leaf.to_cryptography()) if leaf is not None else None

    info = _openssl_session(hostname, port, None, timeout, ocsp_callback=on_ocsp, inspect=inspect)
    enabled = stapled.wait(grace)
    logger.debug("OCSP stapling for %s:%s: %s", hostname, port, enabled)

    certificate = {"subject": "Unknown", "issuer": "Unknown", "ocspUrls": []}
    if info is not None:
        certificate = {
            "subject": info.subject["CN"] or info.subject["O"] or "Unknown",
            "issuer": info.issuer["CN"] or info.issuer["O"] or "Unknown",
            "ocspUrls": info.ocsp_urls,
        }

    result: Dict[str, Any] = {
        "staplingEnabled": enabled,
        "ocspResponse": None,
        "certificate": certificate,
        "recommendations": [],
    }
    if enabled:
        result["ocspResponse"] = {
            "present": True,
            "size": len(payload.get("data") or b""),
            "responderUrl": certificate["ocspUrls"][0] if certificate["ocspUrls"] else "",
        }
    else:
        result["recommendations"].append("Consider enabling OCSP stapling for improved privacy and performance")
    return result
