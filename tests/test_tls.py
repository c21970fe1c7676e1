from __future__ import annotations

import asyncio
import socket
import ssl

import pytest

import netdiag.engine.tls_client as tls_client
import netdiag.probes.tls as tls
from netdiag.config import Settings
from netdiag.engine.runtime import ProbeOutcome
from netdiag.errors import TLSConnectionError, ValidationError


def _settings():
    return Settings(tls_timeout=2.0)


def _fake_versions(accepted):
    def fake(host, port, version, servername=None, timeout=5.0):
        if version not in accepted:
            raise ssl.SSLError(f"unsupported protocol {version}")
        return {"protocol": version, "cipher": {"name": "TLS_AES_256_GCM_SHA384", "version": version, "bits": 256}, "alpn": None}

    return fake


def test_aggregate_versions_orders_and_bounds():
    outcomes = {
        "TLSv1": ProbeOutcome.network_error("SSLError: no protocols available"),
        "TLSv1.1": ProbeOutcome.timeout(5000.0),
        "TLSv1.2": ProbeOutcome.success({}, 10.0),
        "TLSv1.3": ProbeOutcome.success({}, 12.0),
    }
    report = tls.aggregate_versions(outcomes)
    assert report["supportedVersions"] == ["TLSv1.2", "TLSv1.3"]
    assert report["minVersion"] == "TLSv1.2"
    assert report["maxVersion"] == "TLSv1.3"
    assert report["totalSupported"] == 2
    assert report["errors"] == {"TLSv1": "SSLError: no protocols available", "TLSv1.1": "Timeout"}


def test_aggregate_versions_nothing_supported():
    report = tls.aggregate_versions({v: ProbeOutcome.timeout(1.0) for v in tls_client.TLS_VERSIONS})
    assert report["minVersion"] is None and report["maxVersion"] is None
    assert report["totalSupported"] == 0


@pytest.mark.parametrize(
    "supported,grade",
    [
        ({"modern": True, "intermediate": True, "legacy": True}, "A"),
        ({"modern": False, "intermediate": True, "legacy": True}, "B"),
        ({"modern": False, "intermediate": False, "legacy": True}, "D"),
        ({"modern": False, "intermediate": False, "legacy": False}, "F"),
    ],
)
def test_grade_presets(supported, grade):
    presets = [{"level": level, "supported": flag} for level, flag in supported.items()]
    assert tls.grade_presets(presets)["overallGrade"] == grade


def test_probe_rejects_bad_requests():
    with pytest.raises(ValidationError):
        tls.TLSProbe("bogus", host="example.com", settings=_settings())
    with pytest.raises(ValidationError):
        tls.TLSProbe("versions", host="", settings=_settings())
    with pytest.raises(ValidationError):
        tls.TLSProbe("versions", host="example.com", port=70000, settings=_settings())
    with pytest.raises(ValidationError):
        tls.TLSProbe("alpn", host="example.com", protocols=[], settings=_settings())
    with pytest.raises(ValidationError):
        tls.TLSProbe("certificate", host="exa mple.com", settings=_settings())
    with pytest.raises(ValidationError):
        tls.TLSProbe("ocsp-stapling", hostname="bad_host!:443", settings=_settings())


def test_versions_action(monkeypatch):
    monkeypatch.setattr(tls_client, "probe_version", _fake_versions({"TLSv1.2", "TLSv1.3"}))
    result = asyncio.run(tls.TLSProbe("versions", host="example.com:8443", settings=_settings()).run())
    assert result["supportedVersions"] == ["TLSv1.2", "TLSv1.3"]
    assert result["minVersion"] == "TLSv1.2"
    assert result["maxVersion"] == "TLSv1.3"
    assert set(result["errors"]) == {"TLSv1", "TLSv1.1"}


def test_cipher_presets_grade_b(monkeypatch):
    monkeypatch.setattr(tls_client, "check_reachable", lambda *a, **k: {"protocol": "TLSv1.2"})
    monkeypatch.setattr(tls_client, "probe_version", _fake_versions({"TLSv1.2"}))

    def fake_cipher(host, port, cipher, min_version, max_version, servername=None, timeout=5.0):
        if cipher.startswith("ECDHE-RSA") and cipher.endswith("GCM-SHA256"):
            return cipher
        raise ssl.SSLError("handshake failure")

    monkeypatch.setattr(tls_client, "probe_cipher", fake_cipher)
    result = asyncio.run(tls.TLSProbe("cipher-presets", hostname="example.com", settings=_settings()).run())

    presets = {p["level"]: p for p in result["presets"]}
    assert presets["modern"]["supported"] is False
    assert presets["intermediate"]["supportedCiphers"] == ["ECDHE-RSA-AES128-GCM-SHA256"]
    assert presets["intermediate"]["recommendation"] == "Good balance of security and compatibility"
    assert presets["legacy"]["supported"] is False
    assert {p["name"]: p["supported"] for p in presets["intermediate"]["protocols"]} == {"TLS 1.2": True, "TLS 1.3": False}
    assert result["summary"]["overallGrade"] == "B"
    assert result["hostname"] == "example.com" and result["port"] == 443


def test_cipher_presets_modern_reports_untested_suites(monkeypatch):
    monkeypatch.setattr(tls_client, "check_reachable", lambda *a, **k: {})
    monkeypatch.setattr(tls_client, "probe_version", _fake_versions({"TLSv1.3"}))
    def no_cipher(*args, **kwargs):
        raise ssl.SSLError("handshake failure")

    monkeypatch.setattr(tls_client, "probe_cipher", no_cipher)
    result = asyncio.run(tls.TLSProbe("cipher-presets", hostname="example.com", settings=_settings()).run())
    modern = result["presets"][0]
    assert modern["supported"] is True
    assert modern["supportedCiphers"] == ["TLS_AES_256_GCM_SHA384"]
    assert set(modern["untestedCiphers"]) == {"TLS_AES_128_GCM_SHA256", "TLS_CHACHA20_POLY1305_SHA256"}
    assert result["summary"]["overallGrade"] == "A"


@pytest.mark.parametrize(
    "exc,kind",
    [
        (socket.gaierror("Name or service not known"), TLSConnectionError.HOST_NOT_FOUND),
        (ConnectionRefusedError("refused"), TLSConnectionError.CONNECTION_REFUSED),
        (TimeoutError("timed out"), TLSConnectionError.TIMEOUT),
        (ssl.SSLError("wrong version number"), TLSConnectionError.CONNECTION_FAILED),
    ],
)
def test_single_endpoint_errors_are_mapped(monkeypatch, exc, kind):
    def boom(*args, **kwargs):
        raise exc

    monkeypatch.setattr(tls_client, "fetch_certificate", boom)
    with pytest.raises(TLSConnectionError) as info:
        asyncio.run(tls.TLSProbe("certificate", host="example.com", settings=_settings()).run())
    assert info.value.kind == kind


def test_ocsp_action_adds_endpoint(monkeypatch):
    monkeypatch.setattr(
        tls_client,
        "check_ocsp_stapling",
        lambda host, port, timeout: {"staplingEnabled": False, "ocspResponse": None, "certificate": {}, "recommendations": ["x"]},
    )
    result = asyncio.run(tls.TLSProbe("ocsp-stapling", hostname="Example.com", port=8443, settings=_settings()).run())
    assert result["hostname"] == "example.com"
    assert result["port"] == 8443
    assert result["staplingEnabled"] is False
