from __future__ import annotations

"""TLS endpoint probes.

One entry point, `TLSProbe`, dispatches the five actions:
certificate, versions, alpn, ocsp-stapling and cipher-presets. Each
handshake is an independent operation run through `run_bounded`.
"""

from typing import Any, Callable, Dict, List, Optional, Sequence

from ..config import CipherPreset, Settings, load_settings
from ..engine import tls_client
from ..engine.runtime import ProbeOutcome, TIMEOUT, in_executor, io_pool, logger, now_iso, run_bounded
from ..errors import TLSConnectionError, ValidationError
from .validation import parse_host

ACTIONS = ("certificate", "versions", "alpn", "ocsp-stapling", "cipher-presets")
PROBE_TIMEOUT = 5.0

PROTOCOL_LABELS = {"TLSv1": "TLS 1.0", "TLSv1.1": "TLS 1.1", "TLSv1.2": "TLS 1.2", "TLSv1.3": "TLS 1.3"}

GRADES = (
    ("modern", "A", "Excellent", "Server supports modern TLS configuration"),
    ("intermediate", "B", "Good", "Server supports intermediate TLS configuration"),
    ("legacy", "D", "Poor", "Server only supports legacy cipher suites"),
)
FAILING_GRADE = ("F", "Poor", "Server does not support secure cipher suites")

PRESET_RECOMMENDATIONS = {
    "modern": "Excellent cipher configuration",
    "intermediate": "Good balance of security and compatibility",
}


def aggregate_versions(outcomes: Dict[str, ProbeOutcome]) -> Dict[str, Any]:
    """Fold per-version handshake outcomes into the versions report."""
    supported: Dict[str, bool] = {}
    errors: Dict[str, str] = {}
    for version in tls_client.TLS_VERSIONS:
        outcome = outcomes.get(version)
        if outcome is None:
            continue
        supported[version] = outcome.ok
        if not outcome.ok:
            errors[version] = "Timeout" if outcome.kind == TIMEOUT else (outcome.detail or "Handshake failed")
    versions = [v for v in tls_client.TLS_VERSIONS if supported.get(v)]
    return {
        "supported": supported,
        "errors": errors,
        "supportedVersions": versions,
        "minVersion": versions[0] if versions else None,
        "maxVersion": versions[-1] if versions else None,
        "totalSupported": len(versions),
    }


def grade_presets(presets: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
    """Overall grade from the strongest supported preset."""
    by_level = {p["level"]: p for p in presets}
    grade, rating, description = FAILING_GRADE
    for level, letter, label, text in GRADES:
        if by_level.get(level, {}).get("supported"):
            grade, rating, description = letter, label, text
            break

    recommendations: List[str] = []
    if not by_level.get("modern", {}).get("supported"):
        recommendations.append("Enable TLS 1.3 for best performance and security")
    if by_level.get("legacy", {}).get("supported"):
        recommendations.append("Disable legacy cipher suites if possible")
    if not by_level.get("modern", {}).get("supported") and not by_level.get("intermediate", {}).get("supported"):
        recommendations.append("Use AEAD ciphers for authenticated encryption")
    return {
        "overallGrade": grade,
        "rating": rating,
        "description": description,
        "recommendations": recommendations,
    }


def _protocol_span(preset: CipherPreset) -> tuple:
    # Per-cipher probes pin to TLS <= 1.2; TLS 1.3 suites are not selectable.
    legacy_span = [p for p in preset.protocols if p != "TLSv1.3"]
    return legacy_span[0], legacy_span[-1]


class TLSProbe:
    """Run one TLS action against one endpoint."""

    def __init__(self, action: Any, settings: Optional[Settings] = None, **request: Any):
        self.action = str(action or "").strip().lower()
        if self.action not in ACTIONS:
            raise ValidationError(f"Unknown action: {action}")
        self.settings = settings or load_settings()
        self.servername: Optional[str] = (request.get("servername") or "").strip() or None

        # ocsp-stapling and cipher-presets name the field `hostname`.
        self.host, self.port = parse_host(request.get("host") or request.get("hostname"), request.get("port"))

        protocols = request.get("protocols")
        if protocols is None:
            self.protocols: List[str] = list(tls_client.DEFAULT_ALPN)
        elif isinstance(protocols, (list, tuple)) and protocols and all(isinstance(p, str) and p.strip() for p in protocols):
            self.protocols = [p.strip() for p in protocols]
        else:
            raise ValidationError("protocols must be a non-empty list of ALPN protocol names")

    @property
    def probe_timeout(self) -> float:
        return min(PROBE_TIMEOUT, self.settings.tls_timeout)

    async def _single(self, func: Callable[..., Any], *args: Any, timeout: float) -> Any:
        """One handshake-bound call; failures surface as `TLSConnectionError`."""
        with io_pool(1) as executor:

            async def op() -> Any:
                return await in_executor(func, *args, executor=executor)

            # Connect and handshake each get `timeout`.
            (outcome,) = await run_bounded([op], timeout_ms=timeout * 2 * 1000.0, concurrency=1)
        if outcome.ok:
            return outcome.value
        if outcome.kind == TIMEOUT:
            raise TLSConnectionError(TLSConnectionError.TIMEOUT, f"Connection timeout: {self.host}:{self.port}")
        exc = outcome.error or RuntimeError(outcome.detail or "TLS operation failed")
        raise tls_client.connection_error(exc, self.host, self.port)

    async def certificate(self) -> Dict[str, Any]:
        timeout = self.settings.tls_timeout
        return await self._single(tls_client.fetch_certificate, self.host, self.port, self.servername, timeout, timeout=timeout)

    async def alpn(self) -> Dict[str, Any]:
        timeout = self.settings.tls_timeout
        return await self._single(
            tls_client.probe_alpn, self.host, self.port, self.protocols, self.servername, timeout, timeout=timeout
        )

    async def ocsp_stapling(self) -> Dict[str, Any]:
        timeout = self.probe_timeout
        result = await self._single(tls_client.check_ocsp_stapling, self.host, self.port, timeout, timeout=timeout)
        return {**result, "hostname": self.host, "port": self.port}

    async def _probe_all(self, calls: Dict[str, tuple]) -> Dict[str, ProbeOutcome]:
        keys = list(calls)
        timeout = self.probe_timeout
        with io_pool(min(len(keys), self.settings.concurrency)) as executor:

            def make(call: tuple):
                async def op() -> Any:
                    return await in_executor(*call, executor=executor)

                return op

            # Legacy versions may need a second handshake.
            outcomes = await run_bounded(
                [make(calls[k]) for k in keys],
                timeout_ms=timeout * 4 * 1000.0,
                concurrency=self.settings.concurrency,
            )
        return dict(zip(keys, outcomes))

    def _version_calls(self) -> Dict[str, tuple]:
        return {
            version: (tls_client.probe_version, self.host, self.port, version, self.servername, self.probe_timeout)
            for version in tls_client.TLS_VERSIONS
        }

    async def versions(self) -> Dict[str, Any]:
        outcomes = await self._probe_all(self._version_calls())
        return aggregate_versions(outcomes)

    def _preset_report(self, preset: CipherPreset, outcomes: Dict[str, ProbeOutcome]) -> Dict[str, Any]:
        protocols = [
            {"name": PROTOCOL_LABELS.get(p, p), "supported": outcomes[f"version:{p}"].ok} for p in preset.protocols
        ]
        supported_ciphers: List[str] = []
        unsupported: List[str] = []
        untested: List[str] = []
        if preset.protocols == ("TLSv1.3",):
            tls13 = outcomes["version:TLSv1.3"]
            negotiated = ((tls13.value or {}).get("cipher") or {}).get("name") if tls13.ok else None
            for cipher in preset.ciphers:
                if cipher == negotiated:
                    supported_ciphers.append(cipher)
                elif tls13.ok:
                    untested.append(cipher)
                else:
                    unsupported.append(cipher)
            supported = tls13.ok
        else:
            for cipher in preset.ciphers:
                outcome = outcomes[f"cipher:{preset.level}:{cipher}"]
                (supported_ciphers if outcome.ok and outcome.value else unsupported).append(cipher)
            supported = bool(supported_ciphers)

        recommendation = preset.recommendation
        if supported and preset.level in PRESET_RECOMMENDATIONS:
            recommendation = PRESET_RECOMMENDATIONS[preset.level]
        report: Dict[str, Any] = {
            "name": preset.name,
            "level": preset.level,
            "description": preset.description,
            "ciphers": list(preset.ciphers),
            "protocols": protocols,
            "supportedCiphers": supported_ciphers,
            "unsupportedCiphers": unsupported,
            "supported": supported,
            "recommendation": recommendation,
        }
        if untested:
            report["untestedCiphers"] = untested
        return report

    async def cipher_presets(self) -> Dict[str, Any]:
        await self._single(tls_client.check_reachable, self.host, self.port, None, self.probe_timeout, timeout=self.probe_timeout)

        calls: Dict[str, tuple] = {f"version:{v}": call for v, call in self._version_calls().items()}
        for preset in self.settings.cipher_presets:
            if preset.protocols == ("TLSv1.3",):
                continue
            low, high = _protocol_span(preset)
            for cipher in preset.ciphers:
                calls[f"cipher:{preset.level}:{cipher}"] = (
                    tls_client.probe_cipher,
                    self.host,
                    self.port,
                    cipher,
                    low,
                    high,
                    None,
                    self.probe_timeout,
                )
        outcomes = await self._probe_all(calls)

        presets = [self._preset_report(p, outcomes) for p in self.settings.cipher_presets]
        summary = grade_presets(presets)
        logger.debug("Cipher grade for %s:%s is %s", self.host, self.port, summary["overallGrade"])
        return {"presets": presets, "summary": summary, "hostname": self.host, "port": self.port}

    async def run(self) -> Dict[str, Any]:
        handlers = {
            "certificate": self.certificate,
            "versions": self.versions,
            "alpn": self.alpn,
            "ocsp-stapling": self.ocsp_stapling,
            "cipher-presets": self.cipher_presets,
        }
        result = await handlers[self.action]()
        return {**result, "timestamp": now_iso()}
