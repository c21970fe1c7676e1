"""Version helpers for netdiag."""

from __future__ import annotations

import re
from typing import Any, Dict, Tuple

import httpx

__version__ = "1.0.0"
PYPI_PROJECT = "netdiag-probes"
PYPI_URL = f"https://pypi.org/pypi/{PYPI_PROJECT}/json"


def _version_key(raw: str) -> Tuple[int, ...]:
    """Numeric tuple used to compare release strings ("1.2.0rc1" -> (1, 2, 0, 1))."""
    parts = [int(token) for token in re.findall(r"\d+", str(raw or ""))]
    return tuple(parts) if parts else (0,)


def is_newer_version(latest: str, current: str) -> bool:
    a = _version_key(latest)
    b = _version_key(current)
    width = max(len(a), len(b))
    return a + (0,) * (width - len(a)) > b + (0,) * (width - len(b))


def check_latest_version(current: str = __version__, timeout: float = 2.5) -> Dict[str, Any]:
    """Ask PyPI for the newest published release.

    Never raises; failures are reported in the `error` field.
    """
    result: Dict[str, Any] = {
        "ok": False,
        "current": str(current),
        "latest": None,
        "update_available": False,
        "url": PYPI_URL,
        "error": None,
    }
    try:
        response = httpx.get(
            PYPI_URL,
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": f"netdiag/{current}"},
        )
        if response.status_code >= 400:
            result["error"] = f"HTTP {response.status_code}"
            return result
        latest = str((response.json().get("info") or {}).get("version") or "").strip()
    except (httpx.HTTPError, ValueError) as exc:
        result["error"] = f"{exc.__class__.__name__}: {exc}"
        return result

    if not latest:
        result["error"] = "Missing version in PyPI response"
        return result
    result["ok"] = True
    result["latest"] = latest
    result["update_available"] = is_newer_version(latest, str(current))
    return result
