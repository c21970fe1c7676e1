from __future__ import annotations

import json
import sys
from typing import Any, Dict, Optional
from urllib.parse import urlparse


def print_json_output(results: Any) -> None:
    try:
        sys.stdout.write(json.dumps(results, ensure_ascii=False, indent=2))
        sys.stdout.write("\n")
    except BrokenPipeError:
        # Piped into `head` and friends.
        return


def normalize_target_input(value: Optional[str]) -> str:
    """Accept a URL where a host is expected (`https://Example.com/x` -> `example.com`)."""
    raw = (value or "").strip()
    if "://" in raw:
        parsed = urlparse(raw)
        host = (parsed.hostname or "").strip().lower()
        if parsed.port:
            return f"{host}:{parsed.port}"
        return host
    return raw


def build_request(args: Any) -> Dict[str, Any]:
    """Translate parsed subcommand arguments into a `run_probe` request."""
    if args.command == "axfr":
        return {"domain": normalize_target_input(args.domain), "nameserver": args.nameserver}
    if args.command == "dns-perf":
        return {"domain": normalize_target_input(args.domain), "recordType": args.record_type}
    if args.command == "dnsbl":
        return {"target": normalize_target_input(args.target)}

    request: Dict[str, Any] = {"action": args.action}
    host = normalize_target_input(args.host)
    if args.action in ("ocsp-stapling", "cipher-presets"):
        request["hostname"] = host
    else:
        request["host"] = host
    if args.port is not None:
        request["port"] = args.port
    if args.servername:
        request["servername"] = args.servername
    if args.protocols:
        request["protocols"] = [p.strip() for p in args.protocols.split(",") if p.strip()]
    return request
