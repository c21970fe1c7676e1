from __future__ import annotations

"""Command-line interface for netdiag.

This module translates CLI flags into runtime settings, runs one probe through
`netdiag.core.run_probe`, and renders the result as rich tables or JSON.
"""

import argparse
import logging
import os
import sys
from datetime import datetime
from typing import List, Optional

from .cli_parts.flow import build_request as _build_request, print_json_output as _print_json_output
from .cli_parts.status import render_runtime_status_panel as _render_runtime_status_panel
from .config import load_settings
from .core import run_probe
from .engine.dns_client import RECORD_TYPES, default_resolver_ip
from .engine.runtime import logger
from .errors import DiagnosticError, ResolutionError, TLSConnectionError, ValidationError
from .output import (
    console,
    err_console,
    output_axfr,
    output_dns_performance,
    output_dnsbl,
    output_tls,
    print_settings_status,
)
from .probes.tls import ACTIONS as TLS_ACTIONS
from .version import __version__, check_latest_version

EXIT_VALIDATION = 2
EXIT_FAILURE = 1

COMMAND_KINDS = {
    "axfr": "axfr",
    "dns-perf": "dns-performance",
    "dnsbl": "dnsbl",
    "tls": "tls",
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="netdiag",
        description=(
            f"netdiag v.{__version__} - DNS and TLS diagnostics\n"
            "CLI options > environment (.env) > built-in defaults."
        ),
    )
    parser.add_argument("--version", action="version", version=f"netdiag {__version__}")

    runtime_group = parser.add_argument_group("Runtime Overrides (Advanced)")
    runtime_group.add_argument("--dns", help="Resolver IP for NS/A/AAAA and blacklist lookups.", dest="dns")
    runtime_group.add_argument(
        "--timeout",
        help="Per-endpoint timeout in seconds for the selected probe.",
        dest="timeout",
        type=float,
    )
    runtime_group.add_argument("--concurrency", help="Maximum probes in flight.", dest="concurrency", type=int)

    output_group = parser.add_argument_group("Output")
    output_group.add_argument("--json", help="JSON-only output.", action="store_true")
    output_group.add_argument("--silent", help="Hide the startup panel.", action="store_true")
    output_group.add_argument("--status", help="Print effective settings and continue.", action="store_true")
    output_group.add_argument("--debug", help="Verbose logging on stderr.", action="store_true")
    output_group.add_argument(
        "--check-update",
        help="Check if a newer netdiag version is available online (PyPI).",
        action="store_true",
    )

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    axfr = sub.add_parser("axfr", help="Test nameservers for open zone transfers.")
    axfr.add_argument("domain", help="Domain to test.")
    axfr.add_argument("-n", "--nameserver", help="Test only this nameserver (name or IP).")

    perf = sub.add_parser("dns-perf", help="Compare public resolver response times.")
    perf.add_argument("domain", help="Domain to query.")
    perf.add_argument(
        "-t",
        "--type",
        dest="record_type",
        default="A",
        type=str.upper,
        choices=RECORD_TYPES,
        help="Record type (default: A).",
    )

    dnsbl = sub.add_parser("dnsbl", help="Check an IP or domain against DNS blacklists.")
    dnsbl.add_argument("target", help="IPv4, IPv6 or domain.")

    tls = sub.add_parser("tls", help="Inspect a TLS endpoint.")
    tls.add_argument("action", choices=TLS_ACTIONS, help="What to inspect.")
    tls.add_argument("host", help="Host or host:port.")
    tls.add_argument("-p", "--port", type=int, help="Port (default: 443).")
    tls.add_argument("--servername", help="SNI name, when it differs from host.")
    tls.add_argument("--protocols", help="Comma-separated ALPN protocols (alpn only).")
    return parser


def _timeout_overrides(command: str, timeout: Optional[float]) -> dict:
    if timeout is None:
        return {}
    field = {
        "axfr": "axfr_timeout",
        "dns-perf": "dns_timeout",
        "dnsbl": "dnsbl_timeout",
        "tls": "tls_timeout",
    }[command]
    return {field: timeout}


def _check_update() -> None:
    info = check_latest_version(current=__version__)
    if info.get("ok"):
        latest = str(info.get("latest") or __version__)
        if info.get("update_available"):
            console.print(
                f"[yellow]Update available:[/yellow] current={__version__} latest={latest} "
                "[cyan](pip install -U netdiag-probes)[/cyan]"
            )
        else:
            console.print(f"[green]You are up-to-date:[/green] v{__version__}")
    else:
        reason = str(info.get("error") or "unknown error")
        err_console.print(f"[yellow]Update check failed:[/yellow] {reason}")


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entrypoint.

    Exit status: 0 on a completed probe (whatever its verdict), 2 on invalid
    input, 1 when the target cannot be resolved or reached.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.debug:
        logger.setLevel(logging.DEBUG)
    if args.check_update:
        _check_update()
        return
    if args.timeout is not None and args.timeout <= 0:
        err_console.print("[red]--timeout must be positive[/red]")
        sys.exit(EXIT_VALIDATION)
    if args.concurrency is not None and args.concurrency < 1:
        err_console.print("[red]--concurrency must be >= 1[/red]")
        sys.exit(EXIT_VALIDATION)

    overrides = _timeout_overrides(args.command, args.timeout) if args.command else {}
    settings = load_settings(dns=args.dns, concurrency=args.concurrency, **overrides)
    resolver_ip = settings.dns or default_resolver_ip()

    if args.status and not args.json:
        print_settings_status(settings, resolver_ip)
    if not args.command:
        if args.status:
            return
        parser.print_help(sys.stderr)
        return

    kind = COMMAND_KINDS[args.command]
    request = _build_request(args)
    if not args.silent and not args.json:
        target = request.get("domain") or request.get("target") or request.get("host") or request.get("hostname")
        _render_runtime_status_panel(kind, str(target), settings, resolver_ip)

    start_time = datetime.now()
    try:
        if args.json:
            result = run_probe(kind, request, settings=settings)
        else:
            with console.status(f"[cyan]Running {args.command}...[/cyan]"):
                result = run_probe(kind, request, settings=settings)
    except ValidationError as exc:
        err_console.print(f"[red]Invalid input:[/red] {exc}")
        sys.exit(EXIT_VALIDATION)
    except (ResolutionError, TLSConnectionError) as exc:
        err_console.print(f"[red]{exc}[/red]")
        sys.exit(EXIT_FAILURE)
    except DiagnosticError as exc:
        err_console.print(f"[red]Probe failed:[/red] {exc}")
        sys.exit(EXIT_FAILURE)
    elapsed = datetime.now() - start_time

    if args.json:
        _print_json_output(result)
        return
    if kind == "axfr":
        output_axfr(result, elapsed)
    elif kind == "dns-performance":
        output_dns_performance(result, elapsed)
    elif kind == "dnsbl":
        output_dnsbl(result, elapsed)
    else:
        output_tls(args.action, result, elapsed)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Interrupted[/yellow]")
        try:
            sys.exit(0)
        except SystemExit:
            os._exit(0)
