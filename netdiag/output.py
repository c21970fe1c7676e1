from __future__ import annotations

"""Terminal rendering helpers for netdiag.

Presentation-only: every function takes an already-built result dict and
prints it with rich. No network I/O happens here.
"""

from datetime import timedelta
from typing import Any, Dict, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import Settings

console = Console()
err_console = Console(stderr=True)

KV_FIELD_WIDTH = 24
WEAK_TLS = ("TLSv1", "TLSv1.1")


def _table_width() -> int:
    try:
        return max(80, int(console.size.width) - 2)
    except (TypeError, ValueError):
        return 100


def _new_table(
    *,
    title: Optional[str] = None,
    box_style: Any = box.SIMPLE,
    show_header: bool = True,
    header_style: Optional[str] = None,
) -> Table:
    return Table(
        title=title,
        box=box_style,
        show_header=show_header,
        header_style=header_style,
        title_justify="left",
        width=_table_width(),
        expand=False,
        pad_edge=False,
    )


def _add_kv_columns(table: Table) -> None:
    table.add_column("Field", style="cyan", width=KV_FIELD_WIDTH, min_width=KV_FIELD_WIDTH, no_wrap=True)
    table.add_column("Value", overflow="fold", no_wrap=False)


def fmt_td(td: Optional[timedelta]) -> str:
    if td is None:
        return "-"
    total = int(td.total_seconds())
    hours, rem = divmod(total, 3600)
    minutes, seconds = divmod(rem, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def fmt_ms(value: Any) -> str:
    try:
        return f"{float(value):.2f} ms"
    except (TypeError, ValueError):
        return "-"


def _flag(value: Any, good: str = "yes", bad: str = "no") -> str:
    return f"[green]{good}[/green]" if value else f"[red]{bad}[/red]"


def _footer(summary: Dict[str, Any], elapsed: Optional[timedelta]) -> None:
    parts = [f"[bold]{key}:[/bold] {value}" for key, value in summary.items()]
    parts.append(f"[bold]Elapsed:[/bold] {fmt_td(elapsed)}")
    console.print(Panel.fit("  ".join(parts), border_style="cyan"))


def output_axfr(result: Dict[str, Any], elapsed: Optional[timedelta] = None) -> None:
    table = _new_table(title=f"AXFR {result.get('domain')}", box_style=box.SIMPLE_HEAVY, header_style="bold cyan")
    table.add_column("Nameserver", style="cyan", no_wrap=True)
    table.add_column("IP", no_wrap=True)
    table.add_column("Status", justify="center", no_wrap=True)
    table.add_column("Records", justify="right", no_wrap=True)
    table.add_column("Time", justify="right", no_wrap=True)
    table.add_column("Detail", overflow="fold")

    for item in result.get("nameservers") or []:
        if item.get("vulnerable"):
            status = "[red]vulnerable[/red]"
        elif item.get("error"):
            status = "[yellow]error[/yellow]"
        else:
            status = "[green]secure[/green]"
        table.add_row(
            str(item.get("nameserver") or "-"),
            str(item.get("ip") or "-"),
            status,
            str(item.get("recordCount") or "-"),
            fmt_ms(item.get("responseTime")),
            str(item.get("error") or item.get("message") or "-"),
        )
    console.print(table)

    for item in result.get("nameservers") or []:
        records = item.get("records") or []
        if records:
            console.print(f"[red]Zone data leaked by {item.get('nameserver')}[/red] (first {len(records)} records)")
            for line in records:
                console.print(f"  {line}", markup=False, highlight=False)
    _footer(result.get("summary") or {}, elapsed)


def output_dns_performance(result: Dict[str, Any], elapsed: Optional[timedelta] = None) -> None:
    title = f"Resolver performance {result.get('domain')} {result.get('recordType')}"
    table = _new_table(title=title, box_style=box.SIMPLE_HEAVY, header_style="bold cyan")
    table.add_column("Resolver", style="cyan", no_wrap=True)
    table.add_column("IP", no_wrap=True)
    table.add_column("Time", justify="right", no_wrap=True)
    table.add_column("Answer", overflow="fold")

    rows = sorted(result.get("results") or [], key=lambda r: (not r.get("success"), r.get("responseTime") or 0))
    for item in rows:
        if item.get("success"):
            answer = ", ".join(item.get("records") or []) or "-"
            time_text = f"[green]{fmt_ms(item.get('responseTime'))}[/green]"
        else:
            answer = f"[red]{item.get('error') or 'failed'}[/red]"
            time_text = fmt_ms(item.get("responseTime"))
        table.add_row(str(item.get("resolverName")), str(item.get("resolver")), time_text, answer)
    console.print(table)

    stats = result.get("statistics") or {}
    fastest = stats.get("fastest") or {}
    slowest = stats.get("slowest") or {}
    summary = {
        "Fastest": f"{fastest.get('resolver')} ({fmt_ms(fastest.get('time'))})",
        "Slowest": f"{slowest.get('resolver')} ({fmt_ms(slowest.get('time'))})",
        "Average": fmt_ms(stats.get("average")),
        "Median": fmt_ms(stats.get("median")),
        "Success": f"{stats.get('successRate', 0)}%",
    }
    _footer(summary, elapsed)


def output_dnsbl(result: Dict[str, Any], elapsed: Optional[timedelta] = None) -> None:
    title = f"Blacklists {result.get('target')} ({result.get('targetType')})"
    table = _new_table(title=title, box_style=box.SIMPLE_HEAVY, header_style="bold cyan")
    table.add_column("List", style="cyan", no_wrap=True)
    table.add_column("Status", justify="center", no_wrap=True)
    table.add_column("Time", justify="right", no_wrap=True)
    table.add_column("Detail", overflow="fold")

    for item in result.get("results") or []:
        if item.get("listed"):
            status = "[red]listed[/red]"
            detail = " ".join(str(v) for v in (item.get("response"), item.get("reason")) if v)
        elif item.get("error"):
            status = "[yellow]error[/yellow]"
            detail = str(item.get("error"))
        else:
            status = "[green]clean[/green]"
            detail = "-"
        table.add_row(str(item.get("rbl")), status, fmt_ms(item.get("responseTime")), detail or "-")

    if result.get("resolvedIPs"):
        console.print(f"[cyan]Resolved:[/cyan] {', '.join(result['resolvedIPs'])}")
    console.print(table)
    _footer(result.get("summary") or {}, elapsed)


def _print_certificate(cert: Dict[str, Any], title: str) -> None:
    table = _new_table(title=title, box_style=box.SIMPLE)
    _add_kv_columns(table)
    table.add_row("Subject", str(cert.get("subjectDN") or "-"))
    table.add_row("Issuer", str(cert.get("issuerDN") or "-"))
    table.add_row("Valid From", str(cert.get("validFrom") or "-"))
    table.add_row("Valid To", str(cert.get("validTo") or "-"))
    days = cert.get("daysUntilExpiry")
    if cert.get("isExpired"):
        table.add_row("Expiry", f"[red]expired ({days} days)[/red]")
    elif isinstance(days, int) and days < 30:
        table.add_row("Expiry", f"[yellow]{days} days[/yellow]")
    else:
        table.add_row("Expiry", f"[green]{days} days[/green]")
    table.add_row("Serial", str(cert.get("serialNumber") or "-"))
    table.add_row("SHA-256", str(cert.get("fingerprint256") or "-"))
    table.add_row("SAN", ", ".join(cert.get("subjectAltNames") or []) or "-")
    table.add_row("Key Usage", ", ".join(cert.get("keyUsage") or []) or "-")
    console.print(table)


def _output_tls_certificate(result: Dict[str, Any]) -> None:
    cipher = result.get("cipher") or {}
    table = _new_table(title=f"TLS session {result.get('servername')}", box_style=box.SIMPLE)
    _add_kv_columns(table)
    table.add_row("Protocol", str(result.get("protocol") or "-"))
    table.add_row("Cipher", f"{cipher.get('name') or '-'} ({cipher.get('bits') or '-'} bits)")
    table.add_row("ALPN", str(result.get("alpnProtocol") or "-"))
    table.add_row("Chain Length", str(len(result.get("chain") or [])))
    console.print(table)
    for index, cert in enumerate(result.get("chain") or []):
        label = "Leaf" if index == 0 else f"Chain #{index}"
        _print_certificate(cert, f"{label}: {(cert.get('subject') or {}).get('CN') or '-'}")


def _output_tls_versions(result: Dict[str, Any]) -> None:
    table = _new_table(title="TLS versions", box_style=box.SIMPLE)
    _add_kv_columns(table)
    errors = result.get("errors") or {}
    for version, supported in (result.get("supported") or {}).items():
        if supported:
            text = "[yellow]enabled (legacy)[/yellow]" if version in WEAK_TLS else "[green]enabled[/green]"
        else:
            text = f"[dim]disabled[/dim] {errors.get(version, '')}".rstrip()
        table.add_row(version, text)
    console.print(table)
    weak = [v for v in result.get("supportedVersions") or [] if v in WEAK_TLS]
    if weak:
        err_console.print(f"[yellow]Warning:[/yellow] legacy TLS enabled: {', '.join(weak)}")


def _output_tls_alpn(result: Dict[str, Any]) -> None:
    table = _new_table(title="ALPN", box_style=box.SIMPLE)
    _add_kv_columns(table)
    table.add_row("Requested", ", ".join(result.get("requestedProtocols") or []))
    table.add_row("Negotiated", str(result.get("negotiatedProtocol") or "-"))
    table.add_row("TLS Version", str(result.get("tlsVersion") or "-"))
    table.add_row("Success", _flag(result.get("success")))
    console.print(table)


def _output_tls_ocsp(result: Dict[str, Any]) -> None:
    cert = result.get("certificate") or {}
    table = _new_table(title=f"OCSP stapling {result.get('hostname')}:{result.get('port')}", box_style=box.SIMPLE)
    _add_kv_columns(table)
    table.add_row("Stapling", _flag(result.get("staplingEnabled"), "enabled", "disabled"))
    response = result.get("ocspResponse") or {}
    table.add_row("Response Size", str(response.get("size") or "-"))
    table.add_row("Subject", str(cert.get("subject") or "-"))
    table.add_row("Issuer", str(cert.get("issuer") or "-"))
    table.add_row("OCSP URLs", ", ".join(cert.get("ocspUrls") or []) or "-")
    console.print(table)
    for note in result.get("recommendations") or []:
        console.print(f"[yellow]Note:[/yellow] {note}")


def _output_tls_presets(result: Dict[str, Any]) -> None:
    table = _new_table(title="Cipher presets", box_style=box.SIMPLE_HEAVY, header_style="bold cyan")
    table.add_column("Preset", style="cyan", no_wrap=True)
    table.add_column("Supported", justify="center", no_wrap=True)
    table.add_column("Protocols", overflow="fold")
    table.add_column("Ciphers", overflow="fold")
    for preset in result.get("presets") or []:
        protocols = ", ".join(
            f"{p['name']}:{'yes' if p.get('supported') else 'no'}" for p in preset.get("protocols") or []
        )
        ciphers = ", ".join(preset.get("supportedCiphers") or []) or "-"
        table.add_row(str(preset.get("name")), _flag(preset.get("supported")), protocols, ciphers)
    console.print(table)

    summary = result.get("summary") or {}
    console.print(
        Panel.fit(
            f"[bold]Grade:[/bold] {summary.get('overallGrade')}  [bold]Rating:[/bold] {summary.get('rating')}\n"
            f"{summary.get('description')}",
            border_style="cyan",
        )
    )
    for note in summary.get("recommendations") or []:
        console.print(f"[yellow]Note:[/yellow] {note}")


TLS_RENDERERS = {
    "certificate": _output_tls_certificate,
    "versions": _output_tls_versions,
    "alpn": _output_tls_alpn,
    "ocsp-stapling": _output_tls_ocsp,
    "cipher-presets": _output_tls_presets,
}


def output_tls(action: str, result: Dict[str, Any], elapsed: Optional[timedelta] = None) -> None:
    TLS_RENDERERS[action](result)
    console.print(f"[dim]Elapsed: {fmt_td(elapsed)}[/dim]")


def print_settings_status(settings: Settings, resolver_ip: str) -> None:
    table = _new_table(title="Effective Settings", box_style=box.MINIMAL_DOUBLE_HEAD)
    _add_kv_columns(table)
    table.add_row("DNS", f"{settings.dns or resolver_ip}{'' if settings.dns else ' (system)'}")
    table.add_row("Concurrency", str(settings.concurrency))
    table.add_row("DNS Timeout", f"{settings.dns_timeout:g}s")
    table.add_row("TLS Timeout", f"{settings.tls_timeout:g}s")
    table.add_row("DNSBL Timeout", f"{settings.dnsbl_timeout:g}s")
    table.add_row("AXFR Timeout", f"{settings.axfr_timeout:g}s")
    table.add_row("Resolvers", str(len(settings.resolvers)))
    table.add_row("Blacklists", str(len(settings.blacklists)))
    console.print(table)
