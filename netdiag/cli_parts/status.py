from __future__ import annotations

from rich import box
from rich.panel import Panel
from rich.table import Table

from ..config import Settings
from ..output import console
from ..version import __version__


def render_runtime_status_panel(kind: str, target: str, settings: Settings, resolver_ip: str) -> None:
    """Startup header: what is probed and with which limits."""
    runtime_width = 80
    key_col_width = 14
    value_col_width = runtime_width - key_col_width - 6

    def _fit_value(value: object) -> str:
        text = str(value)
        if len(text) <= value_col_width:
            return text
        return f"{text[: value_col_width - 3]}..."

    timeouts = {
        "axfr": settings.axfr_timeout,
        "dns-performance": settings.dns_timeout,
        "dnsbl": settings.dnsbl_timeout,
        "tls": settings.tls_timeout,
    }

    status = Table(box=box.MINIMAL, show_header=False, pad_edge=False, expand=False)
    status.add_column("Key", width=key_col_width, no_wrap=True)
    status.add_column("Value", width=value_col_width, no_wrap=True, overflow="crop")
    status.add_row("Target", _fit_value(target))
    status.add_row("Probe", _fit_value(kind))
    status.add_row("Timeout", _fit_value(f"{timeouts.get(kind, settings.dns_timeout):g}s"))
    status.add_row("Concurrency", _fit_value(settings.concurrency))
    status.add_row("DNS", _fit_value(settings.dns or f"{resolver_ip} (system)"))
    if kind == "dns-performance":
        status.add_row("Resolvers", _fit_value(len(settings.resolvers)))
    elif kind == "dnsbl":
        status.add_row("Blacklists", _fit_value(len(settings.blacklists)))

    console.print(Panel(status, title=f"netdiag v{__version__}", border_style="blue", width=runtime_width + 4, expand=False))
