from __future__ import annotations

from datetime import timedelta

import pytest
from rich.console import Console

import netdiag.output as output
from netdiag.config import Settings


@pytest.fixture
def recorded(monkeypatch):
    console = Console(record=True, width=160, color_system=None)
    monkeypatch.setattr(output, "console", console)
    monkeypatch.setattr(output, "err_console", console)
    return console


def test_fmt_td_formats_hhmmss():
    assert output.fmt_td(timedelta(hours=1, minutes=2, seconds=3)) == "01:02:03"
    assert output.fmt_td(None) == "-"


def test_fmt_ms():
    assert output.fmt_ms(12.345) == "12.35 ms"
    assert output.fmt_ms("N/A") == "-"
    assert output.fmt_ms(None) == "-"


def test_flag_labels():
    assert output._flag(True) == "[green]yes[/green]"
    assert output._flag(False, "enabled", "disabled") == "[red]disabled[/red]"


def test_output_axfr_lists_leaked_records(recorded):
    result = {
        "domain": "example.com",
        "nameservers": [
            {
                "nameserver": "ns1.example.com",
                "ip": "192.0.2.1",
                "vulnerable": True,
                "recordCount": 2,
                "records": ["example.com. 3600 IN SOA ns1 admin 1 2 3 4 5", "www.example.com. 300 IN A 192.0.2.10"],
                "responseTime": 12.5,
            },
            {"nameserver": "ns2.example.com", "ip": "192.0.2.2", "vulnerable": False, "message": "Transfer refused (secure)"},
        ],
        "summary": {"total": 2, "vulnerable": 1, "secure": 1},
    }
    output.output_axfr(result, timedelta(seconds=2))
    text = recorded.export_text()
    assert "vulnerable" in text
    assert "Zone data leaked by ns1.example.com" in text
    assert "www.example.com. 300 IN A 192.0.2.10" in text
    assert "Transfer refused (secure)" in text


def test_output_dnsbl_shows_resolved_ips(recorded):
    result = {
        "target": "example.com",
        "targetType": "domain",
        "resolvedIPs": ["192.0.2.1"],
        "results": [
            {"rbl": "Spamhaus DBL", "listed": True, "response": "127.0.1.2", "reason": "spam domain", "responseTime": 3.0},
            {"rbl": "SpamCop (192.0.2.1)", "listed": False, "error": "Query timeout", "responseTime": 1000.0},
        ],
        "summary": {"totalChecked": 2, "listedCount": 1, "cleanCount": 0, "errorCount": 1},
    }
    output.output_dnsbl(result)
    text = recorded.export_text()
    assert "Resolved: 192.0.2.1" in text
    assert "127.0.1.2 spam domain" in text
    assert "Query timeout" in text


def test_output_tls_presets_prints_grade(recorded):
    result = {
        "presets": [
            {"name": "Modern", "supported": False, "protocols": [{"name": "TLS 1.3", "supported": False}], "supportedCiphers": []},
        ],
        "summary": {
            "overallGrade": "F",
            "rating": "Poor",
            "description": "Server does not support secure cipher suites",
            "recommendations": ["Enable TLS 1.3 for best performance and security"],
        },
    }
    output.output_tls("cipher-presets", result, timedelta(seconds=1))
    text = recorded.export_text()
    assert "Grade: F" in text
    assert "Enable TLS 1.3" in text
    assert "Elapsed: 00:00:01" in text


def test_output_tls_versions_warns_on_legacy(recorded):
    result = {
        "supported": {"TLSv1": True, "TLSv1.1": False, "TLSv1.2": True, "TLSv1.3": False},
        "errors": {"TLSv1.1": "Timeout", "TLSv1.3": "SSLError: no protocols available"},
        "supportedVersions": ["TLSv1", "TLSv1.2"],
    }
    output.output_tls("versions", result)
    text = recorded.export_text()
    assert "enabled (legacy)" in text
    assert "legacy TLS enabled: TLSv1" in text


def test_print_settings_status_marks_system_resolver(recorded):
    output.print_settings_status(Settings(), "192.0.2.53")
    text = recorded.export_text()
    assert "192.0.2.53 (system)" in text
    assert "DNSBL Timeout" in text
