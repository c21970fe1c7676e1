from __future__ import annotations

import json
from argparse import Namespace

import pytest

import netdiag.cli as cli
from netdiag.cli_parts.flow import build_request, normalize_target_input
from netdiag.errors import ResolutionError, ValidationError


def _tls_args(**kwargs):
    values = {"command": "tls", "action": "versions", "host": "example.com", "port": None, "servername": None, "protocols": None}
    values.update(kwargs)
    return Namespace(**values)


def test_normalize_target_input_accepts_url_and_plain_host():
    assert normalize_target_input("https://Example.com/path?q=1") == "example.com"
    assert normalize_target_input("https://example.com:8443/") == "example.com:8443"
    assert normalize_target_input("  sub.example.com ") == "sub.example.com"
    assert normalize_target_input(None) == ""


def test_build_request_dns_commands():
    assert build_request(Namespace(command="axfr", domain="example.com", nameserver=None)) == {
        "domain": "example.com",
        "nameserver": None,
    }
    assert build_request(Namespace(command="dns-perf", domain="example.com", record_type="MX")) == {
        "domain": "example.com",
        "recordType": "MX",
    }
    assert build_request(Namespace(command="dnsbl", target="127.0.0.2")) == {"target": "127.0.0.2"}


def test_build_request_tls_fields():
    assert build_request(_tls_args(port=8443, servername="www.example.com")) == {
        "action": "versions",
        "host": "example.com",
        "port": 8443,
        "servername": "www.example.com",
    }
    assert build_request(_tls_args(action="alpn", protocols="h2, http/1.1,")) == {
        "action": "alpn",
        "host": "example.com",
        "protocols": ["h2", "http/1.1"],
    }
    assert build_request(_tls_args(action="cipher-presets")) == {"action": "cipher-presets", "hostname": "example.com"}


def test_timeout_overrides_target_the_command():
    assert cli._timeout_overrides("axfr", None) == {}
    assert cli._timeout_overrides("axfr", 3.0) == {"axfr_timeout": 3.0}
    assert cli._timeout_overrides("dnsbl", 0.5) == {"dnsbl_timeout": 0.5}
    assert cli._timeout_overrides("tls", 4.0) == {"tls_timeout": 4.0}


def test_main_prints_json(monkeypatch, capsys):
    seen = {}

    def fake_run_probe(kind, request, settings=None):
        seen.update(kind=kind, request=request, settings=settings)
        return {"target": "127.0.0.2", "summary": {"listedCount": 1}}

    monkeypatch.setattr(cli, "run_probe", fake_run_probe)
    cli.main(["--json", "--dns", "9.9.9.9", "--timeout", "2", "dnsbl", "127.0.0.2"])

    assert json.loads(capsys.readouterr().out)["summary"] == {"listedCount": 1}
    assert seen["kind"] == "dnsbl"
    assert seen["request"] == {"target": "127.0.0.2"}
    assert seen["settings"].dns == "9.9.9.9"
    assert seen["settings"].dnsbl_timeout == 2.0


@pytest.mark.parametrize(
    "exc,code",
    [
        (ValidationError("Invalid domain format"), cli.EXIT_VALIDATION),
        (ResolutionError("Domain not found or has no nameservers"), cli.EXIT_FAILURE),
    ],
)
def test_main_exit_codes(monkeypatch, exc, code):
    def fake_run_probe(kind, request, settings=None):
        raise exc

    monkeypatch.setattr(cli, "run_probe", fake_run_probe)
    with pytest.raises(SystemExit) as info:
        cli.main(["--json", "--dns", "9.9.9.9", "axfr", "example.com"])
    assert info.value.code == code


def test_main_rejects_non_positive_timeout():
    with pytest.raises(SystemExit) as info:
        cli.main(["--json", "--timeout", "0", "dnsbl", "127.0.0.2"])
    assert info.value.code == cli.EXIT_VALIDATION
