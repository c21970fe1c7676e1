from __future__ import annotations

import pytest

from netdiag.errors import ValidationError
from netdiag.probes import validation


def test_normalize_domain_trims_and_lowercases():
    assert validation.normalize_domain("  Example.COM. ") == "example.com"
    assert validation.normalize_domain("_dmarc.example.com") == "_dmarc.example.com"


@pytest.mark.parametrize("value", ["", "   ", None, "localhost", "bad domain.com", "a" * 250 + ".com", "-x.example.com"])
def test_normalize_domain_rejects(value):
    with pytest.raises(ValidationError):
        validation.normalize_domain(value)


def test_classify_target_kinds():
    assert validation.classify_target("192.0.2.1") == validation.ProbeTarget("192.0.2.1", validation.IPV4)
    assert validation.classify_target("2001:DB8::1").kind == validation.IPV6
    assert validation.classify_target("Example.com").value == "example.com"
    with pytest.raises(ValidationError):
        validation.classify_target("256.1.1.1")


def test_parse_host_variants():
    assert validation.parse_host("Example.com") == ("example.com", 443)
    assert validation.parse_host("example.com:8443") == ("example.com", 8443)
    assert validation.parse_host("example.com:8443", port=9443) == ("example.com", 9443)
    assert validation.parse_host("[2001:db8::1]:853") == ("2001:db8::1", 853)
    assert validation.parse_host("2001:db8::1") == ("2001:db8::1", 443)


@pytest.mark.parametrize("value", ["exa mple.com", "bad_host!", "example.com:abc", "-leading.example.com", "[::1"])
def test_parse_host_rejects_malformed_hosts(value):
    with pytest.raises(ValidationError):
        validation.parse_host(value)


def test_parse_host_accepts_single_label_and_ips():
    assert validation.parse_host("localhost:8443") == ("localhost", 8443)
    assert validation.parse_host("127.0.0.1") == ("127.0.0.1", 443)


def test_normalize_nameserver():
    assert validation.normalize_nameserver(None) is None
    assert validation.normalize_nameserver("  ") is None
    assert validation.normalize_nameserver("NS1.Example.com.") == "ns1.example.com"
    assert validation.normalize_nameserver("192.0.2.53") == "192.0.2.53"
    for bad in ("ns1 example com", "999.1.1.1", "ns1", 53):
        with pytest.raises(ValidationError):
            validation.normalize_nameserver(bad)


@pytest.mark.parametrize("port", [0, 65536, "abc", True, -1])
def test_validate_port_rejects(port):
    with pytest.raises(ValidationError):
        validation.validate_port(port)
