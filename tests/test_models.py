"""Tests for listener model equality and helpers."""
from __future__ import annotations

import pytest

from listenerconf.models import (
    DEFAULT_HTTP_PROTOCOLS,
    CertificateConfig,
    EndpointConfig,
    EndpointDefaults,
    HttpProtocols,
    SslProtocols,
    flag_label,
)
from listenerconf.source import ConfigurationSection, build_configuration


def _endpoint_section(**values: object) -> ConfigurationSection:
    root = build_configuration({"Endpoints": {"Https": values}})
    return root.get_section("Endpoints:Https")


def test_certificate_predicates() -> None:
    """File and store predicates depend on non-empty path/subject."""
    assert CertificateConfig(path="cert.pfx").is_file_cert is True
    assert CertificateConfig(path="").is_file_cert is False
    assert CertificateConfig(subject="example.com").is_store_cert is True
    empty = CertificateConfig()
    assert (empty.is_file_cert, empty.is_store_cert) == (False, False)
    both = CertificateConfig(path="cert.pfx", subject="example.com")
    assert (both.is_file_cert, both.is_store_cert) == (True, True)


def test_certificate_allow_invalid_false_equals_unset() -> None:
    """An explicit False and an unset allow_invalid compare equal."""
    explicit = CertificateConfig(path="cert.pfx", allow_invalid=False)
    unset = CertificateConfig(path="cert.pfx")

    assert explicit == unset
    assert hash(explicit) == hash(unset)
    assert CertificateConfig(path="cert.pfx", allow_invalid=True) != unset


def test_certificate_equality_ignores_section_and_key_order() -> None:
    """Binding differently ordered sections produces equal certificates."""
    first = build_configuration({"C": {"Path": "cert.pfx", "Password": "pw"}})
    second = build_configuration({"C": {"password": "pw", "path": "cert.pfx"}})

    assert CertificateConfig.from_section(first.get_section("C")) == (
        CertificateConfig.from_section(second.get_section("C"))
    )


@pytest.mark.parametrize(
    "field_name, value",
    [
        ("path", "other.pfx"),
        ("password", "other"),
        ("subject", "other.example"),
        ("store", "Root"),
        ("location", "LocalMachine"),
    ],
)
def test_certificate_fields_participate_in_equality(field_name: str, value: str) -> None:
    """Every modelled field contributes to equality."""
    base = CertificateConfig(
        path="cert.pfx", password="pw", subject="s", store="My", location="CurrentUser"
    )
    other = CertificateConfig(**{**base.to_dict(redact=False), field_name: value})

    assert base != other


def test_certificate_to_dict_redacts_password() -> None:
    """Passwords are masked unless redaction is disabled."""
    certificate = CertificateConfig(path="cert.pfx", password="secret")

    assert certificate.to_dict()["password"] == "********"
    assert certificate.to_dict(redact=False)["password"] == "secret"


def test_endpoint_defaults_value_equality() -> None:
    """Defaults with the same fields are interchangeable."""
    assert EndpointDefaults(HttpProtocols.HTTP2, SslProtocols.TLS12) == EndpointDefaults(
        HttpProtocols.HTTP2, SslProtocols.TLS12
    )
    assert EndpointDefaults() != EndpointDefaults(protocols=HttpProtocols.HTTP1)


def test_endpoint_equality_uses_effective_values() -> None:
    """Unset protocols equal the platform defaults in comparisons."""
    section = _endpoint_section(Url="https://*:5001")
    unset = EndpointConfig("Https", "https://*:5001", config_section=section)
    explicit = EndpointConfig(
        "Https",
        "https://*:5001",
        protocols=DEFAULT_HTTP_PROTOCOLS,
        ssl_protocols=SslProtocols.NONE,
        config_section=section,
    )

    assert unset == explicit
    assert explicit == unset
    assert hash(unset) == hash(explicit)


def test_endpoint_equality_compares_typed_fields() -> None:
    """A changed typed field breaks equality even with the same section."""
    section = _endpoint_section(Url="https://*:5001")
    first = EndpointConfig("Https", "https://*:5001", config_section=section)
    second = EndpointConfig("Https", "https://*:5001", config_section=section)

    second.protocols = HttpProtocols.HTTP1
    assert first != second

    second.protocols = None
    second.certificate = CertificateConfig(path="cert.pfx")
    assert first != second


def test_endpoint_snapshot_is_taken_on_assignment() -> None:
    """Mutating the live section does not change an existing endpoint."""
    section = _endpoint_section(Url="https://*:5001", Custom="a")
    endpoint = EndpointConfig("Https", "https://*:5001", config_section=section)
    twin = EndpointConfig("Https", "https://*:5001", config_section=section)

    section["Custom"] = "b"

    assert endpoint == twin
    rebuilt = EndpointConfig("Https", "https://*:5001", config_section=section)
    assert rebuilt != endpoint

    endpoint.config_section = section
    assert endpoint == rebuilt


def test_endpoint_equality_with_other_types() -> None:
    """Comparison against unrelated objects is False, not an error."""
    endpoint = EndpointConfig("Https", "https://*:5001")

    assert endpoint != "Https"
    assert endpoint == endpoint
    assert endpoint.certificate == CertificateConfig()


def test_resolve_layers_endpoint_defaults_and_platform() -> None:
    """Endpoint values win over defaults, which win over platform values."""
    defaults = EndpointDefaults(HttpProtocols.HTTP2, SslProtocols.TLS12)
    unset = EndpointConfig("Http", "http://*:5000")
    explicit = EndpointConfig(
        "Http", "http://*:5000", protocols=HttpProtocols.HTTP1, ssl_protocols=SslProtocols.TLS13
    )

    assert unset.resolve_protocols() is HttpProtocols.HTTP1_AND_HTTP2
    assert unset.resolve_ssl_protocols() is SslProtocols.NONE
    assert unset.resolve_protocols(defaults) is HttpProtocols.HTTP2
    assert unset.resolve_ssl_protocols(defaults) is SslProtocols.TLS12
    assert explicit.resolve_protocols(defaults) is HttpProtocols.HTTP1
    assert explicit.resolve_ssl_protocols(defaults) is SslProtocols.TLS13


def test_flag_label_uses_config_spelling() -> None:
    """Labels match the names accepted in configuration files."""
    assert flag_label(None) is None
    assert flag_label(HttpProtocols.HTTP1_AND_HTTP2) == "Http1AndHttp2"
    assert flag_label(SslProtocols.NONE) == "None"
    assert flag_label(SslProtocols.TLS12 | SslProtocols.TLS13) == "Tls12, Tls13"
    assert flag_label(SslProtocols.SSL3 | SslProtocols.TLS) == "Default"


def test_endpoint_to_dict_reports_effective_values() -> None:
    """Serialised endpoints include raw and effective protocol values."""
    endpoint = EndpointConfig("Https", "https://*:5001", ssl_protocols=SslProtocols.TLS12)

    data = endpoint.to_dict(EndpointDefaults(protocols=HttpProtocols.HTTP2))

    assert data["protocols"] is None
    assert data["effective_protocols"] == "Http2"
    assert data["ssl_protocols"] == "Tls12"
    assert data["certificate"] == CertificateConfig().to_dict()
