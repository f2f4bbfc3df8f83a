"""Typed listener descriptions produced by :mod:`listenerconf.reader`.

Configuration shapes::

    "EndpointDefaults": {
        "Protocols": "Http1AndHttp2",
        "SslProtocols": ["Tls11", "Tls12", "Tls13"]
    }

    "EndpointName": {
        "Url": "https://*:5463",
        "Protocols": "Http1AndHttp2",
        "SslProtocols": ["Tls11", "Tls12", "Tls13"],
        "Certificate": {"Path": "testCert.pfx", "Password": "testPassword"}
    }
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntFlag

from .source import ConfigurationSection, SectionSnapshot


class HttpProtocols(IntFlag):
    """HTTP protocol versions a listener accepts."""

    NONE = 0
    HTTP1 = 1
    HTTP2 = 2
    HTTP1_AND_HTTP2 = HTTP1 | HTTP2


class SslProtocols(IntFlag):
    """TLS/SSL protocol versions, using the platform's bit values."""

    NONE = 0
    SSL2 = 12
    SSL3 = 48
    TLS = 192
    DEFAULT = SSL3 | TLS
    TLS11 = 768
    TLS12 = 3072
    TLS13 = 12288


DEFAULT_HTTP_PROTOCOLS = HttpProtocols.HTTP1_AND_HTTP2
DEFAULT_SSL_PROTOCOLS = SslProtocols.NONE


def flag_label(value: IntFlag | None) -> str | None:
    """Return the configuration spelling of *value*, e.g. ``Http1AndHttp2``.

    Values without a dedicated member are written as a comma-separated list
    of the largest members that make them up (``Tls12, Tls13``).
    """
    if value is None:
        return None
    members = sorted(type(value).__members__.values(), key=lambda member: member.value)
    for member in members:
        if member.value == value:
            return _config_name(member)
    parts: list[str] = []
    remaining = int(value)
    for member in reversed(members):
        if member.value and member.value & remaining == member.value:
            parts.append(_config_name(member))
            remaining &= ~member.value
    if remaining:
        parts.append(str(remaining))
    return ", ".join(reversed(parts))


def _config_name(member: IntFlag) -> str:
    name = member.name or ""
    return "".join(part.capitalize() for part in name.split("_"))


@dataclass(eq=False)
class CertificateConfig:
    """One certificate source: a file (path + password) or a store entry."""

    path: str | None = None
    password: str | None = None
    subject: str | None = None
    store: str | None = None
    location: str | None = None
    allow_invalid: bool | None = None
    config_section: ConfigurationSection | None = field(default=None, repr=False)

    @classmethod
    def from_section(cls, section: ConfigurationSection) -> CertificateConfig:
        """Bind a certificate subsection into a new instance."""
        certificate = cls(config_section=section)
        section.bind(certificate)
        return certificate

    @property
    def is_file_cert(self) -> bool:
        """Return True when a certificate file path is configured."""
        return bool(self.path)

    @property
    def is_store_cert(self) -> bool:
        """Return True when a certificate store subject is configured."""
        return bool(self.subject)

    def _identity(self) -> tuple[object, ...]:
        return (
            self.path,
            self.password,
            self.subject,
            self.store,
            self.location,
            bool(self.allow_invalid),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CertificateConfig):
            return NotImplemented
        return self._identity() == other._identity()

    def __hash__(self) -> int:
        return hash(self._identity())

    def to_dict(self, *, redact: bool = True) -> dict[str, object]:
        """Return a serialisable representation."""
        password = self.password
        if redact and password:
            password = "********"
        return {
            "path": self.path,
            "password": password,
            "subject": self.subject,
            "store": self.store,
            "location": self.location,
            "allow_invalid": self.allow_invalid,
        }


@dataclass(frozen=True)
class EndpointDefaults:
    """Process-wide fallback protocol and TLS settings."""

    protocols: HttpProtocols | None = None
    ssl_protocols: SslProtocols | None = None

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "protocols": flag_label(self.protocols),
            "ssl_protocols": flag_label(self.ssl_protocols),
        }


class EndpointConfig:
    """One named listener read from the ``Endpoints`` section.

    Besides the typed fields, the endpoint keeps its backing configuration
    section and a snapshot of that section taken when the section is
    assigned. The section stays reachable to application code and may be
    mutated after the endpoint is built; equality compares the snapshot so
    such edits are only observed once a new endpoint is built from the
    section. The typed fields are compared as well because reload code may
    overwrite them with defaults without touching the section.
    """

    def __init__(
        self,
        name: str,
        url: str,
        *,
        protocols: HttpProtocols | None = None,
        ssl_protocols: SslProtocols | None = None,
        certificate: CertificateConfig | None = None,
        config_section: ConfigurationSection | None = None,
    ) -> None:
        """Create an endpoint; the section snapshot is taken immediately."""
        self.name = name
        self.url = url
        self.protocols = protocols
        self.ssl_protocols = ssl_protocols
        self.certificate = certificate if certificate is not None else CertificateConfig()
        self._config_section: ConfigurationSection | None = None
        self._snapshot: SectionSnapshot | None = None
        self.config_section = config_section

    @property
    def config_section(self) -> ConfigurationSection | None:
        """Return the live configuration section backing this endpoint."""
        return self._config_section

    @config_section.setter
    def config_section(self, section: ConfigurationSection | None) -> None:
        self._config_section = section
        self._snapshot = section.snapshot() if section is not None else None

    @property
    def snapshot(self) -> SectionSnapshot | None:
        """Return the section snapshot captured at assignment time."""
        return self._snapshot

    def resolve_protocols(self, defaults: EndpointDefaults | None = None) -> HttpProtocols:
        """Return the effective protocols: endpoint, then defaults, then platform."""
        if self.protocols is not None:
            return self.protocols
        if defaults is not None and defaults.protocols is not None:
            return defaults.protocols
        return DEFAULT_HTTP_PROTOCOLS

    def resolve_ssl_protocols(self, defaults: EndpointDefaults | None = None) -> SslProtocols:
        """Return the effective TLS versions; ``NONE`` applies no restriction."""
        if self.ssl_protocols is not None:
            return self.ssl_protocols
        if defaults is not None and defaults.ssl_protocols is not None:
            return defaults.ssl_protocols
        return DEFAULT_SSL_PROTOCOLS

    def _identity(self) -> tuple[object, ...]:
        return (
            self.name,
            self.url,
            self.resolve_protocols(),
            self.certificate,
            self.resolve_ssl_protocols(),
            self._snapshot,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EndpointConfig):
            return NotImplemented
        return self._identity() == other._identity()

    def __hash__(self) -> int:
        return hash(self._identity())

    def __repr__(self) -> str:
        return (
            f"EndpointConfig(name={self.name!r}, url={self.url!r}, "
            f"protocols={self.protocols!r}, ssl_protocols={self.ssl_protocols!r}, "
            f"certificate={self.certificate!r})"
        )

    def to_dict(self, defaults: EndpointDefaults | None = None) -> dict[str, object]:
        """Return a serialisable representation including effective values."""
        return {
            "name": self.name,
            "url": self.url,
            "protocols": flag_label(self.protocols),
            "ssl_protocols": flag_label(self.ssl_protocols),
            "effective_protocols": flag_label(self.resolve_protocols(defaults)),
            "effective_ssl_protocols": flag_label(self.resolve_ssl_protocols(defaults)),
            "certificate": self.certificate.to_dict(),
        }


__all__ = [
    "DEFAULT_HTTP_PROTOCOLS",
    "DEFAULT_SSL_PROTOCOLS",
    "CertificateConfig",
    "EndpointConfig",
    "EndpointDefaults",
    "HttpProtocols",
    "SslProtocols",
    "flag_label",
]
