"""Read certificates, endpoint defaults and endpoints from configuration.

A :class:`ConfigurationReader` wraps one generation of configuration. Each
of its three views is parsed on first access and cached for the lifetime of
the reader, even if the underlying sections are mutated afterwards; build a
new reader to observe fresh data.
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from enum import IntFlag
from typing import TypeVar

from .models import (
    CertificateConfig,
    EndpointConfig,
    EndpointDefaults,
    HttpProtocols,
    SslProtocols,
)
from .source import ConfigError, ConfigurationSection

LOGGER = logging.getLogger(__name__)

PROTOCOLS_KEY = "Protocols"
CERTIFICATES_KEY = "Certificates"
CERTIFICATE_KEY = "Certificate"
SSL_PROTOCOLS_KEY = "SslProtocols"
ENDPOINT_DEFAULTS_KEY = "EndpointDefaults"
ENDPOINTS_KEY = "Endpoints"
URL_KEY = "Url"

FlagT = TypeVar("FlagT", bound=IntFlag)
_ViewT = TypeVar("_ViewT")


class ConfigurationReaderError(ConfigError):
    """Raised when endpoint configuration cannot be read."""


class EndpointMissingUrlError(ConfigurationReaderError):
    """Raised when an endpoint does not define a ``Url``."""

    def __init__(self, endpoint: str) -> None:
        """Record the offending endpoint name."""
        self.endpoint = endpoint
        super().__init__(f"The endpoint '{endpoint}' is missing the required 'Url' parameter.")


class ConfigurationReader:
    """Lazily parse listener configuration from a root section."""

    def __init__(self, configuration: ConfigurationSection) -> None:
        """Initialise the reader over *configuration* (the root section)."""
        if configuration is None:
            raise TypeError("configuration must not be None.")
        self._configuration = configuration
        self._lock = threading.Lock()
        self._certificates: dict[str, CertificateConfig] | None = None
        self._endpoint_defaults: EndpointDefaults | None = None
        self._endpoints: tuple[EndpointConfig, ...] | None = None

    @property
    def configuration(self) -> ConfigurationSection:
        """Return the root section this reader was built over."""
        return self._configuration

    @property
    def certificates(self) -> dict[str, CertificateConfig]:
        """Return named certificates from the ``Certificates`` section."""
        cached = self._certificates
        if cached is None:
            cached = self._compute("_certificates", self._read_certificates)
        return cached

    @property
    def endpoint_defaults(self) -> EndpointDefaults:
        """Return the ``EndpointDefaults`` section (fields unset when absent)."""
        cached = self._endpoint_defaults
        if cached is None:
            cached = self._compute("_endpoint_defaults", self._read_endpoint_defaults)
        return cached

    @property
    def endpoints(self) -> tuple[EndpointConfig, ...]:
        """Return one endpoint per child of ``Endpoints``, in enumeration order."""
        cached = self._endpoints
        if cached is None:
            cached = self._compute("_endpoints", self._read_endpoints)
        return cached

    # Internal helpers -------------------------------------------------
    def _compute(self, attribute: str, read: Callable[[], _ViewT]) -> _ViewT:
        # Views are read and published while holding the lock.
        with self._lock:
            cached = getattr(self, attribute)
            if cached is None:
                cached = read()
                setattr(self, attribute, cached)
            return cached

    def _read_certificates(self) -> dict[str, CertificateConfig]:
        certificates: dict[str, CertificateConfig] = {}
        for section in self._configuration.get_section(CERTIFICATES_KEY).get_children():
            certificates[section.key] = CertificateConfig.from_section(section)
        LOGGER.debug("Read %d named certificate(s).", len(certificates))
        return certificates

    def _read_endpoint_defaults(self) -> EndpointDefaults:
        section = self._configuration.get_section(ENDPOINT_DEFAULTS_KEY)
        return EndpointDefaults(
            protocols=parse_protocols(section[PROTOCOLS_KEY]),
            ssl_protocols=parse_ssl_protocols(section.get_section(SSL_PROTOCOLS_KEY)),
        )

    def _read_endpoints(self) -> tuple[EndpointConfig, ...]:
        endpoints: list[EndpointConfig] = []
        for section in self._configuration.get_section(ENDPOINTS_KEY).get_children():
            url = section[URL_KEY]
            if not url:
                raise EndpointMissingUrlError(section.key)

            endpoints.append(
                EndpointConfig(
                    name=section.key,
                    url=url,
                    protocols=parse_protocols(section[PROTOCOLS_KEY]),
                    ssl_protocols=parse_ssl_protocols(section.get_section(SSL_PROTOCOLS_KEY)),
                    certificate=CertificateConfig.from_section(
                        section.get_section(CERTIFICATE_KEY)
                    ),
                    config_section=section,
                )
            )
        LOGGER.debug("Read %d endpoint(s).", len(endpoints))
        return tuple(endpoints)


def parse_protocols(value: str | None) -> HttpProtocols | None:
    """Parse a protocol-set name such as ``Http1AndHttp2``.

    Matching is case-insensitive. Comma-separated names are combined and a
    decimal integer made only of known bits is accepted. Anything else
    yields ``None``.
    """
    parsed = _parse_flag(HttpProtocols, value)
    if parsed is None and value:
        LOGGER.debug("Ignoring unrecognised protocols value %r.", value)
    return parsed


def parse_ssl_protocols(section: ConfigurationSection) -> SslProtocols | None:
    """Combine the TLS version names listed under *section*.

    Returns ``None`` when the sequence is absent or empty. Unrecognised
    elements are skipped, so a sequence made only of unknown names yields
    :attr:`SslProtocols.NONE`.
    """
    values = section.get_values()
    if not values:
        return None
    combined = SslProtocols.NONE
    for item in values:
        parsed = _parse_flag(SslProtocols, item)
        if parsed is None:
            LOGGER.warning("Ignoring unrecognised TLS version %r at '%s'.", item, section.path)
            continue
        combined |= parsed
    return combined


def _parse_flag(flag_type: type[FlagT], value: str | None) -> FlagT | None:
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    if text.isdecimal():
        try:
            number = int(text)
        except ValueError:
            return None
        known = 0
        for member in flag_type.__members__.values():
            known |= member.value
        if number & ~known:
            return None
        return flag_type(number)

    lookup = {
        name.replace("_", "").casefold(): member
        for name, member in flag_type.__members__.items()
    }
    result: FlagT | None = None
    for token in text.split(","):
        member = lookup.get(token.strip().casefold())
        if member is None:
            return None
        result = member if result is None else result | member
    return result


__all__ = [
    "CERTIFICATES_KEY",
    "ENDPOINTS_KEY",
    "ENDPOINT_DEFAULTS_KEY",
    "ConfigurationReader",
    "ConfigurationReaderError",
    "EndpointMissingUrlError",
    "parse_protocols",
    "parse_ssl_protocols",
]
