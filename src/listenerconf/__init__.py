"""listenerconf package bootstrap.

Reads listener (endpoint) configuration into comparable, typed objects.
The public surface is re-exported here for convenience.
"""
from __future__ import annotations

from .models import (
    DEFAULT_HTTP_PROTOCOLS,
    CertificateConfig,
    EndpointConfig,
    EndpointDefaults,
    HttpProtocols,
    SslProtocols,
)
from .reader import (
    ConfigurationReader,
    ConfigurationReaderError,
    EndpointMissingUrlError,
    parse_protocols,
    parse_ssl_protocols,
)
from .reload import EndpointChanges, diff_endpoints, reload_endpoints
from .source import (
    ConfigError,
    ConfigurationSection,
    SectionSnapshot,
    build_configuration,
    load_configuration,
)

__all__ = [
    "DEFAULT_HTTP_PROTOCOLS",
    "CertificateConfig",
    "ConfigError",
    "ConfigurationReader",
    "ConfigurationReaderError",
    "ConfigurationSection",
    "EndpointChanges",
    "EndpointConfig",
    "EndpointDefaults",
    "EndpointMissingUrlError",
    "HttpProtocols",
    "SectionSnapshot",
    "SslProtocols",
    "__version__",
    "build_configuration",
    "diff_endpoints",
    "get_version",
    "load_configuration",
    "parse_protocols",
    "parse_ssl_protocols",
    "reload_endpoints",
]

# NOTE: The version is duplicated in ``pyproject.toml`` and managed by Hatch.
__version__ = "0.1.0"


def get_version() -> str:
    """Return the current package version."""
    return __version__
