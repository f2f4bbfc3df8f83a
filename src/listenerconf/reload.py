"""Compute which listeners change between two configuration generations."""
from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .models import EndpointConfig
from .reader import ConfigurationReader
from .source import ConfigurationSection

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class EndpointChanges:
    """Listeners to stop, start or keep after a reload."""

    to_stop: tuple[EndpointConfig, ...] = ()
    to_start: tuple[EndpointConfig, ...] = ()
    unchanged: tuple[EndpointConfig, ...] = ()

    @property
    def restarted(self) -> tuple[str, ...]:
        """Return names that are both stopped and started (modified endpoints)."""
        started = {endpoint.name for endpoint in self.to_start}
        return tuple(endpoint.name for endpoint in self.to_stop if endpoint.name in started)

    @property
    def has_changes(self) -> bool:
        """Return True when any listener must be stopped or started."""
        return bool(self.to_stop or self.to_start)

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "stop": [endpoint.name for endpoint in self.to_stop],
            "start": [endpoint.name for endpoint in self.to_start],
            "restart": list(self.restarted),
            "unchanged": [endpoint.name for endpoint in self.unchanged],
        }


def diff_endpoints(
    previous: Iterable[EndpointConfig],
    current: Iterable[EndpointConfig],
) -> EndpointChanges:
    """Compare two endpoint sequences using :class:`EndpointConfig` equality."""
    previous_list = list(previous)
    current_list = list(current)

    to_stop = tuple(endpoint for endpoint in previous_list if endpoint not in current_list)
    to_start = tuple(endpoint for endpoint in current_list if endpoint not in previous_list)
    unchanged = tuple(endpoint for endpoint in current_list if endpoint in previous_list)

    changes = EndpointChanges(to_stop=to_stop, to_start=to_start, unchanged=unchanged)
    LOGGER.debug(
        "Endpoint diff: %d to stop, %d to start, %d unchanged.",
        len(to_stop),
        len(to_start),
        len(unchanged),
    )
    return changes


def reload_endpoints(
    previous: ConfigurationReader | Sequence[EndpointConfig],
    configuration: ConfigurationSection,
) -> tuple[ConfigurationReader, EndpointChanges]:
    """Read *configuration* with a fresh reader and diff it against *previous*."""
    previous_endpoints = (
        previous.endpoints if isinstance(previous, ConfigurationReader) else tuple(previous)
    )
    reader = ConfigurationReader(configuration)
    changes = diff_endpoints(previous_endpoints, reader.endpoints)
    if changes.has_changes:
        LOGGER.info(
            "Reload stops %s and starts %s.",
            ", ".join(endpoint.name for endpoint in changes.to_stop) or "nothing",
            ", ".join(endpoint.name for endpoint in changes.to_start) or "nothing",
        )
    return reader, changes


__all__ = ["EndpointChanges", "diff_endpoints", "reload_endpoints"]
