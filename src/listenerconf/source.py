"""Hierarchical configuration source for listenerconf.

Configuration is modelled as a tree of :class:`ConfigurationSection` nodes.
Every node has a case-insensitive ``key``, an optional string ``value`` and
ordered children. Sequences are stored as children keyed ``0``, ``1``, ...
so that a YAML list and a set of indexed environment variables produce the
same shape.

Layers are applied in the following order (later layers win key by key):

1. ``/etc/listenerconf/config.yml`` (or an override path).
2. Environment variables prefixed with ``LISTENERCONF_``.
3. Explicit overrides supplied programmatically.

Environment keys use double underscores to express nesting, e.g.::

    export LISTENERCONF_ENDPOINTS__HTTPS__URL=https://*:5001
    export LISTENERCONF_ENDPOINTS__HTTPS__SSLPROTOCOLS__0=Tls12
"""
from __future__ import annotations

import dataclasses
import logging
import os
import types
import typing
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

try:  # PyYAML is a runtime dependency (declared in pyproject.toml).
    import yaml
except Exception as exc:  # pragma: no cover - import failure covered in tests
    raise RuntimeError(
        "PyYAML is required to load listenerconf configuration. Install with "
        "`pip install listenerconf` or ensure PyYAML>=6.0 is available."
    ) from exc


LOGGER = logging.getLogger(__name__)

KEY_DELIMITER = ":"
ENV_PREFIX = "LISTENERCONF_"
CONFIG_ENV_VAR = f"{ENV_PREFIX}CONFIG_FILE"
DEFAULT_CONFIG_FILE = "/etc/listenerconf/config.yml"
RESERVED_ENV_KEYS = {CONFIG_ENV_VAR}

_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off"}
_BINDABLE_TYPES = (str, bool, int)


class ConfigError(RuntimeError):
    """Raised when configuration parsing fails."""


@dataclass(frozen=True)
class SectionSnapshot:
    """Immutable point-in-time copy of a section's value and children.

    Keys are case-folded and children are ordered by key, so two snapshots
    compare equal whenever the sections held the same data regardless of
    the order keys were written in.
    """

    value: str | None = None
    children: tuple[tuple[str, SectionSnapshot], ...] = ()

    def get(self, key: str) -> SectionSnapshot | None:
        """Return the child snapshot stored under *key*, if any."""
        folded = key.casefold()
        for child_key, child in self.children:
            if child_key == folded:
                return child
        return None


class ConfigurationSection:
    """A named node of the configuration tree."""

    def __init__(
        self,
        key: str = "",
        *,
        value: str | None = None,
        parent: ConfigurationSection | None = None,
    ) -> None:
        """Create a section; root sections have an empty key and no parent."""
        self._key = key
        self._value = value
        self._parent = parent
        self._children: dict[str, ConfigurationSection] = {}
        self._attached = parent is None

    # ------------------------------------------------------------------
    @property
    def key(self) -> str:
        """Return the key of this section within its parent."""
        return self._key

    @property
    def path(self) -> str:
        """Return the colon-delimited path from the root to this section."""
        if self._parent is None or not self._parent.path:
            return self._key
        return f"{self._parent.path}{KEY_DELIMITER}{self._key}"

    @property
    def value(self) -> str | None:
        """Return the leaf value stored on this section."""
        return self._value

    @value.setter
    def value(self, new_value: str | None) -> None:
        self._value = new_value
        self._attach()

    def exists(self) -> bool:
        """Return True when the section holds a value or any children."""
        return self._value is not None or bool(self._children)

    # ------------------------------------------------------------------
    def get_section(self, key: str) -> ConfigurationSection:
        """Return the section at *key* (a colon path is accepted).

        Missing sections are returned detached and empty; writing a value
        through them inserts them into the tree.
        """
        current = self
        for segment in _split_path(key):
            existing = current._children.get(segment.casefold())
            if existing is None:
                existing = ConfigurationSection(segment, parent=current)
            current = existing
        return current

    def get_children(self) -> list[ConfigurationSection]:
        """Return immediate children in insertion order."""
        return list(self._children.values())

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        return self.get_section(key).exists()

    def __getitem__(self, key: str) -> str | None:
        return self.get_section(key).value

    def __setitem__(self, key: str, value: str | None) -> None:
        self.get_section(key).value = value

    def get(self, key: str, default: str | None = None) -> str | None:
        """Return the leaf value at *key*, or *default* when unset."""
        value = self[key]
        return default if value is None else value

    def get_values(self) -> list[str] | None:
        """Return the section read as a sequence of strings.

        Child values are returned in order (children without a value are
        skipped), a scalar section becomes a one-element list and a section
        with neither value nor children yields ``None``.
        """
        if self._children:
            return [child.value for child in self._children.values() if child.value is not None]
        if self._value is not None:
            return [self._value]
        return None

    # ------------------------------------------------------------------
    def bind(self, target: Any) -> Any:
        """Populate the dataclass instance *target* from this section.

        Field names are matched case-insensitively with underscores ignored.
        Unknown keys are ignored and missing keys leave the field untouched.
        Values that cannot be converted are logged and skipped.
        """
        if not dataclasses.is_dataclass(target) or isinstance(target, type):
            raise TypeError(f"Cannot bind configuration into {type(target).__name__}.")
        hints = typing.get_type_hints(type(target))
        by_name = {_normalise_name(child.key): child for child in self._children.values()}
        for field in dataclasses.fields(target):
            target_type = _unwrap_optional(hints.get(field.name, str))
            if not field.init or target_type not in _BINDABLE_TYPES:
                continue
            child = by_name.get(_normalise_name(field.name))
            if child is None or child.value is None:
                continue
            try:
                converted = _convert(child.value, target_type)
            except ValueError as exc:
                LOGGER.warning("Ignoring configuration value at '%s': %s", child.path, exc)
                continue
            setattr(target, field.name, converted)
        return target

    def snapshot(self) -> SectionSnapshot:
        """Return an immutable copy of this section's current contents."""
        children = sorted(
            (folded, child.snapshot()) for folded, child in self._children.items()
        )
        return SectionSnapshot(value=self._value, children=tuple(children))

    def to_dict(self) -> object:
        """Return the section as plain nested data (children win over value)."""
        if not self._children:
            return self._value
        return {child.key: child.to_dict() for child in self._children.values()}

    def __repr__(self) -> str:
        return f"ConfigurationSection(path={self.path!r}, value={self._value!r})"

    # Internal helpers -------------------------------------------------
    def _attach(self) -> None:
        if self._attached or self._parent is None:
            return
        parent = self._parent
        parent._attach()
        existing = parent._children.get(self._key.casefold())
        if existing is None:
            parent._children[self._key.casefold()] = self
        else:
            # Another handle for the same key was attached first; share its children.
            existing._children.update(self._children)
            if self._value is not None:
                existing._value = self._value
            self._children = existing._children
        self._attached = True

    def _apply(self, data: object, label: str) -> None:
        """Merge plain data into this section."""
        if isinstance(data, Mapping):
            for key, item in data.items():
                if not isinstance(key, (str, int)) or isinstance(key, bool):
                    raise ConfigError(f"Mapping {label} must use string keys. Got {key!r}.")
                child_key = str(key)
                self.get_section(child_key)._apply(item, f"{label}.{child_key}")
            self._attach()
            return
        if isinstance(data, Sequence) and not isinstance(data, (str, bytes)):
            for index, item in enumerate(data):
                self.get_section(str(index))._apply(item, f"{label}[{index}]")
            self._attach()
            return
        self.value = _to_config_string(data)


def build_configuration(*layers: Mapping[str, object] | None) -> ConfigurationSection:
    """Build a root section from plain mappings, later layers overriding earlier."""
    root = ConfigurationSection()
    for index, layer in enumerate(layers):
        if layer is None:
            continue
        if not isinstance(layer, Mapping):
            raise ConfigError(
                f"Configuration layer {index} must be a mapping. Got {type(layer).__name__}."
            )
        root._apply(layer, f"layer[{index}]")
    return root


def load_configuration(
    config_file: str | os.PathLike[str] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> ConfigurationSection:
    """Load and merge configuration sources into a :class:`ConfigurationSection`."""
    resolved_env = dict(os.environ if env is None else env)
    config_path = _determine_config_path(DEFAULT_CONFIG_FILE, config_file, resolved_env)

    file_values = _load_yaml_file(config_path)
    env_values = _build_env_overrides(resolved_env)

    LOGGER.debug(
        "Loading configuration from %s (%d environment overrides).",
        config_path,
        len(env_values),
    )
    return build_configuration(file_values, env_values, overrides)


def _determine_config_path(
    default_path: str,
    cli_override: str | os.PathLike[str] | None,
    env: Mapping[str, str],
) -> Path:
    if cli_override:
        return Path(cli_override)
    if CONFIG_ENV_VAR in env:
        return Path(env[CONFIG_ENV_VAR])
    return Path(default_path)


def _load_yaml_file(path: Path) -> dict[str, object]:
    if not path.exists():
        LOGGER.debug("Config file %s not found; using an empty file layer.", path)
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - PyYAML owns detailed error
        raise ConfigError(f"Failed to parse config file {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level.")
    return dict(data)


def _build_env_overrides(env: Mapping[str, str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for key, value in env.items():
        if key in RESERVED_ENV_KEYS:
            continue
        if not key.startswith(ENV_PREFIX):
            continue
        suffix = key[len(ENV_PREFIX) :]
        path_segments = [segment for segment in suffix.split("__") if segment]
        if not path_segments:
            continue
        _assign_nested(overrides, path_segments, value)
    return overrides


def _assign_nested(tree: dict[str, object], path: list[str], value: object) -> None:
    current = tree
    for segment in path[:-1]:
        existing = current.get(segment)
        if existing is None:
            new_child: dict[str, object] = {}
            current[segment] = new_child
            current = new_child
            continue
        if isinstance(existing, dict):
            current = existing
            continue
        raise ConfigError(
            "Environment overrides conflict with existing scalar value at "
            f"{KEY_DELIMITER.join(path)}"
        )
    current[path[-1]] = value


def _split_path(key: str) -> list[str]:
    segments = [segment for segment in key.split(KEY_DELIMITER) if segment]
    if not segments:
        raise ValueError("Configuration key must be a non-empty string.")
    return segments


def _normalise_name(name: str) -> str:
    return name.replace("_", "").casefold()


def _to_config_string(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _convert(raw: str, annotation: object) -> object:
    target = _unwrap_optional(annotation)
    if target is bool:
        text = raw.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        raise ValueError(f"{raw!r} is not a valid boolean.")
    if target is int:
        try:
            return int(raw.strip(), 0)
        except ValueError as exc:
            raise ValueError(f"{raw!r} is not a valid integer.") from exc
    return raw


def _unwrap_optional(annotation: object) -> object:
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        members = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(members) == 1:
            return members[0]
    return annotation


__all__ = [
    "ConfigError",
    "ConfigurationSection",
    "SectionSnapshot",
    "build_configuration",
    "load_configuration",
]
