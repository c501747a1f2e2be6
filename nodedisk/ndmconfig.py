"""Probe and filter configuration read from the daemon's config file."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# Default path of the config file inside the container.
DEFAULT_CONFIG_FILE_PATH = "/host/node-disk-manager.config"


def _text(entry: dict[str, Any], key: str) -> str:
    value = entry.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string, not {type(value).__name__}")
    return value


def _entries(data: dict[str, Any], key: str) -> list[dict[str, Any]]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"field {key!r} must be a list")
    for entry in value:
        if not isinstance(entry, dict):
            raise ValueError(f"entries of {key!r} must be mappings")
    return value


@dataclass
class ProbeConfig:
    """Configuration of one probe."""

    key: str = ""
    name: str = ""
    state: str = ""


@dataclass
class FilterConfig:
    """Configuration of one filter; include and exclude are comma separated."""

    key: str = ""
    name: str = ""
    state: str = ""
    include: str = ""
    exclude: str = ""


@dataclass
class NodeDiskManagerConfig:
    """Configuration of all probes and filters."""

    probe_configs: list[ProbeConfig] = field(default_factory=list)
    filter_configs: list[FilterConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> NodeDiskManagerConfig:
        """Build a config from its decoded document."""
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError("config document must be a mapping")
        probes = [
            ProbeConfig(key=_text(e, "key"), name=_text(e, "name"), state=_text(e, "state"))
            for e in _entries(data, "probeconfigs")
        ]
        filters = [
            FilterConfig(
                key=_text(e, "key"),
                name=_text(e, "name"),
                state=_text(e, "state"),
                include=_text(e, "include"),
                exclude=_text(e, "exclude"),
            )
            for e in _entries(data, "filterconfigs")
        ]
        return cls(probe_configs=probes, filter_configs=filters)


def _stringify_scalars(value: Any) -> Any:
    """Turn YAML scalars into the strings the config fields hold."""
    if isinstance(value, dict):
        return {key: _stringify_scalars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_stringify_scalars(item) for item in value]
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return value


def load_ndm_config(path: str | Path) -> NodeDiskManagerConfig:
    """Read a JSON or YAML config file.

    Raises OSError if the file cannot be read and ValueError if it cannot be
    decoded into a config.
    """
    text = Path(path).read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except ValueError:
        try:
            data = _stringify_scalars(yaml.safe_load(text))
        except yaml.YAMLError as err:
            raise ValueError(f"invalid config file {path}: {err}") from err
    return NodeDiskManagerConfig.from_dict(data)