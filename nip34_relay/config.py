"""Mock relay configuration."""

from __future__ import annotations

from dataclasses import dataclass, fields
import enum
from pathlib import Path
from typing import Any, Mapping

import yaml


class FaultMode(str, enum.Enum):
    NONE = "none"
    # connections are closed by the relay as soon as they open or speak
    CLOSE = "close"
    # messages are read and dropped, nothing is ever answered
    SILENT = "silent"


@dataclass
class RelayConfig:
    latency: float = 0.01
    fault: FaultMode = FaultMode.NONE
    debug: bool = False
    json_logs: bool = False
    host: str = "127.0.0.1"
    port: int = 7777
    max_limit: int | None = None
    close_code: int = 4000

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> RelayConfig:
        known = {item.name for item in fields(cls)}
        unknown = set(raw) - known
        if unknown:
            raise ValueError(f"unknown config keys: {', '.join(sorted(unknown))}")
        values = dict(raw)
        if "latency" in values:
            values["latency"] = _parse_latency(values["latency"])
        if "fault" in values:
            values["fault"] = parse_fault(values["fault"])
        for key in ("port", "close_code"):
            if key in values:
                values[key] = _parse_int(values[key], key)
        if values.get("max_limit") is not None:
            values["max_limit"] = _parse_int(values["max_limit"], "max_limit")
        for key in ("debug", "json_logs"):
            if key in values and not isinstance(values[key], bool):
                raise ValueError(f"{key} must be a boolean")
        return cls(**values)


def load_config(path: str | Path) -> RelayConfig:
    with open(path, "r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, Mapping):
        raise ValueError("config file must contain a mapping")
    relay = raw.get("relay", raw)
    if not isinstance(relay, Mapping):
        raise ValueError("relay section must be a mapping")
    return RelayConfig.from_mapping(relay)


def parse_fault(value: object) -> FaultMode:
    if isinstance(value, FaultMode):
        return value
    if value is None:
        return FaultMode.NONE
    try:
        return FaultMode(str(value).lower())
    except ValueError as exc:
        raise ValueError(f"unknown fault mode: {value}") from exc


def _parse_latency(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("latency must be a number of seconds")
    if value < 0:
        raise ValueError("latency must be non-negative")
    return float(value)


def _parse_int(value: object, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field} must be int")
    return value
