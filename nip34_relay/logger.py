"""Structured key=value and JSON logging for the mock relay.

``Logger`` wraps a stdlib ``logging.Logger`` and attaches keyword arguments
to each record. ``StructuredFormatter`` renders them as ``key=value`` pairs,
so plain ``logging.getLogger`` output shares the same layout::

    logger = Logger("nip34_relay.relay")
    logger.debug("event_accepted", kind=1621, subscribers=2)
    # debug nip34_relay.relay event_accepted kind=1621 subscribers=2
"""

from __future__ import annotations

import datetime
import json
import logging
from typing import Any

ROOT_LOGGER = "nip34_relay"

_MAX_VALUE_LENGTH = 200


def format_kv_pairs(values: dict[str, Any], max_value_length: int | None = _MAX_VALUE_LENGTH) -> str:
    """Render ``values`` as `` key=value`` pairs, quoting values that need it."""

    parts = []
    for key, value in values.items():
        text = _truncate(str(value), max_value_length)
        if not text or any(char in text for char in " =\"'"):
            escaped = text.replace("\\", "\\\\").replace('"', '\\"')
            parts.append(f'{key}="{escaped}"')
        else:
            parts.append(f"{key}={text}")
    return " " + " ".join(parts) if parts else ""


class StructuredFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        line = f"{record.levelname.lower()} {record.name} {record.getMessage()}"
        values: dict[str, Any] = getattr(record, "structured_kv", {})
        if values:
            line += format_kv_pairs(values)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class Logger:
    def __init__(self, name: str, *, json_output: bool = False) -> None:
        self._logger = logging.getLogger(name)
        self._json_output = json_output

    @property
    def name(self) -> str:
        return self._logger.name

    def is_enabled_for(self, level: int) -> bool:
        return self._logger.isEnabledFor(level)

    def debug(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, msg, kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.INFO, msg, kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, msg, kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, msg, kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, msg, kwargs, exc_info=True)

    def _log(self, level: int, msg: str, kwargs: dict[str, Any], *, exc_info: bool = False) -> None:
        if not self._logger.isEnabledFor(level):
            return
        if self._json_output:
            record = {
                "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
                "level": logging.getLevelName(level).lower(),
                "service": self._logger.name,
                "message": msg,
                **kwargs,
            }
            self._logger.log(level, json.dumps(record, default=str), exc_info=exc_info)
            return
        extra = {"structured_kv": {key: _truncate(str(value), _MAX_VALUE_LENGTH) for key, value in kwargs.items()}}
        self._logger.log(level, msg, extra=extra, exc_info=exc_info)


def configure_logging(*, debug: bool = False, json_output: bool = False) -> None:
    """Install a single structured handler on the package logger."""

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    for handler in list(logger.handlers):
        if getattr(handler, "_nip34_relay", False):
            logger.removeHandler(handler)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s") if json_output else StructuredFormatter())
    handler._nip34_relay = True  # type: ignore[attr-defined]
    logger.addHandler(handler)


def get_logger(component: str, *, json_output: bool = False) -> Logger:
    return Logger(f"{ROOT_LOGGER}.{component}", json_output=json_output)


def _truncate(text: str, max_length: int | None) -> str:
    if max_length and len(text) > max_length:
        return text[:max_length] + f"...<truncated {len(text) - max_length} chars>"
    return text
