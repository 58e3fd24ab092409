"""Logger set-up selected by environment, and request-scoped error logging."""

from __future__ import annotations

import json
import logging
import os
import sys
from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from typing import IO, Any

ENV_VAR = "WEBK8S_ENV"
LOGGER_NAME = "webk8s"

ENCODING_JSON = "json"
ENCODING_CONSOLE = "console"

_LEVEL_NAMES = {
    logging.DEBUG: "debug",
    logging.INFO: "info",
    logging.WARNING: "warn",
    logging.ERROR: "error",
    logging.CRITICAL: "fatal",
}

_LEVEL_COLORS = {
    "debug": 35,
    "info": 34,
    "warn": 33,
    "error": 31,
    "fatal": 31,
}


class UnknownEnvironmentError(ValueError):
    """Raised when the configured environment name is not recognised."""


class Environment(str, Enum):
    """Deployment environment that decides how logs are written."""

    PRODUCTION = "production"
    DEVELOPMENT = "development"

    @property
    def level(self) -> int:
        return logging.INFO if self is Environment.PRODUCTION else logging.DEBUG

    @property
    def encoding(self) -> str:
        return ENCODING_JSON if self is Environment.PRODUCTION else ENCODING_CONSOLE


def _level_name(levelno: int) -> str:
    for threshold in sorted(_LEVEL_NAMES, reverse=True):
        if levelno >= threshold:
            return _LEVEL_NAMES[threshold]
    return "debug"


def _fields(record: logging.LogRecord) -> dict[str, Any]:
    fields = dict(getattr(record, "fields", None) or {})
    if record.exc_info and record.exc_info[1] is not None and "error" not in fields:
        fields["error"] = str(record.exc_info[1])
    return fields


class JsonFormatter(logging.Formatter):
    """One JSON object per record: level, timestamp, message and extra fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "level": _level_name(record.levelno),
            "ts": record.created,
            "msg": record.getMessage(),
        }
        entry.update(_fields(record))
        return json.dumps(entry, default=str)


class _ConsoleFormatter(logging.Formatter):
    """Tab-separated human-readable lines with a coloured level."""

    def format(self, record: logging.LogRecord) -> str:
        moment = datetime.fromtimestamp(record.created).astimezone()
        stamp = (
            f"{moment.day:02d}.{moment.month}.{moment.year} "
            f"{moment:%H:%M} {moment.tzname()}"
        )
        name = _level_name(record.levelno)
        level = f"\x1b[{_LEVEL_COLORS[name]}m{name.upper()}\x1b[0m"
        parts = [stamp, level, record.getMessage()]
        fields = _fields(record)
        if fields:
            parts.append(json.dumps(fields, default=str))
        return "\t".join(parts)


def select_environment(environ: Mapping[str, str] | None = None) -> Environment:
    """The environment named by ``WEBK8S_ENV``, production when unset."""
    env = os.environ if environ is None else environ
    name = env.get(ENV_VAR, Environment.PRODUCTION.value)
    try:
        return Environment(name)
    except ValueError:
        raise UnknownEnvironmentError(
            f"{ENV_VAR} = {name} (unknown environment)"
        ) from None


def create_logger(
    environ: Mapping[str, str] | None = None,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Configure and return the package logger for the selected environment."""
    environment = select_environment(environ)
    handler = logging.StreamHandler(sys.stdout if stream is None else stream)
    if environment.encoding == ENCODING_JSON:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(_ConsoleFormatter())

    logger = logging.getLogger(LOGGER_NAME)
    for old in list(logger.handlers):
        logger.removeHandler(old)
    logger.addHandler(handler)
    logger.setLevel(environment.level)
    logger.propagate = False
    return logger


def log_request_error(
    logger: logging.Logger,
    path: str,
    method: str,
    message: str,
    error: BaseException | str | None = None,
) -> None:
    """Log *message* at error level, tagged with the request's path and method."""
    fields: dict[str, Any] = {}
    if error is not None:
        fields["error"] = str(error)
    fields["path"] = path
    fields["method"] = method
    logger.error(message, extra={"fields": fields})