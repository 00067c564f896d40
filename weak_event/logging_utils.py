"""Logging bootstrap for applications that host weak events."""

from __future__ import annotations

from collections.abc import Mapping
import logging
import os
from pathlib import Path
from typing import Any

import structlog

from .config import LoggingConfig

APP_LOGGER_PREFIX = "weak_event"
PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Applied to structlog events and to stdlib records alike, so extras such as
# ``event_name`` and ``handler`` show up as JSON keys.
_SHARED_PROCESSORS: list[Any] = [
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.ExtraAdder(),
    structlog.processors.TimeStamper(fmt="iso", utc=True),
]


def _json_formatter() -> logging.Formatter:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            *_SHARED_PROCESSORS,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    return structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(ensure_ascii=False),
        foreign_pre_chain=_SHARED_PROCESSORS,
    )


def _attach(
    root: logging.Logger,
    handler: logging.Handler,
    level: int,
    formatter: logging.Formatter,
    only_library: bool = False,
) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    if only_library:
        handler.addFilter(lambda record: record.name.startswith(APP_LOGGER_PREFIX))
    root.addHandler(handler)
    return handler


def _open_private_log(path: str) -> logging.FileHandler:
    target = Path(path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(target, encoding="utf-8")
    if os.name == "posix":
        try:
            target.chmod(0o600)
        except OSError:
            logging.getLogger(__name__).warning(
                "Unable to enforce 0600 permissions for %s", target
            )
    return handler


def configure_logging(logging_config: LoggingConfig | Mapping[str, Any]) -> None:
    """Route library logs to stderr (warnings and up) and optionally to a file.

    Accepts the ``[logging]`` section either as a validated ``LoggingConfig``
    or as the plain mapping returned by ``load_config``.
    """
    settings = (
        logging_config
        if isinstance(logging_config, LoggingConfig)
        else LoggingConfig.model_validate(dict(logging_config))
    )
    level = logging.getLevelName(settings.level)
    formatter = _json_formatter() if settings.structured else logging.Formatter(PLAIN_FORMAT)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    _attach(
        root,
        logging.StreamHandler(),
        max(level, logging.WARNING),
        formatter,
        only_library=True,
    )
    if settings.log_to_file:
        _attach(root, _open_private_log(settings.log_file_path), level, formatter)
