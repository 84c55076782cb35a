"""Structured logging for the importer.

structlog renders through the standard library so that modules using either
``get_logger().bind(module=...)`` or ``logging.getLogger(__name__)`` end up
on the same handler.
"""

import logging
from typing import Any, cast

import structlog
from structlog import dev, processors, stdlib
from structlog.stdlib import BoundLogger

from place_importer.core.config import settings

PACKAGE_LOGGER = "place_importer"


def _level_number(level: str) -> int:
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


def _pre_chain() -> list[Any]:
    return [
        stdlib.add_logger_name,
        stdlib.add_log_level,
        stdlib.PositionalArgumentsFormatter(),
        processors.TimeStamper(fmt="iso"),
        processors.dict_tracebacks,
    ]


def configure_logging(testing: bool | None = None, level: str | None = None) -> None:
    """Route structlog and stdlib logging to one stream handler on the root logger.

    Args:
        testing: Render readable key/value lines instead of JSON; defaults
            to the inverse of ``JSON_LOGS``
        level: Minimum level name, defaulting to ``LOG_LEVEL``; unknown
            names fall back to info
    """
    if testing is None:
        testing = not settings.JSON_LOGS
    log_level = _level_number(level or settings.LOG_LEVEL)
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[
            stdlib.filter_by_level,
            *pre_chain,
            processors.format_exc_info,
            processors.KeyValueRenderer() if testing else processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=stdlib.LoggerFactory(),
        wrapper_class=stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setLevel(log_level)
    handler.setFormatter(
        stdlib.ProcessorFormatter(
            processor=dev.ConsoleRenderer() if testing else processors.JSONRenderer(),
            foreign_pre_chain=pre_chain,
        )
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    # Package records reach the handler through the root logger only
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(log_level)
    package_logger.handlers = []
    package_logger.propagate = True


def get_logger() -> BoundLogger:
    return cast(BoundLogger, structlog.get_logger())


def get_run_logger(run_id: int | None = None) -> BoundLogger:
    """A logger carrying the pipeline run generation, when given."""
    logger = get_logger()
    return logger.bind(run_id=run_id) if run_id is not None else logger
