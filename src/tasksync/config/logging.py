"""structlog output for processes that embed tasksync.

:func:`configure_logging` routes structlog events and stdlib ``tasksync.*``
records through a single stderr handler, as console lines (colored on a TTY)
or JSON lines. Repeat calls replace that handler only; handlers the host
application attached to the root logger stay in place.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

from tasksync.config.models import LoggingConfig

if TYPE_CHECKING:
    from structlog.types import Processor

HANDLER_NAME = "tasksync"
PACKAGE_LOGGER = "tasksync"


def _renderer(json_output: bool) -> list[Processor]:
    if json_output:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]


def configure_logging(config: LoggingConfig | None = None) -> logging.Handler:
    """Install tasksync's stderr handler according to the ``[logging]`` section.

    ``verbose`` lowers the ``tasksync`` logger to DEBUG (INFO is where the
    services report corrections and refresh summaries); otherwise only
    warnings and errors are shown. Returns the installed handler.
    """
    config = config or LoggingConfig()

    pre_chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *_renderer(config.json_output),
            ],
        )
    )

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)

    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG if config.verbose else logging.WARNING)
    return handler
