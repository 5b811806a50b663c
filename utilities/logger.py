"""
Structured logging setup using structlog.
Provides JSON or console output and a context-bound logger for shelf operations.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
    debug: bool = False
) -> None:
    """
    Set up structured logging with configurable output formats.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format (json or console)
        log_file: Optional log file path
        debug: Add call-site information to every event
    """

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if debug:
        processors.append(structlog.processors.CallsiteParameterAdder())

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(getattr(logging, log_level.upper()))
        file_handler.setFormatter(logging.Formatter('%(message)s'))
        logging.getLogger().addHandler(file_handler)

    logger = structlog.get_logger(__name__)
    logger.info(
        "Logging system initialized",
        level=log_level,
        format=log_format,
        file=str(log_file) if log_file else None,
        debug=debug
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class ShelfLogger:
    """
    Logger for shelf mutations with per-operation context.
    """

    def __init__(self, name: str = "bookshelf"):
        self.logger = structlog.get_logger(name)
        self.context = {}

    def bind_context(self, **kwargs) -> 'ShelfLogger':
        """Bind context variables to the logger."""
        self.context.update(kwargs)
        return self

    def clear_context(self) -> 'ShelfLogger':
        """Clear all context variables."""
        self.context.clear()
        return self

    def operation(self, operation: str, **kwargs) -> 'ShelfLogger':
        """Return a child logger bound to a single operation."""
        child = ShelfLogger()
        child.logger = self.logger
        child.bind_context(**self.context, operation=operation, **kwargs)
        return child

    def log_started(self, **kwargs) -> None:
        self.logger.debug("Shelf operation started", **self.context, **kwargs)

    def log_completed(self, **kwargs) -> None:
        self.logger.info("Shelf operation completed", **self.context, **kwargs)

    def log_rejected(self, message_key: str, **kwargs) -> None:
        """Log a request refused by a domain rule."""
        self.logger.warning(
            "Shelf operation rejected",
            message_key=message_key,
            **self.context,
            **kwargs
        )

    def log_failed(self, error: str, **kwargs) -> None:
        self.logger.error("Shelf operation failed", error=error, **self.context, **kwargs)

    def log_tags_reconciled(self, entry_id: int, created: int, updated: int, deleted: int) -> None:
        self.logger.debug(
            "Tags reconciled",
            entry_id=entry_id,
            created=created,
            updated=updated,
            deleted=deleted,
            **self.context
        )
