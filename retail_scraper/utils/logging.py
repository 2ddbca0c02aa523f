"""
Structured logging setup with per-request correlation IDs.
"""

import logging
import logging.handlers
import sys
import uuid
from contextvars import ContextVar
from pathlib import Path
from typing import Any, List, Optional

import structlog

from retail_scraper.config.settings import get_settings

# Context variable for correlation ID
correlation_id_ctx: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


class CorrelationIDProcessor:
    """Structlog processor to add correlation ID to log entries."""

    def __call__(self, logger, method_name, event_dict):
        correlation_id = correlation_id_ctx.get()
        if correlation_id:
            event_dict["correlation_id"] = correlation_id
        return event_dict


class ServiceInfoProcessor:
    """Structlog processor to add service information."""

    def __init__(self, service: str, version: str):
        self.service = service
        self.version = version

    def __call__(self, logger, method_name, event_dict):
        event_dict["service"] = self.service
        event_dict["version"] = self.version
        return event_dict


class LoggingManager:
    """Centralized logging configuration."""

    def __init__(self):
        self.configured = False

    def _shared_processors(self) -> List[Any]:
        settings = get_settings()
        return [
            structlog.contextvars.merge_contextvars,
            CorrelationIDProcessor(),
            ServiceInfoProcessor("retail-scraper", settings.app_version),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
        ]

    def configure_logging(
        self,
        log_level: Optional[str] = None,
        log_format: Optional[str] = None,
        log_file: Optional[str] = None,
        max_file_size: int = 10 * 1024 * 1024,
        backup_count: int = 5,
        force: bool = False,
    ) -> None:
        """
        Configure structlog and the stdlib root logger.

        Both structlog loggers and plain ``logging`` loggers (uvicorn, celery,
        sqlalchemy) end up rendered through the same processor chain.
        """
        if self.configured and not force:
            return

        settings = get_settings()
        log_level = (log_level or settings.LOG_LEVEL).upper()
        log_format = log_format or settings.LOG_FORMAT
        log_file = log_file or settings.LOG_FILE_PATH

        shared_processors = self._shared_processors()

        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                *shared_processors,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            logger_factory=structlog.stdlib.LoggerFactory(),
            context_class=dict,
            cache_logger_on_first_use=True,
        )

        if log_format == "json":
            renderer = structlog.processors.JSONRenderer()
        else:
            renderer = structlog.dev.ConsoleRenderer()

        def formatter_for(final_renderer) -> structlog.stdlib.ProcessorFormatter:
            return structlog.stdlib.ProcessorFormatter(
                foreign_pre_chain=shared_processors,
                processors=[
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    structlog.processors.format_exc_info,
                    final_renderer,
                ],
            )

        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, log_level, logging.INFO))

        # Remove existing handlers
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter_for(renderer))
        root_logger.addHandler(console_handler)

        if log_file:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=max_file_size,
                backupCount=backup_count,
                encoding="utf-8",
            )
            file_handler.setFormatter(formatter_for(structlog.processors.JSONRenderer()))
            root_logger.addHandler(file_handler)

        self._configure_third_party_loggers()
        self.configured = True

    def _configure_third_party_loggers(self) -> None:
        """Reduce noise from third-party libraries."""
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("asyncio").setLevel(logging.WARNING)
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
        logging.getLogger("aiosqlite").setLevel(logging.WARNING)
        logging.getLogger("celery").setLevel(logging.INFO)

    def set_correlation_id(self, correlation_id: Optional[str] = None) -> str:
        """Set correlation ID for current context."""
        if not correlation_id:
            correlation_id = str(uuid.uuid4())
        correlation_id_ctx.set(correlation_id)
        return correlation_id

    def clear_correlation_id(self) -> None:
        correlation_id_ctx.set(None)


# Global logging manager instance
logging_manager = LoggingManager()


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Set correlation ID for current context."""
    return logging_manager.set_correlation_id(correlation_id)


def clear_correlation_id() -> None:
    logging_manager.clear_correlation_id()


def configure_logging(**kwargs) -> None:
    """Configure application logging."""
    logging_manager.configure_logging(**kwargs)
