"""Logging setup: rich console output plus a JSON-lines file for every run."""

import logging
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Union

from rich.console import Console
from rich.logging import RichHandler


def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    """Structured fields attached to a record by LogContext."""
    return getattr(record, 'context', {})


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with the active context fields merged in."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        for key, value in record_context(record).items():
            log_data.setdefault(key, value)

        return json.dumps(log_data, default=str)


class ContextFormatter(logging.Formatter):
    """Prefixes console messages with the active context, e.g. ``[billing:deploy]``.

    Only ``formatMessage`` is overridden because RichHandler calls it
    directly when it renders a traceback.
    """

    def formatMessage(self, record: logging.LogRecord) -> str:
        message = super().formatMessage(record)
        values = [str(value) for value in record_context(record).values() if value is not None]
        if values:
            return f"[{':'.join(values)}] {message}"
        return message


def setup_logging(log_level: str = 'info', log_dir: Union[str, Path] = '.stack-deploy/logs') -> None:
    """Setup logging infrastructure.

    Args:
        log_level: Logging level (debug, info, warning, error)
        log_dir: Directory receiving the JSON-lines log file
    """
    level = getattr(logging, log_level.upper())

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = RichHandler(
        console=Console(),
        markup=False,  # Messages carry URLs and paths, not rich markup
        rich_tracebacks=True,
        show_path=False,
        tracebacks_show_locals=False,  # Locals may hold credentials
    )
    console_handler.setLevel(level)
    console_handler.setFormatter(ContextFormatter())
    root_logger.addHandler(console_handler)

    log_file = log_dir / f"stack-deploy-{datetime.now(timezone.utc).strftime('%Y%m%d')}.jsonl"
    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(logging.DEBUG)  # Always log debug to file
    file_handler.setFormatter(JSONFormatter())
    root_logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogContext:
    """Attach structured fields to every record created inside the block.

    Contexts nest: an inner block sees the outer fields plus its own, with
    its own values winning.
    """

    def __init__(self, logger: logging.Logger, **kwargs: Any):
        """Initialize log context.

        Args:
            logger: Logger the fields are meant for
            **kwargs: Key-value pairs to add to log records
        """
        self.logger = logger
        self.context = kwargs
        self.old_factory = None

    def __enter__(self):
        old_factory = logging.getLogRecordFactory()

        def record_factory(*args, **kwargs):
            record = old_factory(*args, **kwargs)
            record.context = {**record_context(record), **self.context}
            return record

        self.old_factory = old_factory
        logging.setLogRecordFactory(record_factory)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.old_factory:
            logging.setLogRecordFactory(self.old_factory)
