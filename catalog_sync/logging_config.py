"""Structured logging configuration: console output plus JSON log files."""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from pythonjsonlogger import jsonlogger

from catalog_sync.config import settings

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_RUN_FORMAT = "%(asctime)s - [%(run_id)s] %(name)s - %(levelname)s - %(message)s"
JSON_FORMAT = "%(timestamp)s %(level)s %(name)s %(message)s"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """One JSON object per record, keyed for log search by run and product."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        # Time the record was created, not the time it was formatted
        log_record['timestamp'] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['source'] = f"{record.filename}:{record.lineno}"
        if record.funcName:
            log_record['function'] = record.funcName

        run_id = getattr(record, "run_id", None)
        if run_id:
            log_record['run_id'] = run_id


class RunContextFilter(logging.Filter):
    """Stamps each record with the id of the current reconciliation run."""

    def __init__(self, run_id: str):
        super().__init__()
        self.run_id = run_id

    def filter(self, record):
        record.run_id = self.run_id
        return True


def _file_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.FileHandler:
    handler = logging.FileHandler(path)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    base_dir: str | Path | None = None,
    level: str | None = None,
    run_id: str | None = None,
):
    """Configure logging for a reconciliation run.

    The console gets human-readable lines; ``logs/app.log`` gets every record
    as JSON and ``logs/error.log`` only errors. When ``run_id`` is given it is
    shown on the console and added to every JSON record.

    Args:
        base_dir: Directory holding the logs/ folder (default: cwd)
        level: Level name overriding ``settings.log_level``
        run_id: Id of the run being logged
    """
    logs_dir = (Path(base_dir) if base_dir else Path.cwd()) / "logs"
    logs_dir.mkdir(exist_ok=True)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG)
    console_handler.setFormatter(logging.Formatter(CONSOLE_RUN_FORMAT if run_id else CONSOLE_FORMAT))

    json_formatter = CustomJsonFormatter(JSON_FORMAT)
    handlers = [
        console_handler,
        _file_handler(logs_dir / "app.log", logging.DEBUG, json_formatter),
        _file_handler(logs_dir / "error.log", logging.ERROR, json_formatter),
    ]

    root_logger = logging.getLogger()
    root_logger.setLevel((level or settings.log_level).upper())
    root_logger.handlers.clear()

    run_filter = RunContextFilter(run_id) if run_id else None
    for handler in handlers:
        if run_filter is not None:
            handler.addFilter(run_filter)
        root_logger.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return root_logger


class LoggerAdapter(logging.LoggerAdapter):
    """Adds fixed context (product id, sku) to every record; call-site extras win."""

    def process(self, msg, kwargs):
        kwargs['extra'] = {**self.extra, **kwargs.get('extra', {})}
        return msg, kwargs


def get_logger(name: str, **context) -> LoggerAdapter:
    """
    Get a logger bound to per-product context.

    Example:
        log = get_logger(__name__, product_id=1236, sku="HB-100")
        log.info("Price mismatch")  # JSON record carries product_id and sku
    """
    return LoggerAdapter(logging.getLogger(name), context)
