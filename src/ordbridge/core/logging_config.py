"""
Structured JSON logging for bridge processes.

Every bridge module logs through ``logging.getLogger(__name__)`` with an
``event`` extra such as ``"bridge.header_verified"``. Configuring the
``ordbridge`` logger here renders those records as one JSON object per line:

    {"timestamp": "...", "level": "info", "component": "bridge",
     "event": "bridge.header_verified", "message": "Header 100 verified", ...}

Hash-valued extras may be passed as raw bytes; they are rendered as hex.
"""

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any, Dict, Optional

from pythonjsonlogger import jsonlogger

LOGGER_NAME = "ordbridge"
LOG_FORMAT = "%(timestamp)s %(level)s %(name)s %(message)s"
MAX_LOG_BYTES = 50 * 1024 * 1024
LOG_BACKUPS = 10


class BridgeJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that tags records with service, component and source."""

    def __init__(self, environment: str = "production", service_name: str = LOGGER_NAME):
        super().__init__(fmt=LOG_FORMAT)
        self.environment = environment
        self.service_name = service_name

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.fromtimestamp(record.created, timezone.utc).isoformat()
        log_record["level"] = record.levelname.lower()
        log_record["environment"] = self.environment
        log_record["service"] = self.service_name

        event = log_record.get("event")
        if isinstance(event, str) and "." in event:
            log_record["component"] = event.split(".", 1)[0]

        for key, value in list(log_record.items()):
            if isinstance(value, (bytes, bytearray)):
                log_record[key] = bytes(value).hex()

        log_record["source"] = {
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }


def _close_handlers(logger: logging.Logger) -> None:
    for handler in logger.handlers:
        handler.close()
    logger.handlers = []


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    environment: str = "production",
    stream: Optional[IO[str]] = None,
    name: str = LOGGER_NAME,
) -> logging.Logger:
    """
    Configure JSON logging for the bridge.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional path of a rotating JSON log file
        environment: Deployment label written on every record
        stream: Console stream, stderr when omitted
        name: Logger to configure; child loggers of ``ordbridge`` inherit it

    Returns:
        The configured logger. Calling again replaces its handlers.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)
    _close_handlers(logger)

    formatter = BridgeJsonFormatter(environment=environment, service_name=name.split(".")[0])

    console_handler = logging.StreamHandler(stream or sys.stderr)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                filename=log_file,
                maxBytes=MAX_LOG_BYTES,
                backupCount=LOG_BACKUPS,
                encoding="utf-8",
            )
        except OSError as e:
            logger.warning("Could not open log file %s: %s", log_file, e)
        else:
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger
