import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import TimedRotatingFileHandler

from .config import settings

_HANDLER_NAME = "frontdesk"


class JsonFormatter(logging.Formatter):
    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


def setup_logging(level: str | None = None, log_dir: str | None = None) -> logging.Logger:
    """Aggancia gli handler JSON al root logger (idempotente)."""
    logger = logging.getLogger()
    logger.setLevel(level or settings.log_level)

    if any(h.get_name() == _HANDLER_NAME for h in logger.handlers):
        return logger

    console = logging.StreamHandler()
    console.set_name(_HANDLER_NAME)
    console.setFormatter(JsonFormatter())
    logger.addHandler(console)

    log_dir = log_dir or settings.log_dir
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        # file di log ruotato a mezzanotte, conserva 14 giorni
        handler = TimedRotatingFileHandler(
            filename=os.path.join(log_dir, "frontdesk.log"),
            when="midnight",
            backupCount=14,
            encoding="utf-8",
        )
        handler.set_name(f"{_HANDLER_NAME}-file")
        handler.setFormatter(JsonFormatter())
        logger.addHandler(handler)

    return logger
