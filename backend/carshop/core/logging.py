import logging
import sys
import os
import json
from datetime import datetime, timezone
from typing import Any

from carshop.core.config import settings

LOG_FILE_NAME = "carshop.log"

# Never written to a log record, whatever a caller passes in
REDACTED_KEYS = frozenset({"password", "password_hash", "token", "access_token", "refresh_token"})


class JSONFormatter(logging.Formatter):
    """One JSON object per line; extra fields come from ``record.props``"""

    def format(self, record):
        log_record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }

        props = getattr(record, "props", None)
        if props:
            log_record.update(
                {key: ("[redacted]" if key in REDACTED_KEYS else value) for key, value in props.items()}
            )

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record, default=str)


def security_event(logger: logging.Logger, event: str, level: int = logging.WARNING, **props: Any) -> None:
    """
    Log an authentication event (failed login, refresh replay, ...).

    The event name and props land as top-level keys in the JSON log file so
    they can be filtered on; the console line only shows the event name.
    """
    logger.log(level, f"Security event: {event}", extra={"props": {"event": event, **props}})


def setup_logging():
    """Configure the ``carshop`` logger: JSON lines to LOG_DIR plus console"""

    log_dir = settings.LOG_DIR
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, LOG_FILE_NAME)

    log_level = getattr(logging, settings.LOG_LEVEL.upper())

    logger = logging.getLogger("carshop")
    if logger.handlers:
        return logger

    file_handler = logging.FileHandler(log_path)
    file_handler.setLevel(log_level)
    file_handler.setFormatter(JSONFormatter())

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))

    # Modules log through logging.getLogger(__name__), all under "carshop"
    logger.setLevel(log_level)
    logger.addHandler(file_handler)
    logger.addHandler(console_handler)
    logger.propagate = False

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.addHandler(console_handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logger.info(f"Logging to {log_path} at level {settings.LOG_LEVEL.upper()}")
    return logger
