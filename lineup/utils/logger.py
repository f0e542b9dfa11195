import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
LOG_FILE_NAME = "app.log"

# Marks handlers installed here so a second call swaps only those
_OWNED_ATTR = "_lineup_handler"


def _owned(handler: logging.Handler) -> logging.Handler:
    setattr(handler, _OWNED_ATTR, True)
    return handler


def configure_logging(log_dir: Optional[str] = None, level: Union[str, int, None] = None) -> Path:
    """Send worker logs to stderr and to ``<log_dir>/app.log``.

    Safe to call repeatedly (the app factory and the worker both do): the
    handlers from a previous call are replaced, foreign handlers are kept.
    Returns the log file path.
    """

    directory = Path(log_dir or "logs")
    directory.mkdir(parents=True, exist_ok=True)
    log_path = directory / LOG_FILE_NAME

    formatter = logging.Formatter(LOG_FORMAT)
    stream_handler = _owned(logging.StreamHandler())
    file_handler = _owned(RotatingFileHandler(log_path, maxBytes=5 * 1024 * 1024, backupCount=5))
    for handler in (stream_handler, file_handler):
        handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if getattr(handler, _OWNED_ATTR, False):
            root_logger.removeHandler(handler)
            handler.close()

    root_logger.setLevel(level.upper() if isinstance(level, str) else (level or logging.INFO))
    root_logger.addHandler(stream_handler)
    root_logger.addHandler(file_handler)

    # APScheduler logs every job execution at INFO
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    return log_path


def get_logger(name: str = "lineup") -> logging.Logger:
    return logging.getLogger(name)
