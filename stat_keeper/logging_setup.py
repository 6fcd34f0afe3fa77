import logging
from logging.handlers import RotatingFileHandler

from .config import LOG_DIR, LOG_FILE
from .utils import ensure_dir

LOGGER_NAME = "StatKeeper"
LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(
    log_dir: str = LOG_DIR,
    log_file: str = LOG_FILE,
    level: int = logging.INFO,
    console: bool = False,
    name: str = LOGGER_NAME,
) -> logging.Logger:
    """Return the app logger, attaching its handlers on the first call only.

    Later calls just apply ``level``, so the log level can be changed at runtime
    without duplicating output.
    """
    ensure_dir(log_dir)
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    file_handler = RotatingFileHandler(log_file, maxBytes=512 * 1024, backupCount=5, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


def log_tk_callback_errors(root, logger: logging.Logger) -> None:
    """Send exceptions raised inside Tk callbacks (``after``, buttons) to the log file."""

    def report(exc_type, exc_value, exc_tb):
        logger.error("Unhandled error in UI callback", exc_info=(exc_type, exc_value, exc_tb))

    root.report_callback_exception = report
