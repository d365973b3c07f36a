# util/logger.py
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from config.settings import settings

# Indexer problems are raised as warnings.warn(SectionExtractionWarning);
# this turns them into records on the "py.warnings" logger.
logging.captureWarnings(True)

TEXT_FMT = "%(asctime)s %(levelname)s %(name)s - %(message)s"
DATE_FMT = "%Y-%m-%dT%H:%M:%S%z"


class ColoredFormatter(logging.Formatter):
    COLORS = {
        "DEBUG": "\033[37m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[41m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        plain_level = record.levelname
        record.levelname = f"{self.COLORS.get(plain_level, self.RESET)}{plain_level}{self.RESET}"
        try:
            return super().format(record)
        finally:
            # other handlers (file) must see the uncolored level name
            record.levelname = plain_level


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    colorize = sys.stdout.isatty() or settings.APP_ENV == "dev"
    handler.setFormatter(
        ColoredFormatter(TEXT_FMT, datefmt=DATE_FMT)
        if colorize
        else logging.Formatter(TEXT_FMT, datefmt=DATE_FMT)
    )
    return handler


def _file_handler(level: int) -> logging.Handler:
    os.makedirs(settings.LOG_DIR, exist_ok=True)
    handler = RotatingFileHandler(
        os.path.join(settings.LOG_DIR, settings.LOG_FILE_NAME),
        maxBytes=settings.LOG_MAX_BYTES,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(TEXT_FMT, datefmt=DATE_FMT))
    return handler


def init_logger() -> logging.Logger:
    """
    Idempotent logger init. Console always, rotating file when LOG_TO_FILE is
    set, level from LOG_LEVEL.
    """
    root = logging.getLogger()
    if getattr(root, "_billlens_inited", False):
        return logging.getLogger(settings.LOGGER_NAME)

    level = getattr(logging, (settings.LOG_LEVEL or "INFO").upper(), logging.INFO)
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)

    root.addHandler(_console_handler(level))
    if settings.LOG_TO_FILE:
        root.addHandler(_file_handler(level))

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("py.warnings").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)

    root._billlens_inited = True  # type: ignore[attr-defined]
    logger = logging.getLogger(settings.LOGGER_NAME)
    logger.debug("logger.ready level=%s file=%s", logging.getLevelName(level), settings.LOG_TO_FILE)
    return logger
