from datetime import datetime
from pytz import timezone
import logging.config
import logging
import os

LOGGER_NAME = "idm_connector"

debug_mode = os.getenv("LOG_LEVEL", "info").lower() == "debug"
loglevel = logging.INFO if not debug_mode else logging.DEBUG

_ANSI_RESET = "\033[0m"
_LEVEL_COLORS: dict[int, str] = {
    logging.DEBUG: "\033[36m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[35m",
}

_configured = False


class CustomFormatter(logging.Formatter):
    """Formats timestamps in the configured timezone and prefixes warnings and errors."""

    def __init__(self, tz_name, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.tz = timezone(tz_name)

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, self.tz)
        return dt.strftime(datefmt) if datefmt else dt.isoformat()

    def format(self, record):
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # broken format strings are rendered raw instead of crashing the handler
            message = str(record.msg)

        if record.levelno >= logging.ERROR:
            message = "⛔ " + message
        elif record.levelno == logging.WARNING:
            message = "⚠️ " + message

        # the record is shared by all handlers, format a copy
        record = logging.makeLogRecord({**record.__dict__, "msg": message, "args": ()})
        return super().format(record)


class ColoredFormatter(CustomFormatter):
    """Console formatter, colours every line by its level. INFO stays plain."""

    def format(self, record) -> str:
        line = super().format(record)
        ansi = _LEVEL_COLORS.get(record.levelno, "")
        return f"{ansi}{line}{_ANSI_RESET}" if ansi else line


def setup_logging(debug: bool | None = None) -> logging.Logger:
    """Configure console and file logging once per process and return the connector logger.

    Args:
        debug (bool | None): Force DEBUG level. Defaults to LOG_LEVEL=debug.

    Returns:
        logging.Logger: The "idm_connector" logger.
    """
    global _configured
    level = logging.DEBUG if (debug if debug is not None else debug_mode) else loglevel
    logger = logging.getLogger(LOGGER_NAME)
    if _configured:
        logger.setLevel(level)
        return logger

    log_dir = os.getenv("LOG_DIR") or os.path.join(os.getenv("ROOT_DIR", os.getcwd()), "logs")
    tz_name = os.getenv("TIMEZONE", "Europe/Berlin")
    os.makedirs(log_dir, exist_ok=True)

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "()": CustomFormatter,
                "format": "%(asctime)s - %(levelname)s - %(name)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
                "tz_name": tz_name,
            },
            "colored": {
                "()": ColoredFormatter,
                "format": "%(asctime)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
                "tz_name": tz_name,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "colored",
                "stream": "ext://sys.stdout",
            },
            "file": {
                "class": "logging.FileHandler",
                "formatter": "standard",
                "filename": os.path.join(log_dir, "connector.log"),
                "encoding": "utf-8",
            },
        },
        "loggers": {
            LOGGER_NAME: {"level": level},
        },
        "root": {
            "handlers": ["console", "file"],
            "level": loglevel,
        },
    }

    logging.config.dictConfig(logging_config)

    # Suppress httpx request logs unless in debug mode
    logging.getLogger("httpx").setLevel(logging.DEBUG if level == logging.DEBUG else logging.WARNING)

    _configured = True
    return logger
