import logging
import logging.config
import os

from dotenv import load_dotenv

# LOG_DIR may come from .env, which is read before MIPConfig exists
load_dotenv()

LOG_DIR = os.path.abspath(os.environ.get("LOG_DIR", "logs"))
CLIENT_LOG_DIR = os.path.join(LOG_DIR, "client")

# Log file paths
CLIENT_LOG_FILE = os.path.join(CLIENT_LOG_DIR, "client.log")
CLIENT_ERROR_LOG_FILE = os.path.join(CLIENT_LOG_DIR, "client.error.log")

LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "[%(asctime)s] [%(levelname)s] [%(name)s] [%(filename)s:%(lineno)d] %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "level": "INFO",
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
        "file_client": {
            "level": "DEBUG",
            "class": "logging.handlers.TimedRotatingFileHandler",
            "filename": CLIENT_LOG_FILE,
            "when": "midnight",
            "interval": 1,
            "backupCount": 30,
            "encoding": "utf-8",
            "formatter": "standard",
        },
        "file_error": {
            "level": "ERROR",
            "class": "logging.handlers.TimedRotatingFileHandler",
            "filename": CLIENT_ERROR_LOG_FILE,
            "when": "midnight",
            "interval": 1,
            "backupCount": 30,
            "encoding": "utf-8",
            "formatter": "standard",
        },
    },
    "loggers": {
        "mip": {
            "handlers": ["console", "file_client", "file_error"],
            "level": "DEBUG",
            "propagate": False,
        },
    },
}

_configured = False


def setup_logging():
    """Apply default logging configuration."""
    global _configured
    os.makedirs(CLIENT_LOG_DIR, exist_ok=True)
    logging.config.dictConfig(LOGGING_CONFIG)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the 'mip' hierarchy, configuring logging on first use."""
    if not _configured:
        setup_logging()
    if not name.startswith("mip"):
        name = f"mip.{name}"
    return logging.getLogger(name)
