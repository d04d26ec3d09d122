# civic_feed/logging_setup.py
import logging
from logging.config import dictConfig
from logging import LogRecord
from pathlib import Path
import contextvars
import os

# ---- Correlation ID (set per request by the middleware) ----
request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")

# Attributes every LogRecord has; anything else came in through `extra=`
_RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime", "request_id"}


class RequestIdFilter(logging.Filter):
    def filter(self, record: LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


class KeyValueFormatter(logging.Formatter):
    """
    Standard line plus the record's `extra` fields as sorted key=value pairs:

        ... | civic_feed.feed | req=3f2a | FETCH_OK | item_type=job count=4 step=fetch user_id=u1
    """

    def format(self, record: LogRecord) -> str:
        line = super().format(record)
        fields = {k: v for k, v in vars(record).items() if k not in _RESERVED and not k.startswith("_")}
        if not fields:
            return line
        head, sep, tail = line.partition("\n")  # keep tracebacks after the fields
        pairs = " ".join(f"{k}={fields[k]}" for k in sorted(fields))
        return f"{head} | {pairs}{sep}{tail}"


BASE_DIR = Path(__file__).resolve().parents[1]


def setup_logging() -> Path:
    """
    LOG_DIR        where civic_feed.log rotates (default ./logs)
    LOG_LEVEL      level of the civic_feed.* loggers
    FEED_LOG_LEVEL level of the ranking pipeline (civic_feed.feed); defaults to LOG_LEVEL
    """
    log_dir = Path(os.getenv("LOG_DIR", BASE_DIR / "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "civic_feed.log"
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    feed_level = os.getenv("FEED_LOG_LEVEL", log_level).upper()

    dictConfig({
        "version": 1,
        "disable_existing_loggers": False,

        "filters": {
            "request_id": {"()": RequestIdFilter},
        },

        "formatters": {
            "keyvalue": {
                "()": KeyValueFormatter,
                "format": "%(asctime)s | %(levelname)s | %(name)s | req=%(request_id)s | %(message)s",
            },
            "uvicorn_access": {
                "format": "%(asctime)s | %(levelname)s | %(message)s"
            },
        },

        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "keyvalue",
                "filters": ["request_id"],
            },
            "file": {
                "class": "logging.handlers.TimedRotatingFileHandler",
                "formatter": "keyvalue",
                "filters": ["request_id"],
                "filename": str(log_file),
                "when": "midnight",
                "backupCount": 14,
                "encoding": "utf-8",
            },
            "uvicorn_console": {
                "class": "logging.StreamHandler",
                "formatter": "uvicorn_access",
            },
        },

        "loggers": {
            "civic_feed": {"handlers": ["console", "file"], "level": log_level, "propagate": False},
            # per-step FETCH_OK / FETCH_SKIPPED lines are noisy; tune them separately
            "civic_feed.feed": {"level": feed_level},

            "uvicorn.error":  {"handlers": ["uvicorn_console", "file"], "level": "INFO", "propagate": False},
            "uvicorn.access": {"handlers": ["uvicorn_console", "file"], "level": "INFO", "propagate": False},
        },

        "root": {"handlers": ["console"], "level": log_level},
    })

    logging.getLogger("civic_feed").info(
        "LOGGING_READY", extra={"log_file": str(log_file), "level": log_level, "feed_level": feed_level}
    )
    return log_file


def get_logger(name: str = "civic_feed") -> logging.Logger:
    return logging.getLogger(name)
