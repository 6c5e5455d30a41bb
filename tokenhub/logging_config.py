import json
import logging
import logging.config
import sys

# Loggers for the HTTP clients would otherwise echo full URLs with api keys in
# query strings at INFO.
QUIET_LOGGERS = ("httpx", "httpcore")


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for CloudWatch style log ingestion."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def build_logging_config(log_level: str = "INFO", json_logs: bool = True) -> dict:
    level = log_level.upper()
    formatters = {
        "plain": {"format": "%(asctime)s | %(levelname)-8s | %(name)-24s | %(message)s"},
        "json": {"()": JsonFormatter},
        "trace": {"format": "%(asctime)s | %(levelname)s | %(name)s %(pathname)s:%(lineno)d\n%(message)s"},
    }
    handlers = {
        "stdout": {
            "class": "logging.StreamHandler",
            "stream": sys.stdout,
            "formatter": "json" if json_logs else "plain",
        },
        "stderr": {
            "class": "logging.StreamHandler",
            "stream": sys.stderr,
            "formatter": "trace",
            "level": "ERROR",
        },
    }
    loggers = {
        "": {"handlers": ["stdout"], "level": level},
        "tokenhub": {"handlers": ["stdout", "stderr"], "level": level, "propagate": False},
        "uvicorn.access": {"handlers": ["stdout"], "level": level, "propagate": False},
    }
    for name in QUIET_LOGGERS:
        loggers[name] = {"level": "WARNING"}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "handlers": handlers,
        "loggers": loggers,
    }


def setup_logging(log_level: str = "INFO", json_logs: bool = True):
    logging.config.dictConfig(build_logging_config(log_level, json_logs))
