"""Logging setup.

ENV=prod writes one JSON object per line; other environments get
plaintext. Both pass through observability.redaction.

Log messages name what they touch with key=value pairs (transcript=,
user=, ref=). The JSON formatter lifts those into top-level fields so
a transcript's whole history can be filtered out of the stream.
"""
import json
import logging
import re
import sys
from typing import Dict, Optional

from observability.redaction import redact
from config.settings import get_settings

# message key → JSON field
_CORRELATION_FIELDS: Dict[str, str] = {
    "transcript": "transcript_id",
    "user": "user_id",
    "ref": "speech_ref",
}
_CORRELATION_RE = re.compile(r"\b(%s)=([^\s,]+)" % "|".join(_CORRELATION_FIELDS))

_QUIET_LOGGERS = ("uvicorn.access", "motor", "pymongo", "google.auth", "urllib3")


class RedactingFormatter(logging.Formatter):
    """Plaintext formatter that redacts the rendered line."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        if get_settings().LOG_REDACTION_ENABLED:
            return redact(line)
        return line


class JSONFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        settings = get_settings()
        msg = record.getMessage()
        entry = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "env": settings.ENV,
            "msg": msg,
        }
        for key, value in _CORRELATION_RE.findall(msg):
            entry.setdefault(_CORRELATION_FIELDS[key], value)

        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)

        raw = json.dumps(entry, default=str)
        if settings.LOG_REDACTION_ENABLED:
            return redact(raw)
        return raw


def setup_logging(level: Optional[str] = None) -> None:
    """Install a single stdout handler on the root logger."""
    settings = get_settings()
    log_level = (level or settings.LOG_LEVEL).upper()

    if settings.ENV == "prod":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = RedactingFormatter(
            fmt="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level, logging.INFO))
    root.handlers.clear()
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
