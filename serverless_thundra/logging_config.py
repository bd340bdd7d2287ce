"""
Logging Configuration

Provides:
- CustomJsonFormatter: one JSON document per log line, carrying the
  per-function `extra=` fields the driver attaches
- setup_logging: YAML dictConfig loading with ${VAR} substitution, used by
  ThundraPlugin when the host gives it no log sink
"""

import json
import logging
import logging.config
import os
import string
from datetime import datetime, timezone

import yaml

from .config import config as plugin_config

# Attributes every LogRecord has; anything else came in through `extra=`.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
}


def _extra_fields(record: logging.LogRecord) -> dict:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class CustomJsonFormatter(logging.Formatter):
    """
    JSON Formatter.

    Fields:
      - _time: ISO8601 timestamp (millisecond precision)
      - level, logger, message
      - function: name of the declared function, when the driver logs one
      - exception: formatted traceback, when present
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_data = {
            "_time": created.isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_extra_fields(record),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(config_path: str | None = None, level: str | None = None) -> bool:
    """
    Configure logging for a plugin run.

    Loads the YAML dictConfig at `config_path` (default LOG_CONFIG_PATH) after
    substituting ${VAR} from the environment; ${LOG_LEVEL} falls back to
    `level` or LOG_LEVEL. Without a config file only the level is applied.
    Returns True when the YAML file was loaded.
    """
    config_path = config_path or plugin_config.LOG_CONFIG_PATH
    level = (level or plugin_config.LOG_LEVEL).upper()

    if not os.path.exists(config_path):
        logging.basicConfig(level=level)
        logging.getLogger("serverless_thundra").setLevel(level)
        return False

    with open(config_path, "r", encoding="utf-8") as f:
        template = string.Template(f.read())

    content = template.safe_substitute({"LOG_LEVEL": level, **os.environ})
    logging.config.dictConfig(yaml.safe_load(content))
    return True
