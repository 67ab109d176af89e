# logging_config.py
# Logging setup for the API process and the email poller. Call setup_logging() once at startup.

import json
import logging
import logging.handlers
import os
from datetime import datetime, timezone

from . import config

_CONFIGURED = False


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record):
        entry = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "module": record.module,
            "func": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        for key in ("rfp_id", "vendor_id", "email_id", "proposal_id", "seqno"):
            if hasattr(record, key):
                entry[key] = getattr(record, key)
        return json.dumps(entry, default=str)


class HumanFormatter(logging.Formatter):
    def format(self, record):
        ts = datetime.now().strftime("%H:%M:%S")
        line = f"{ts} [{record.levelname[0]}] {record.name}: {record.getMessage()}"
        if record.exc_info and record.exc_info[0]:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level=None, json_logs=None):
    """
    Configure the root logger.

    Args:
        level: log level name (default: LOG_LEVEL env or INFO)
        json_logs: JSON console output (default: LOG_JSON env == "true")
    """
    global _CONFIGURED
    if _CONFIGURED:
        return
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO").upper()
    if json_logs is None:
        json_logs = os.getenv("LOG_JSON", "false").lower() == "true"

    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.INFO))
    root.handlers.clear()

    console = logging.StreamHandler()
    console.setFormatter(JSONFormatter() if json_logs else HumanFormatter())
    root.addHandler(console)

    # rotates at 5MB, keeps 5 backups
    try:
        log_dir = config.data_dir() / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.handlers.RotatingFileHandler(
            log_dir / "rfpdesk.log", maxBytes=5_000_000, backupCount=5,
        )
        fh.setFormatter(JSONFormatter())
        root.addHandler(fh)
    except OSError:
        root.warning("File logging disabled: data directory is not writable")

    for name in ("urllib3", "httpx", "openai", "pypdf"):
        logging.getLogger(name).setLevel(logging.WARNING)

    _CONFIGURED = True
    logging.getLogger("rfpdesk").info("Logging initialized (level=%s)", level)
