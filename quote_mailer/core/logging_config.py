"""
Structured logging configuration for Quote Mailer.
Import and call setup_logging() once at app startup.

Pipeline code attaches request context through ``extra=``:

    log.info("Quote delivered", extra={"fingerprint": fp[:16], "file": name})

JSON output carries those keys as top-level fields. The console format
shows the delivery keys (fingerprint, recipient, file) as a short tag so a
single request can be followed through dedup, render and mail.
"""
import logging
import logging.handlers
import os
import json
from datetime import datetime, timezone

from .paths import LOG_DIR

SERVICE = "quote-mailer"

# Set by the before/after_request hooks
_HTTP_KEYS = ("route", "method", "status", "duration_ms")
# Set by the cache, orchestrator and sender; value is the console label
_DELIVERY_TAGS = {"fingerprint": "fp", "recipient": "to", "file": "file"}
_DELIVERY_KEYS = tuple(_DELIVERY_TAGS)
_METRIC_KEYS = ("quote_total", "items")
_EXTRA_KEYS = _HTTP_KEYS + _DELIVERY_KEYS + _METRIC_KEYS


def _context(record, keys):
    return {k: getattr(record, k) for k in keys if getattr(record, k, None) is not None}


class JSONFormatter(logging.Formatter):
    """Structured JSON log lines for machine parsing."""
    def format(self, record):
        ts = datetime.fromtimestamp(record.created, timezone.utc)
        entry = {
            "ts": ts.strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "service": SERVICE,
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(_context(record, _EXTRA_KEYS))
        return json.dumps(entry, default=str)


class HumanFormatter(logging.Formatter):
    """Readable console format with color and a delivery-context tag."""
    COLORS = {
        "DEBUG": "\033[36m", "INFO": "\033[32m",
        "WARNING": "\033[33m", "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record):
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        name = record.name
        if name.startswith("quotes."):
            name = name[len("quotes."):]
        line = f"{color}{ts} [{record.levelname[0]}] {name}: {record.getMessage()}"
        ctx = _context(record, _DELIVERY_KEYS)
        tag = " ".join(f"{_DELIVERY_TAGS[k]}={v}" for k, v in ctx.items())
        if tag:
            line += f" [{tag}]"
        line += self.RESET
        if record.exc_info and record.exc_info[0]:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level=None, json_logs=None, log_dir=None):
    """
    Configure logging for the full application.

    Args:
        level: Override log level (default: from LOG_LEVEL env or INFO)
        json_logs: Force JSON format (default: True on Railway or when JSON_LOGS is set)
        log_dir: Directory for quotes.log (default: DATA_DIR/logs)
    """
    if level is None:
        level = os.environ.get("LOG_LEVEL", "INFO").upper()
    if json_logs is None:
        json_logs = (os.environ.get("RAILWAY_ENVIRONMENT") is not None
                     or os.environ.get("JSON_LOGS", "").lower() == "true")

    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.INFO))
    root.handlers.clear()

    console = logging.StreamHandler()
    console.setFormatter(JSONFormatter() if json_logs else HumanFormatter())
    root.addHandler(console)

    # quotes.log is always JSON, 5MB x 5
    log_dir = log_dir or LOG_DIR
    try:
        os.makedirs(log_dir, exist_ok=True)
        fh = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, "quotes.log"),
            maxBytes=5_000_000, backupCount=5,
        )
        fh.setFormatter(JSONFormatter())
        root.addHandler(fh)
    except OSError:
        logging.getLogger("quotes").warning("File logging disabled: %s not writable", log_dir)

    for name in ("urllib3", "werkzeug", "reportlab"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("quotes").info("Logging initialized (level=%s, json=%s)", level, json_logs)
