"""
Loggning för cotizador-backenden.
Anropa setup_logging() en gång vid uppstart (görs i main.lifespan).
"""
import json
import logging
from datetime import datetime, timezone
from typing import Optional


class JSONFormatter(logging.Formatter):
    """En JSON-rad per händelse (för produktion / maskinläsning)."""

    def format(self, record):
        entry = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        for key in ("model", "kind", "rate", "source", "quotation_id", "status"):
            if hasattr(record, key):
                entry[key] = getattr(record, key)
        return json.dumps(entry, default=str, ensure_ascii=False)


class HumanFormatter(logging.Formatter):
    """Läsbart konsolformat."""

    def format(self, record):
        ts = datetime.now().strftime("%H:%M:%S")
        line = f"{ts} [{record.levelname[0]}] {record.name}: {record.getMessage()}"
        if record.exc_info and record.exc_info[0]:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: Optional[str] = None, json_logs: Optional[bool] = None) -> None:
    from src.server.settings.config import settings

    level = (level or settings.log_level).upper()
    if json_logs is None:
        json_logs = settings.log_json

    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.INFO))
    root.handlers.clear()

    console = logging.StreamHandler()
    console.setFormatter(JSONFormatter() if json_logs else HumanFormatter())
    root.addHandler(console)

    for name in ("urllib3", "httpx", "openai", "reportlab"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("webnova").info("Loggning initierad (%s)", level)
