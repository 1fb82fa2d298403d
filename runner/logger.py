# runner/logger.py
import json
import os
from datetime import datetime, timezone
from typing import Any

LOG_LEVEL = os.getenv("AGENT_LOG_LEVEL", "INFO").upper()
LEVELS = {"DEBUG": 10, "INFO": 20, "WARN": 30, "ERROR": 40, "CRITICAL": 50}

def _should_log(level: str) -> bool:
    return LEVELS.get(level, 20) >= LEVELS.get(LOG_LEVEL, 20)

def log(level: str, event: str, message: str = "", **kwargs: Any) -> None:
    if not _should_log(level):
        return
    entry = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "level": level,
        "event": event,
        "message": str(message),
        "payload": kwargs
    }
    try:
        print(json.dumps(entry, default=str), flush=True)
    except Exception as e:
        # payload could not be serialized; keep the event itself
        print(json.dumps({
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": "ERROR",
            "event": "log_serialization_error",
            "message": f"Failed to log event {event}: {str(e)}",
            "payload": {"original_message": str(message)}
        }), flush=True)

class Logger:
    def debug(self, message: str):
        log("DEBUG", "debug", message)

    def info(self, message: str):
        log("INFO", "info", message)

    def warning(self, message: str):
        log("WARN", "warning", message)

    def error(self, message: str):
        log("ERROR", "error", message)

logger = Logger()
