# runner/config.py
import os

def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")

# Loop cadence (seconds)
SCAN_INTERVAL_SEC = float(os.getenv("SCAN_INTERVAL_SEC", "0.5"))
REACTION_DELAY_MIN_SEC = float(os.getenv("REACTION_DELAY_MIN_SEC", "1.0"))
REACTION_DELAY_MAX_SEC = float(os.getenv("REACTION_DELAY_MAX_SEC", "2.5"))
ERROR_BACKOFF_SEC = float(os.getenv("ERROR_BACKOFF_SEC", "1.0"))
FRAME_CAPTURE_INTERVAL_SEC = float(os.getenv("FRAME_CAPTURE_INTERVAL_SEC", "0.5"))

# Gestures
GESTURE_TIMEOUT_SEC = float(os.getenv("GESTURE_TIMEOUT_SEC", "5.0"))
HUMANIZE_GESTURES = _env_bool("HUMANIZE_GESTURES", "true")

# Grid matcher: "pairwise" or "hand_vs_board"
GRID_POLICY = os.getenv("GRID_POLICY", "pairwise")

# Device backend: "adb" or "playwright"
DEVICE_BACKEND = os.getenv("DEVICE_BACKEND", "adb")
ADB_PATH = os.getenv("ADB_PATH", "adb")
ADB_SERIAL = os.getenv("ADB_SERIAL") or None
ADB_COMMAND_TIMEOUT_SEC = float(os.getenv("ADB_COMMAND_TIMEOUT_SEC", "15"))
PLAYWRIGHT_START_URL = os.getenv("PLAYWRIGHT_START_URL", "about:blank")
HEADLESS = _env_bool("HEADLESS", "true")

# Observability
PROMETHEUS_METRICS_PORT = int(os.getenv("PROMETHEUS_METRICS_PORT", "9108"))
EVENT_QUEUE_SIZE = int(os.getenv("EVENT_QUEUE_SIZE", "100"))
