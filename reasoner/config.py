# reasoner/config.py
import os

AZURE_OPENAI_BASE = os.getenv("AZURE_OPENAI_BASE", "https://your-openai-endpoint.openai.azure.com/")
AZURE_OPENAI_KEY = os.getenv("AZURE_OPENAI_KEY", "")
AZURE_DEPLOYMENT = os.getenv("AZURE_DEPLOYMENT", "gpt-4o-mini")
AZURE_API_VERSION = os.getenv("AZURE_API_VERSION", "2024-06-01")

REASONER_ENABLED = os.getenv("REASONER_ENABLED", "true").strip().lower() in ("1", "true", "yes", "on")
REASONER_TIMEOUT_SEC = float(os.getenv("REASONER_TIMEOUT_SEC", "8.0"))
REASONER_MAX_ELEMENTS = int(os.getenv("REASONER_MAX_ELEMENTS", "25"))
REASONER_HISTORY_SIZE = int(os.getenv("REASONER_HISTORY_SIZE", "4"))
REASONER_MAX_TOKENS = int(os.getenv("REASONER_MAX_TOKENS", "16"))
NO_ACTION_TOKEN = "NONE"
