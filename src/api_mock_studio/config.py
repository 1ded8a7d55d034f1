import os
from pathlib import Path

DATA_DIR = Path(os.getenv("API_MOCK_STUDIO_HOME", "~/.api-mock-studio")).expanduser()
SETTINGS_FILE = DATA_DIR / "settings.json"

HOST = os.getenv("API_MOCK_STUDIO_HOST", "127.0.0.1")

STARTUP_TIMEOUT = float(os.getenv("API_MOCK_STUDIO_STARTUP_TIMEOUT", "5"))
DRAIN_TIMEOUT = int(os.getenv("API_MOCK_STUDIO_DRAIN_TIMEOUT", "30"))

LOG_LEVEL = os.getenv("API_MOCK_STUDIO_LOG_LEVEL", "INFO")
