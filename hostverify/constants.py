from pathlib import Path

APP_NAME = "hostverify"

PROJECT_ROOT = Path(__file__).resolve().parents[1]  # repo_root/hostverify/constants.py -> repo_root

DATA_DIR = PROJECT_ROOT / "data"
LOG_DIR = DATA_DIR / "logs"

EVENTS_LOG = LOG_DIR / "events.jsonl"

ENV_FILE = PROJECT_ROOT / ".env"

MIN_LOG_FREE_BYTES = 50 * 1024 * 1024
