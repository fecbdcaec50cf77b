"""Configuration for the outreach scheduler."""
import os
from datetime import date
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Base paths
BASE_DIR = Path(__file__).resolve().parent.parent
LOGS_DIR = BASE_DIR / "logs"
LOGS_DIR.mkdir(exist_ok=True)

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
BETTERSTACK_SOURCE_TOKEN = os.getenv("BETTERSTACK_SOURCE_TOKEN")
BETTERSTACK_INGEST_HOST = os.getenv("BETTERSTACK_INGEST_HOST")

# Queue storage
QUEUE_FILE = Path(os.getenv("QUEUE_FILE", str(BASE_DIR / "queue.json")))

# Scheduling
DAILY_LIMIT = int(os.getenv("DAILY_LIMIT", "30"))
START_DATE = os.getenv("START_DATE") or date.today().isoformat()
SEND_WINDOW_START = os.getenv("SEND_WINDOW_START", "09:00")
SEND_WINDOW_END = os.getenv("SEND_WINDOW_END", "18:00")

# Delivery
DRY_RUN = os.getenv("DRY_RUN", "false").lower() == "true"
SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_TIMEOUT = int(os.getenv("SMTP_TIMEOUT", "60"))
SENDER_EMAIL = os.getenv("SENDER_EMAIL", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD") or os.getenv("GMAIL_APP_PASSWORD", "")
ATTACHMENT_PATH = os.getenv("ATTACHMENT_PATH", str(BASE_DIR / "resume" / "resume.pdf"))

# Content generation
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-flash-latest")
GENERATION_DELAY_SECONDS = float(os.getenv("GENERATION_DELAY_SECONDS", "1"))

# Worker settings
JITTER_MIN_SECONDS = float(os.getenv("JITTER_MIN_SECONDS", "30"))
JITTER_MAX_SECONDS = float(os.getenv("JITTER_MAX_SECONDS", "50"))
IDLE_INTERVAL_SECONDS = float(os.getenv("IDLE_INTERVAL_SECONDS", "30"))  # seconds between idle polls


def validate_config():
    """Validate required configuration."""
    errors = []

    if DAILY_LIMIT <= 0:
        errors.append(f"DAILY_LIMIT must be positive: {DAILY_LIMIT}")

    if JITTER_MIN_SECONDS < 0 or JITTER_MAX_SECONDS < JITTER_MIN_SECONDS:
        errors.append(
            f"Invalid jitter range: {JITTER_MIN_SECONDS}-{JITTER_MAX_SECONDS}s"
        )

    if not DRY_RUN:
        if not SENDER_EMAIL:
            errors.append("SENDER_EMAIL is required unless DRY_RUN=true")
        if not SMTP_PASSWORD:
            errors.append("SMTP_PASSWORD (or GMAIL_APP_PASSWORD) is required unless DRY_RUN=true")

    try:
        QUEUE_FILE.parent.mkdir(parents=True, exist_ok=True)
    except Exception as e:
        errors.append(f"Cannot create queue directory {QUEUE_FILE.parent}: {e}")

    if errors:
        raise ValueError("Config errors:\n  " + "\n  ".join(errors))
