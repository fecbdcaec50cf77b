"""Logging for the scheduler: console, rotating app.log and optional Betterstack."""
import logging
import sys
from logging.handlers import RotatingFileHandler
from logtail import LogtailHandler

from src import settings

LOG_FILE_NAME = "app.log"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(item_id)s] %(message)s"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


class ItemContextFilter(logging.Filter):
    """Gives every record an item_id so the format string never fails.

    Delivery logs pass ``extra={"item_id": ...}``; everything else shows "-".
    """

    def filter(self, record):
        if not hasattr(record, "item_id"):
            record.item_id = "-"
        return True


def _file_handler(formatter, context):
    handler = RotatingFileHandler(
        settings.LOGS_DIR / LOG_FILE_NAME, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS
    )
    handler.setLevel(logging.INFO)
    handler.setFormatter(formatter)
    handler.addFilter(context)
    return handler


def _betterstack_handler(formatter, context):
    """Returns None when no source token is configured."""
    if not settings.BETTERSTACK_SOURCE_TOKEN:
        return None
    options = {"source_token": settings.BETTERSTACK_SOURCE_TOKEN}
    if settings.BETTERSTACK_INGEST_HOST:
        options["host"] = settings.BETTERSTACK_INGEST_HOST
    handler = LogtailHandler(**options)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    handler.addFilter(context)
    return handler


def setup_logging(name="outreach"):
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)
    context = ItemContextFilter()

    root = logging.getLogger()
    root.setLevel(level)
    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(formatter)
    console.addFilter(context)
    root.addHandler(console)
    root.addHandler(_file_handler(formatter, context))

    try:
        remote = _betterstack_handler(formatter, context)
    except Exception as e:
        root.warning(f"Betterstack logging unavailable: {e}")
    else:
        if remote is not None:
            root.addHandler(remote)
            root.info(f"Betterstack logging enabled (host: {settings.BETTERSTACK_INGEST_HOST or 'default'})")

    # requests retries are noisy at INFO
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    return logging.getLogger(name)


logger = setup_logging()
