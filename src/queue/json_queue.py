"""JSON snapshot file based queue store."""
import dataclasses
import json
import os
import stat
import tempfile
import threading
from collections import Counter
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from src import settings
from src.errors import StoreCorrupt, StoreUnavailable, ItemNotFound, ItemNotEditable
from src.logging_conf import logger
from src.queue.models import QueueItem, QueueStatus

DEFAULT_FILE_MODE = 0o644


class JsonQueueStore:
    """
    Durable set of queue items kept as a single JSON array on disk.

    Every operation reads the whole file and rewrites it in full. One writer
    process at a time is assumed; inside that process callers must share one
    instance so read-modify-write cycles are serialised by its lock.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path: Path = Path(path) if path is not None else settings.QUEUE_FILE
        self._lock = threading.RLock()

    def read_all(self) -> List[QueueItem]:
        """Load every item. A missing file is an empty queue."""
        with self._lock:
            if not self.path.exists():
                logger.debug(f"Queue file {self.path} not found; treating as empty")
                return []

            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    raw = f.read()
            except OSError as e:
                raise StoreUnavailable(f"Cannot read queue file {self.path}: {e}") from e

            try:
                data = json.loads(raw)
            except json.JSONDecodeError as e:
                raise StoreCorrupt(f"Queue file {self.path} is not valid JSON: {e}") from e

            if not isinstance(data, list):
                raise StoreCorrupt(f"Queue file {self.path} must hold a JSON array")

            items = []
            for index, record in enumerate(data):
                if not isinstance(record, dict):
                    raise StoreCorrupt(f"Queue record #{index} is not an object")
                try:
                    items.append(QueueItem.from_dict(record))
                except (KeyError, TypeError, ValueError) as e:
                    raise StoreCorrupt(f"Queue record #{index} is malformed: {e}") from e
            return items

    def write_all(self, items: Iterable[QueueItem]) -> None:
        """Replace the persisted snapshot with `items`."""
        payload = json.dumps([item.to_dict() for item in items], indent=2)
        with self._lock:
            tmp_name = None
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
                )
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                    f.flush()
                    os.fsync(f.fileno())
                # mkstemp creates 0600; keep the mode the queue file already has
                mode = self.path.stat().st_mode if self.path.exists() else DEFAULT_FILE_MODE
                os.chmod(tmp_name, stat.S_IMODE(mode))
                os.replace(tmp_name, self.path)
            except OSError as e:
                if tmp_name:
                    Path(tmp_name).unlink(missing_ok=True)
                raise StoreUnavailable(f"Cannot write queue file {self.path}: {e}") from e

    def append(self, new_items: Iterable[QueueItem]) -> None:
        """Add items to the end of the queue with a single write."""
        with self._lock:
            items = self.read_all()
            items.extend(new_items)
            self.write_all(items)

    def update(self, item_id: str, **changes) -> Optional[QueueItem]:
        """Merge `changes` into the item with `item_id`. Unknown ids are ignored."""
        with self._lock:
            items = self.read_all()
            for index, item in enumerate(items):
                if item.id == item_id:
                    items[index] = dataclasses.replace(item, **changes)
                    self.write_all(items)
                    return items[index]

            logger.warning(f"Queue update skipped; no item with id {item_id}")
            return None

    def approve_drafts(self) -> int:
        """Move every draft to queued. Returns how many changed."""
        with self._lock:
            items = self.read_all()
            count = 0
            for item in items:
                if item.status == QueueStatus.DRAFT:
                    item.status = QueueStatus.QUEUED
                    count += 1

            if count > 0:
                self.write_all(items)
            logger.info(f"Approved {count} drafts")
            return count

    def edit_draft(self, item_id: str, subject: Optional[str] = None,
                   body: Optional[str] = None) -> QueueItem:
        """Change the content of a draft. Queued and later items are immutable."""
        with self._lock:
            items = self.read_all()
            for index, item in enumerate(items):
                if item.id != item_id:
                    continue
                if item.status != QueueStatus.DRAFT:
                    raise ItemNotEditable(item_id, item.status.value)

                changes = {}
                if subject is not None:
                    changes["subject"] = subject
                if body is not None:
                    changes["body"] = body
                items[index] = dataclasses.replace(item, **changes)
                self.write_all(items)
                return items[index]

            raise ItemNotFound(item_id)

    def counts(self) -> Dict[str, int]:
        """Number of items per status."""
        tally = Counter(item.status.value for item in self.read_all())
        return {status.value: tally.get(status.value, 0) for status in QueueStatus}
