"""Pytest fixtures for queue, scheduler and worker tests."""
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import pytest

from src.queue.json_queue import JsonQueueStore
from src.queue.models import QueueItem, QueueStatus
from src.worker import Worker

NOW_MS = int(datetime(2026, 10, 20, 12, 0).timestamp() * 1000)


class FakeTransport:
    """Records sends; raises for recipients listed in `failing`."""

    dry_run = False

    def __init__(self, failing: Optional[set] = None, on_send=None):
        self.failing = failing or set()
        self.on_send = on_send
        self.sent: List[tuple] = []

    def send(self, recipient: str, subject: str, body: str) -> None:
        self.sent.append((recipient, subject, body))
        if self.on_send:
            self.on_send(recipient)
        if recipient in self.failing:
            raise ConnectionError(f"refused: {recipient}")


def make_item(recipient: str = "jane@example.com", status: QueueStatus = QueueStatus.QUEUED,
              send_at: int = NOW_MS - 60_000, retries: int = 0, **kwargs) -> QueueItem:
    item = QueueItem.create(
        recipient=recipient,
        subject=kwargs.pop("subject", f"Hello {recipient}"),
        body=kwargs.pop("body", "<p>Hi</p>"),
        send_at=send_at,
    )
    item.status = status
    item.retries = retries
    for key, value in kwargs.items():
        setattr(item, key, value)
    return item


@pytest.fixture
def queue_path(tmp_path: Path) -> Path:
    return tmp_path / "queue.json"


@pytest.fixture
def store(queue_path: Path) -> JsonQueueStore:
    return JsonQueueStore(queue_path)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def sleeps() -> list:
    return []


@pytest.fixture
def worker(store: JsonQueueStore, transport: FakeTransport, sleeps: list) -> Worker:
    w = Worker(store=store, transport=transport, clock=lambda: NOW_MS)
    w._sleep = sleeps.append
    return w
