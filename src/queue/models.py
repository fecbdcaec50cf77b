"""Queue data models."""
import time
import uuid
from dataclasses import dataclass, asdict, fields
from enum import Enum
from typing import Dict, Any, Optional


def now_ms() -> int:
    """Current wall clock as epoch milliseconds."""
    return int(time.time() * 1000)


class QueueStatus(str, Enum):
    """Lifecycle states of a queued message."""
    DRAFT = "draft"
    QUEUED = "queued"
    SENT = "sent"
    ERROR = "error"
    DRY_RUN = "dry-run"


@dataclass
class QueueItem:
    """Represents one scheduled outbound message."""

    id: str
    recipient: str
    subject: str
    body: str
    send_at: int  # epoch ms, fixed at creation
    status: QueueStatus
    retries: int
    created_at: int  # epoch ms
    name: str = ""
    company: str = ""
    sent_at: Optional[int] = None

    @classmethod
    def create(cls, recipient: str, subject: str, body: str, send_at: int,
               name: str = "", company: str = ""):
        """Factory method to create a fresh draft."""
        return cls(
            id=str(uuid.uuid4()),
            recipient=recipient,
            subject=subject,
            body=body,
            send_at=send_at,
            status=QueueStatus.DRAFT,
            retries=0,
            created_at=now_ms(),
            name=name,
            company=company,
        )

    def is_due(self, now: int) -> bool:
        return self.status == QueueStatus.QUEUED and self.send_at <= now

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        """
        Build an item from its persisted form; unknown keys are ignored.

        Raises:
            KeyError, TypeError or ValueError when the record is malformed
        """
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        values["status"] = QueueStatus(values["status"])

        for name in _STR_FIELDS:
            if name in values and not isinstance(values[name], str):
                raise ValueError(f"'{name}' must be a string, got {values[name]!r}")
        for name in _INT_FIELDS:
            if name in values and not _is_int(values[name]):
                raise ValueError(f"'{name}' must be an integer, got {values[name]!r}")
        if values.get("sent_at") is not None and not _is_int(values["sent_at"]):
            raise ValueError(f"'sent_at' must be an integer or null, got {values['sent_at']!r}")
        if values.get("retries", 0) < 0:
            raise ValueError(f"'retries' must not be negative, got {values['retries']}")

        return cls(**values)


_STR_FIELDS = ("id", "recipient", "subject", "body", "name", "company")
_INT_FIELDS = ("send_at", "created_at", "retries")


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
