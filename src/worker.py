"""Worker that dispatches queued messages at their scheduled time."""
import random
import threading
from datetime import datetime
from typing import Callable, Optional

from src import settings
from src.errors import CriticalLoopFailure
from src.logging_conf import logger
from src.mailer import Transport, build_transport
from src.queue.json_queue import JsonQueueStore
from src.queue.models import QueueItem, QueueStatus, now_ms

# Failed attempts after which an item is given up as `error`.
MAX_ATTEMPTS = 2


class Worker:
    """
    Polls the queue store and sends due items one at a time.

    Every pass re-reads the whole store, so approvals and edits made by other
    callers become visible on the next poll. Stopping takes effect between
    deliveries; a delivery already in progress always completes.
    """

    def __init__(self, store: Optional[JsonQueueStore] = None,
                 transport: Optional[Transport] = None,
                 clock: Callable[[], int] = now_ms,
                 rng: Optional[random.Random] = None):
        self.store = store or JsonQueueStore()
        self.transport = transport or build_transport()
        self.clock = clock
        self.rng = rng or random.Random()
        self.jitter_range = (settings.JITTER_MIN_SECONDS, settings.JITTER_MAX_SECONDS)
        self.idle_interval = settings.IDLE_INTERVAL_SECONDS
        self.failure: Optional[CriticalLoopFailure] = None
        self._stop_event = threading.Event()
        self.thread = None

    @property
    def running(self) -> bool:
        return self.thread is not None and self.thread.is_alive()

    def start(self):
        """Start the worker in a background thread."""
        if self.running:
            logger.warning("Worker is already running")
            return

        self._stop_event.clear()
        self.failure = None
        self.thread = threading.Thread(target=self._run_in_thread, name="dispatch-worker", daemon=True)
        self.thread.start()
        logger.info("Worker started")

    def stop(self, timeout: float = 10):
        """Request a stop and wait for the current delivery to finish."""
        self._stop_event.set()
        if self.thread and self.thread is not threading.current_thread():
            self.thread.join(timeout=timeout)
        logger.info("Worker stopped")

    def wait(self, timeout: Optional[float] = None):
        """Block until the background thread exits; re-raise a loop failure."""
        if self.thread:
            self.thread.join(timeout=timeout)
        if self.failure:
            raise self.failure

    def run(self):
        """Main worker loop. Blocks until stop() is called."""
        logger.info("Worker loop started")

        while not self._stop_event.is_set():
            try:
                self.poll_once()
            except Exception as e:
                logger.critical(f"Critical worker error: {e}", exc_info=True)
                raise CriticalLoopFailure(f"Dispatch loop aborted: {e}") from e

        logger.info("Worker loop stopped")

    def poll_once(self) -> int:
        """Run one pass over the queue. Returns the number of due items found."""
        items = self.store.read_all()
        now = self.clock()
        due = [item for item in items if item.is_due(now)]

        if not due:
            self._log_idle(items)
            self._sleep(self.idle_interval)
            return 0

        logger.info(f"Found {len(due)} pending emails ready to send")
        for item in due:
            if self._stop_event.is_set():
                break
            self.deliver(item)

            delay = self.rng.uniform(*self.jitter_range)
            logger.info(f"Jitter: waiting {delay:.0f}s before next action")
            self._sleep(delay)

        return len(due)

    def deliver(self, item: QueueItem) -> QueueItem:
        """
        Attempt one delivery and record the outcome.

        Transport errors are turned into a retry increment (and `error` once
        MAX_ATTEMPTS failures are reached); store errors propagate.
        """
        extra = {"item_id": item.id}
        try:
            logger.info(f"Attempting to send email to {item.recipient}", extra=extra)
            self.transport.send(item.recipient, item.subject, item.body)
        except Exception as e:
            retries = item.retries + 1
            status = QueueStatus.ERROR if retries >= MAX_ATTEMPTS else QueueStatus.QUEUED
            logger.error(f"Failed to send email to {item.recipient}: {e}", extra=extra)
            updated = self.store.update(item.id, status=status, retries=retries)
            logger.info(f"Updated status to '{status.value}' after {retries} retries", extra=extra)
        else:
            if getattr(self.transport, "dry_run", False):
                updated = self.store.update(item.id, status=QueueStatus.DRY_RUN)
            else:
                updated = self.store.update(item.id, status=QueueStatus.SENT, sent_at=self.clock())
            logger.info(f"Successfully sent email to {item.recipient}", extra=extra)

        return updated or item

    def _log_idle(self, items):
        queued = [item for item in items if item.status == QueueStatus.QUEUED]
        if not queued:
            logger.info("Idle. No emails in queue.")
            return
        next_item = min(queued, key=lambda item: item.send_at)
        next_at = datetime.fromtimestamp(next_item.send_at / 1000)
        logger.info(f"Idle. Next scheduled email: {next_item.recipient} at {next_at.isoformat(sep=' ')}")

    def _sleep(self, seconds: float):
        self._stop_event.wait(seconds)

    def _run_in_thread(self):
        try:
            self.run()
        except CriticalLoopFailure as e:
            self.failure = e
