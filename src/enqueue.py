"""Turn a batch of recipient rows into scheduled drafts."""
import time
from typing import Any, Dict, List, Optional, Protocol, Sequence

from src import settings
from src.gemini_client import GeneratedEmail, Signature
from src.logging_conf import logger
from src.queue.json_queue import JsonQueueStore
from src.queue.models import QueueItem
from src.scheduler import ScheduleParams, schedule


class ContentGenerator(Protocol):
    def generate_email(self, email: str, name: str = "", company: str = "",
                       prompt_template: str = "",
                       signature: Optional[Signature] = None) -> GeneratedEmail:
        ...


def enqueue_batch(
    store: JsonQueueStore,
    rows: Sequence[Dict[str, Any]],
    generator: ContentGenerator,
    params: ScheduleParams,
    prompt_template: str = "",
    signature: Optional[Signature] = None,
    generation_delay: Optional[float] = None,
) -> List[QueueItem]:
    """
    Generate and persist one draft per row.

    Slots are computed once for the whole batch before any content is
    generated, so bad scheduling input rejects the batch up front. Row `i`
    always gets slot `i`; rows without an email or whose generation fails
    are skipped and leave their slot unused. All drafts are written with a
    single store update at the end.

    Returns:
        The drafts that were enqueued
    """
    timestamps = schedule(len(rows), params)
    delay = settings.GENERATION_DELAY_SECONDS if generation_delay is None else generation_delay

    drafts = []
    for index, row in enumerate(rows):
        email = (row.get("email") or "").strip()
        name = (row.get("name") or "").strip()
        company = (row.get("company") or "").strip()

        if not email:
            logger.warning(f"Skipping row {index + 1} without email")
            continue

        logger.info(f"Generating email {index + 1} of {len(rows)} for {email}")
        try:
            generated = generator.generate_email(email, name, company, prompt_template, signature)
        except Exception as e:
            logger.error(f"Failed to generate email for {email}: {e}", exc_info=True)
            continue

        drafts.append(QueueItem.create(
            recipient=email,
            subject=generated.subject,
            body=generated.body,
            send_at=timestamps[index],
            name=name,
            company=company,
        ))

        if delay > 0 and index < len(rows) - 1:
            time.sleep(delay)

    if drafts:
        store.append(drafts)
    logger.info(f"Enqueued {len(drafts)} of {len(rows)} drafts")
    return drafts
