"""Main application - runs the dispatch worker and queue maintenance commands."""
import argparse
import csv
import signal
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Dict, List, Tuple

from src.logging_conf import logger
from src import settings
from src.content_cache import ContentCache
from src.enqueue import enqueue_batch
from src.errors import (
    ContentGenerationError, CriticalLoopFailure, InvalidScheduleParameters, StoreError,
)
from src.gemini_client import GeminiClient, Signature
from src.queue.json_queue import JsonQueueStore
from src.scheduler import ScheduleParams
from src.worker import Worker


class Application:
    """Hosts the dispatch worker in the foreground."""

    def __init__(self, store=None, worker=None):
        self.store = store or JsonQueueStore()
        self.worker = worker or Worker(store=self.store)

    def start(self):
        """Validate configuration and log the effective setup."""
        logger.info("=" * 50)
        logger.info("Outreach Scheduler")
        logger.info("=" * 50)
        logger.info(f"Queue file: {self.store.path}")
        logger.info(f"Dry run: {settings.DRY_RUN}")
        logger.info(f"Jitter: {settings.JITTER_MIN_SECONDS:.0f}-{settings.JITTER_MAX_SECONDS:.0f}s, "
                    f"idle poll: {settings.IDLE_INTERVAL_SECONDS:.0f}s")
        logger.info("=" * 50)

        settings.validate_config()

    def stop(self):
        """Ask the worker to finish its current delivery and exit."""
        self.worker.stop()

    def run(self):
        """Main loop."""
        self.start()
        self.worker.run()
        logger.info("Stopped")


def approve(store: JsonQueueStore) -> int:
    count = store.approve_drafts()
    logger.info(f"User approved {count} draft emails. Worker will now process them.")
    return count


def status(store: JsonQueueStore) -> dict:
    counts = store.counts()
    for name, value in counts.items():
        logger.info(f"{name:>8}: {value}")
    return counts


def read_rows(csv_path: Path) -> List[Dict[str, str]]:
    """Load recipient rows; headers are matched case-insensitively."""
    with open(csv_path, newline="", encoding="utf-8-sig") as f:
        return [
            {(key or "").strip().lower(): (value or "") for key, value in row.items()}
            for row in csv.DictReader(f)
        ]


def enqueue(store: JsonQueueStore, args) -> int:
    """Generate drafts for every row of the CSV file."""
    rows = read_rows(Path(args.csv_file))
    if not rows:
        logger.warning(f"CSV file {args.csv_file} is empty")
        return 0

    params = ScheduleParams.from_settings(
        start_date=args.start_date,
        window_start=args.window_start,
        window_end=args.window_end,
        daily_limit=args.daily_limit,
    )
    generator = GeminiClient(cache=ContentCache())
    prompt_template = Path(args.prompt_file).read_text(encoding="utf-8") if args.prompt_file else ""
    signature = generator.extract_signature() if args.with_signature else None

    drafts = enqueue_batch(store, rows, generator, params,
                           prompt_template=prompt_template, signature=signature)
    logger.info(f"Successfully enqueued {len(drafts)} emails. Run 'approve' to release them.")
    return len(drafts)


def profile(args) -> Tuple[Signature, str]:
    """Extract signature details and a suggested prompt from the resume."""
    client = GeminiClient(cache=ContentCache())
    signature = client.extract_signature()
    suggested = client.suggest_prompt()

    for key, value in asdict(signature).items():
        logger.info(f"{key:>10}: {value}")
    if args.prompt_out:
        Path(args.prompt_out).write_text(suggested, encoding="utf-8")
        logger.info(f"Suggested prompt written to {args.prompt_out}")
    else:
        logger.info(f"Suggested prompt:\n{suggested}")
    return signature, suggested


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="outreach", description="Scheduled outreach dispatcher")
    commands = parser.add_subparsers(dest="command")

    commands.add_parser("worker", help="Run the dispatch worker (default)")
    commands.add_parser("approve", help="Release all drafts to the worker")
    commands.add_parser("status", help="Show item counts per status")

    enqueue_cmd = commands.add_parser("enqueue", help="Generate scheduled drafts from a CSV file")
    enqueue_cmd.add_argument("csv_file", help="CSV with email, name and company columns")
    enqueue_cmd.add_argument("--start-date", help="First send date (YYYY-MM-DD)")
    enqueue_cmd.add_argument("--window-start", help="Send window start (HH:MM)")
    enqueue_cmd.add_argument("--window-end", help="Send window end (HH:MM)")
    enqueue_cmd.add_argument("--daily-limit", type=int, help="Emails per allowed day")
    enqueue_cmd.add_argument("--prompt-file", help="Prompt template file")
    enqueue_cmd.add_argument("--with-signature", action="store_true",
                             help="Append a signature extracted from the resume")

    profile_cmd = commands.add_parser("profile", help="Extract signature and suggest a prompt from the resume")
    profile_cmd.add_argument("--prompt-out", help="Write the suggested prompt to this file")
    return parser


def main(argv=None):
    """Entry point."""
    args = build_parser().parse_args(argv)
    command = args.command or "worker"

    store = JsonQueueStore()

    try:
        if command == "approve":
            approve(store)
            return
        if command == "status":
            status(store)
            return
        if command == "enqueue":
            enqueue(store, args)
            return
        if command == "profile":
            profile(args)
            return
    except StoreError as e:
        logger.error(f"Queue store error: {e}")
        sys.exit(1)
    except InvalidScheduleParameters as e:
        logger.error(f"Invalid scheduling parameters: {e}")
        sys.exit(1)
    except (ContentGenerationError, OSError) as e:
        logger.error(f"{command} failed: {e}")
        sys.exit(1)

    app = Application(store=store)

    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}")
        app.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        app.run()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    except CriticalLoopFailure as e:
        logger.critical(f"Worker terminated: {e}")
        sys.exit(2)


if __name__ == "__main__":
    main()
