"""Cache for text derived from source files, keyed by content fingerprint."""
import hashlib
import io
import threading
from pathlib import Path
from typing import Callable, Dict, Optional

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from src.logging_conf import logger


def fingerprint(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def extract_text(data: bytes) -> str:
    """Text of a PDF document, or the bytes decoded as UTF-8 for anything else."""
    if not data.startswith(b"%PDF"):
        return data.decode("utf-8", errors="replace")

    try:
        reader = PdfReader(io.BytesIO(data))
        return "\n".join(page.extract_text() or "" for page in reader.pages).strip()
    except PdfReadError as e:
        logger.error(f"Error parsing resume PDF: {e}")
        return ""


class ContentCache:
    """
    Holds derived text per source fingerprint.

    A changed file yields a new fingerprint and therefore a fresh extraction,
    so callers only need `invalidate()` when the extractor itself changes.
    """

    def __init__(self, extractor: Callable[[bytes], str] = extract_text):
        self.extractor = extractor
        self._entries: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get_text(self, path: Optional[Path]) -> str:
        """Return derived text for `path`, or "" when the file does not exist."""
        if not path:
            return ""
        path = Path(path)
        if not path.is_file():
            logger.debug(f"Content source {path} not found")
            return ""

        data = path.read_bytes()
        key = fingerprint(data)
        with self._lock:
            if key not in self._entries:
                self._entries[key] = self.extractor(data)
                logger.info(f"Cached content of {path.name} ({key[:12]})")
            return self._entries[key]

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one entry, or everything when no key is given."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)
