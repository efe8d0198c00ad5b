"""
Analysis Cache
==============

Content-addressed, thread-safe in-memory store mapping a fingerprint of
the normalized feedback text to a previously computed FeedbackAnalysis.

Entries never expire and the map is unbounded; it is emptied only by
clear(). Last writer wins on duplicate keys, which is harmless because the
value is a pure function of the source text.
"""

import hashlib
import threading
from typing import Dict, Optional

from app.models.feedback import FeedbackAnalysis


def normalize_text(text: str) -> str:
    return text.strip().casefold()


def fingerprint(text: str) -> str:
    """Stable cache key for ``text``: SHA-256 of the case-folded, trimmed text."""
    return hashlib.sha256(normalize_text(text).encode("utf-8")).hexdigest()


class AnalysisCache:
    """Thread-safe fingerprint -> FeedbackAnalysis map."""

    def __init__(self):
        self._entries: Dict[str, FeedbackAnalysis] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[FeedbackAnalysis]:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: str, analysis: FeedbackAnalysis) -> None:
        with self._lock:
            self._entries[key] = analysis

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
