"""Content-based deduplication of item groups.

A group's key is a digest over the raw bytes of its companion files, in the
configured extension order. The first group to claim a key owns it for the
rest of the run; later groups with the same key are duplicates.
"""
from __future__ import annotations

import hashlib
import threading
from pathlib import Path
from typing import Dict, Iterable, Optional


def content_digest(paths: Iterable[Path]) -> str:
    h = hashlib.sha256()
    for path in paths:
        data = Path(path).read_bytes()
        # length framing keeps ("ab", "c") and ("a", "bc") apart
        h.update(len(data).to_bytes(8, "big"))
        h.update(data)
    return h.hexdigest()


class ContentHashTable:
    """Run-local ``digest -> first owner`` map shared by all workers."""

    def __init__(self) -> None:
        self._owners: Dict[str, str] = {}
        self._lock = threading.Lock()

    def claim(self, digest: str, owner: str) -> Optional[str]:
        """Register ``owner`` for ``digest`` unless someone got there first.

        Returns the existing owner for a duplicate, ``None`` when ``owner``
        became the first owner. Lookup and insert share one critical section.
        """
        with self._lock:
            existing = self._owners.get(digest)
            if existing is not None:
                return existing
            self._owners[digest] = owner
            return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._owners)
