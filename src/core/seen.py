"""Shared set of numbers seen during one batch."""

from __future__ import annotations

import threading
from typing import Iterable, Optional


class BatchSeenSet:
    """Lock-guarded set shared by every file task in a batch.

    File tasks run on worker threads, so membership checks and inserts go
    through ``add_if_absent`` to keep check-and-insert atomic. A number only
    lands here when it is absent from both the scrub set and this set, so the
    contents at the end of a batch are exactly the batch's new numbers.
    """

    def __init__(self, initial: Optional[Iterable[str]] = None) -> None:
        self._numbers: set[str] = set(initial or ())
        self._lock = threading.Lock()

    def add_if_absent(self, number: str) -> bool:
        """Insert ``number`` and return True, or return False if already present."""

        with self._lock:
            if number in self._numbers:
                return False
            self._numbers.add(number)
            return True

    def __contains__(self, number: object) -> bool:
        with self._lock:
            return number in self._numbers

    def __len__(self) -> int:
        with self._lock:
            return len(self._numbers)

    def snapshot(self) -> set[str]:
        with self._lock:
            return set(self._numbers)
