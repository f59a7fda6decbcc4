"""Folding newly discovered numbers into master lists (core domain).

The merge is two-phase: bulk insert-if-absent of phones and memberships,
then a recount of every touched master from the membership table. Counters
are never incremented, so a retried or half-finished earlier merge is
corrected by the next one.
"""

from __future__ import annotations

import logging
import time
from typing import Iterable, Iterator

from core.config import GLOBAL_MASTER
from core.masters import normalize_master_names
from core.models import MasterSet, MergeReport
from core.ports import MasterStorePort

LOGGER = logging.getLogger(__name__)


def _chunks(items: list[str], size: int) -> Iterator[list[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class MasterMerger:
    """Persists a batch's new numbers into GLOBAL plus the requested masters."""

    def __init__(
        self,
        store: MasterStorePort,
        chunk_size: int = 20_000,
        global_master: str = GLOBAL_MASTER,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._store = store
        self._chunk_size = chunk_size
        self._global_master = global_master

    def target_names(self, names: Iterable[str]) -> list[str]:
        """Return normalized target names with the global master first."""

        return normalize_master_names([self._global_master, *names])

    def merge(self, new_numbers: Iterable[str], target_names: Iterable[str]) -> MergeReport:
        """Add ``new_numbers`` to every target master and refresh their counts.

        Every step is idempotent; a PersistenceError from the store aborts the
        call and the caller may simply run it again.
        """

        phones = sorted(set(new_numbers))
        names = self.target_names(target_names)
        started = time.monotonic()

        masters: list[MasterSet] = [self._store.find_or_create_master(name) for name in names]

        if phones:
            LOGGER.info("Merging %s phones into %s masters", len(phones), len(masters))
            for chunk in _chunks(phones, self._chunk_size):
                inserted = self._store.insert_phones(chunk)
                LOGGER.debug("Inserted %s new phones from a chunk of %s", inserted, len(chunk))
                for master in masters:
                    self._store.insert_memberships(master.id, chunk)

        # Counts are rebuilt from the mapping table on every run.
        updated: list[MasterSet] = []
        for master in masters:
            count = self._store.recount_master(master.id)
            updated.append(
                MasterSet(
                    id=master.id,
                    name=master.name,
                    phone_count=count,
                    created_at=master.created_at,
                    updated_at=master.updated_at,
                )
            )
            LOGGER.info("Master %s now holds %s phones", master.name, count)

        LOGGER.info("Merge complete: %s phones in %.1fs", len(phones), time.monotonic() - started)
        return MergeReport(phones_submitted=len(phones), masters=updated)
