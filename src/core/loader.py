"""Scrub set loading from persistent master lists (core domain)."""

from __future__ import annotations

import logging
from typing import Iterable

from core.masters import normalize_master_names
from core.ports import MasterStorePort

LOGGER = logging.getLogger(__name__)


def load_scrub_set(store: MasterStorePort, names: Iterable[str]) -> set[str]:
    """Return the union of phone numbers held by the named master lists.

    Names without a matching master contribute nothing. An empty selection
    means no scrubbing and never touches the store.
    """

    selected = normalize_master_names(names)
    if not selected:
        return set()

    phones = set(store.load_phones(selected))
    LOGGER.info("Loaded %s phone numbers from %s master lists", len(phones), len(selected))
    return phones
