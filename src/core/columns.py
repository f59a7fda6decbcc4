"""Phone column detection for uploaded CSV headers."""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

LOGGER = logging.getLogger(__name__)

PHONE_HINTS: tuple[str, ...] = ("phone", "number", "mobile", "cell")


def detect_phone_column(
    headers: Sequence[str],
    explicit: Optional[str] = None,
    hints: Iterable[str] = PHONE_HINTS,
) -> Optional[str]:
    """Pick the column holding phone numbers.

    Resolution order:
    - An explicit column name always wins, even if it is not in the header.
    - Otherwise the first header containing a hint token (case-insensitive).
    - Otherwise the first column. Files without a phone-like header are still
      processed against whatever sits in column one.

    Returns None only when there are no headers at all.
    """

    if explicit:
        return explicit
    if not headers:
        return None

    lowered_hints = [hint.lower() for hint in hints]
    for header in headers:
        lowered = header.lower()
        if any(hint in lowered for hint in lowered_hints):
            return header

    LOGGER.info("No phone-like header found, falling back to %r", headers[0])
    return headers[0]
