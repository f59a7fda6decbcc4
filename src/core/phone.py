"""Phone normalization and validation (core domain).

Only the US numbering plan is supported: a valid number is exactly ten digits
and may not start with 0 or 1.
"""

from __future__ import annotations

import re
from typing import Union

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(raw: Union[str, int, None]) -> str:
    """Return the comparable digit-only key for a raw phone value.

    A leading country code is dropped only for 11-digit values starting with
    1; every other digit string is returned as-is, whatever its length.
    """

    if raw is None:
        return ""
    digits = _NON_DIGITS.sub("", str(raw))
    if len(digits) == 11 and digits.startswith("1"):
        return digits[1:]
    return digits


def is_valid_phone(normalized: str) -> bool:
    """Check that a normalized value is a dialable US number."""

    return len(normalized) == 10 and normalized[0] not in "01"
