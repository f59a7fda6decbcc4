"""CSV deduplication against a scrub set and the batch's seen numbers (core domain)."""

from __future__ import annotations

import csv
import io
import logging
from typing import AbstractSet, Iterable, Iterator, Optional, Union

from core.columns import PHONE_HINTS, detect_phone_column
from core.errors import FileProcessingError
from core.models import DedupeResult
from core.phone import is_valid_phone, normalize_phone
from core.seen import BatchSeenSet

LOGGER = logging.getLogger(__name__)

# csv.DictReader stores surplus fields under this key.
_OVERFLOW_KEY = "__overflow__"


def _iter_rows(reader: csv.DictReader) -> Iterator[dict[str, str]]:
    """Yield usable rows, skipping blank and over-long records."""

    for row in reader:
        if _OVERFLOW_KEY in row:
            LOGGER.debug("Skipping malformed row on line %s", reader.line_num)
            continue
        if all(value is None or not str(value).strip() for value in row.values()):
            continue
        yield row


def dedupe_csv(
    content: Union[str, bytes],
    scrub_set: AbstractSet[str],
    seen: BatchSeenSet,
    phone_column: Optional[str] = None,
    hints: Iterable[str] = PHONE_HINTS,
) -> DedupeResult:
    """Return the rows of ``content`` whose phone is valid and not yet known.

    Per row, in order:
    - Blank or invalid phones are rejected.
    - Phones in ``scrub_set`` or already in ``seen`` are rejected.
    - Anything else is recorded in ``seen`` and the row is kept with its phone
      field replaced by the normalized value.

    ``seen`` is shared across every file of a batch, so later files see the
    numbers kept by earlier ones. Raises FileProcessingError when the content
    cannot be parsed as CSV.
    """

    if isinstance(content, bytes):
        try:
            # utf-8-sig drops the BOM spreadsheet exports like to prepend.
            content = content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise FileProcessingError(f"File is not valid UTF-8 text: {exc}") from exc
    if not isinstance(content, str):
        raise FileProcessingError(f"Expected text content, got {type(content).__name__}")

    reader = csv.DictReader(io.StringIO(content, newline=""), restkey=_OVERFLOW_KEY, strict=True)
    try:
        fieldnames = list(reader.fieldnames or [])
    except csv.Error as exc:
        raise FileProcessingError(f"Unreadable CSV header: {exc}") from exc

    # Header names decide the phone column once for the whole file.
    column = detect_phone_column(fieldnames, explicit=phone_column, hints=hints)
    if fieldnames and column not in fieldnames:
        raise FileProcessingError(f"Phone column {column!r} not found in header")

    kept: list[dict[str, str]] = []
    original_count = 0
    dupes_removed = 0

    # A file that fails to parse must leave the shared seen set untouched.
    try:
        rows = list(_iter_rows(reader))
    except csv.Error as exc:
        raise FileProcessingError(f"Malformed CSV near line {reader.line_num}: {exc}") from exc

    for row in rows:
        original_count += 1
        raw_value = row.get(column)
        if raw_value is None or not str(raw_value).strip():
            dupes_removed += 1
            continue

        normalized = normalize_phone(raw_value)
        if not is_valid_phone(normalized):
            dupes_removed += 1
            continue

        if normalized in scrub_set or not seen.add_if_absent(normalized):
            dupes_removed += 1
            continue

        row[column] = normalized
        kept.append(row)

    return DedupeResult(
        rows=kept,
        fieldnames=fieldnames,
        phone_column=column,
        original_count=original_count,
        dupes_removed=dupes_removed,
    )


def render_csv(result: DedupeResult) -> str:
    """Serialize kept rows back to CSV using the original header order.

    A file with no surviving rows renders as an empty string.
    """

    if not result.rows or not result.fieldnames:
        return ""
    buffer = io.StringIO(newline="")
    writer = csv.DictWriter(buffer, fieldnames=result.fieldnames, extrasaction="ignore", lineterminator="\n")
    writer.writeheader()
    writer.writerows(result.rows)
    return buffer.getvalue()
