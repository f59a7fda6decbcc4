"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any storage-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

STATUS_COMPLETE = "complete"
STATUS_ERROR = "error"


@dataclass(frozen=True)
class MasterSet:
    """A named, persistent collection of normalized phone numbers."""

    id: int
    name: str
    phone_count: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class BatchFile:
    """One CSV submitted as part of a batch.

    ``content`` may be raw bytes; it is decoded as UTF-8 when the file is processed.
    """

    name: str
    content: Union[str, bytes]
    source_tag: str
    phone_column: Optional[str] = None


@dataclass
class DedupeResult:
    """Rows kept from one file plus the counts needed for reporting."""

    rows: list[dict[str, str]]
    fieldnames: list[str]
    phone_column: Optional[str]
    original_count: int
    dupes_removed: int

    @property
    def final_count(self) -> int:
        return len(self.rows)


@dataclass
class FileResult:
    """Per-file outcome reported back to the batch caller."""

    name: str
    original_count: int
    final_count: int
    dupes_removed: int
    clean_content: str
    status: str
    location: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def failed(cls, name: str, error: str) -> "FileResult":
        return cls(
            name=name,
            original_count=0,
            final_count=0,
            dupes_removed=0,
            clean_content="",
            status=STATUS_ERROR,
            error=error,
        )


@dataclass(frozen=True)
class BatchSummary:
    total_original: int
    total_dupes: int
    total_final: int
    new_numbers_added: int
    masters_updated: list[str]


@dataclass
class BatchResult:
    """Everything a caller gets back from one batch run."""

    batch_id: str
    files: list[FileResult]
    new_numbers: set[str]
    summary: BatchSummary


@dataclass(frozen=True)
class MergeReport:
    """Outcome of folding a batch's new numbers into the master lists."""

    phones_submitted: int
    masters: list[MasterSet] = field(default_factory=list)


@dataclass(frozen=True)
class ProcessingLogEntry:
    """Append-only record written once per batch."""

    batch_id: str
    source_tags: list[str]
    files_processed: int
    scrubbed_against: list[str]
    original_count: int
    duplicates_removed: int
    final_count: int
    artifact_locations: dict[str, str]
    processed_at: Optional[datetime] = None
