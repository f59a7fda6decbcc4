"""Core batch processing pipeline.

This module is storage-agnostic. It only relies on ports for master lists and
artifacts, enabling other frontends or adapters without changes here.

A batch runs in a strict order:
1) Load the scrub set once from the selected masters
2) Dedupe files in fixed-size concurrent groups against one shared seen set
3) Hand clean files to the artifact store
4) Merge the batch's new numbers into GLOBAL plus every source tag
5) Append one processing log entry
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import PurePosixPath
from typing import AbstractSet, Optional, Sequence

from core.config import BatchConfig
from core.dedup import dedupe_csv, render_csv
from core.errors import ValidationError
from core.loader import load_scrub_set
from core.masters import normalize_master_names
from core.merge import MasterMerger
from core.models import (
    STATUS_COMPLETE,
    BatchFile,
    BatchResult,
    BatchSummary,
    FileResult,
    ProcessingLogEntry,
)
from core.ports import ArtifactStorePort, MasterStorePort
from core.seen import BatchSeenSet

LOGGER = logging.getLogger(__name__)


def new_batch_id() -> str:
    return f"batch_{int(time.time() * 1000)}"


def artifact_name(file_name: str, taken: set[str]) -> str:
    """Return a unique ``clean_<base name>`` for one batch, suffixing repeats.

    Archive members from different folders may share a base name; the second
    ``leads.csv`` becomes ``clean_leads_2.csv``.
    """

    base = PurePosixPath(file_name.replace("\\", "/")).name or "file.csv"
    candidate = f"clean_{base}"
    stem, dot, suffix = base.rpartition(".")
    if not dot:
        stem, suffix = base, ""
    index = 2
    while candidate in taken:
        candidate = f"clean_{stem}_{index}{dot}{suffix}"
        index += 1
    taken.add(candidate)
    return candidate


class BatchProcessor:
    """Orchestrates scrub loading, per-file dedup, merge, and logging."""

    def __init__(
        self,
        store: MasterStorePort,
        config: Optional[BatchConfig] = None,
        artifacts: Optional[ArtifactStorePort] = None,
    ) -> None:
        self._store = store
        self._config = config or BatchConfig()
        self._artifacts = artifacts
        self._merger = MasterMerger(
            store,
            chunk_size=self._config.merge_chunk_size,
            global_master=self._config.global_master,
        )

    def _dedupe_one(self, file: BatchFile, scrub_set: AbstractSet[str], seen: BatchSeenSet) -> FileResult:
        try:
            result = dedupe_csv(
                file.content,
                scrub_set,
                seen,
                phone_column=file.phone_column,
                hints=self._config.phone_hints,
            )
            clean_content = render_csv(result)
        except Exception as exc:
            # One bad file must not sink its siblings.
            LOGGER.exception("Error processing file %s", file.name)
            return FileResult.failed(file.name, str(exc))

        LOGGER.info(
            "%s: %s -> %s (%s dupes removed)",
            file.name,
            result.original_count,
            result.final_count,
            result.dupes_removed,
        )
        return FileResult(
            name=file.name,
            original_count=result.original_count,
            final_count=result.final_count,
            dupes_removed=result.dupes_removed,
            clean_content=clean_content,
            status=STATUS_COMPLETE,
        )

    async def dedupe_files(
        self,
        files: Sequence[BatchFile],
        scrub_set: AbstractSet[str],
    ) -> tuple[list[FileResult], set[str]]:
        """Dedupe every file and return per-file results plus the batch's new numbers.

        Files run in groups of ``parallel_limit``; a group must finish before
        the next one starts. Results keep submission order.
        """

        seen = BatchSeenSet()
        limit = max(1, self._config.parallel_limit)
        results: list[FileResult] = []
        total_groups = (len(files) + limit - 1) // limit

        for start in range(0, len(files), limit):
            group = files[start : start + limit]
            LOGGER.info("Processing group %s of %s", start // limit + 1, total_groups)
            group_results = await asyncio.gather(
                *(asyncio.to_thread(self._dedupe_one, file, scrub_set, seen) for file in group)
            )
            results.extend(group_results)

        return results, seen.snapshot()

    def _save_artifacts(self, batch_id: str, results: list[FileResult]) -> dict[str, str]:
        if self._artifacts is None:
            return {}
        locations: dict[str, str] = {}
        taken: set[str] = set()
        for result in results:
            if result.status != STATUS_COMPLETE or not result.clean_content:
                continue
            name = artifact_name(result.name, taken)
            result.location = self._artifacts.save(batch_id, name, result.clean_content)
            locations[name] = result.location
        return locations

    async def process(self, files: Sequence[BatchFile], scrub_against: Sequence[str]) -> BatchResult:
        """Run one full batch and return per-file results plus a summary.

        Store failures (PersistenceError) propagate and fail the whole call.
        Because the merge is idempotent, the caller can resubmit the batch.
        """

        if not files:
            raise ValidationError("No files provided")

        batch_id = new_batch_id()
        scrubbed_against = normalize_master_names(scrub_against)
        LOGGER.info("Starting %s with %s files", batch_id, len(files))

        scrub_set = await asyncio.to_thread(load_scrub_set, self._store, scrubbed_against)
        results, new_numbers = await self.dedupe_files(files, scrub_set)
        LOGGER.info("All files processed. Total new unique numbers: %s", len(new_numbers))

        locations = await asyncio.to_thread(self._save_artifacts, batch_id, results)

        source_tags = normalize_master_names(file.source_tag for file in files)
        targets = self._merger.target_names(source_tags)
        await asyncio.to_thread(self._merger.merge, new_numbers, targets)

        summary = BatchSummary(
            total_original=sum(result.original_count for result in results),
            total_dupes=sum(result.dupes_removed for result in results),
            total_final=sum(result.final_count for result in results),
            new_numbers_added=len(new_numbers),
            masters_updated=targets,
        )

        entry = ProcessingLogEntry(
            batch_id=batch_id,
            source_tags=source_tags,
            files_processed=len(files),
            scrubbed_against=scrubbed_against,
            original_count=summary.total_original,
            duplicates_removed=summary.total_dupes,
            final_count=summary.total_final,
            artifact_locations=locations,
        )
        await asyncio.to_thread(self._store.append_log, entry)
        LOGGER.info("Processing complete for %s", batch_id)

        return BatchResult(batch_id=batch_id, files=results, new_numbers=new_numbers, summary=summary)
