from __future__ import annotations

import asyncio
import threading
import time
from pathlib import Path
from typing import Iterable

import pytest

from adapters.file_artifacts import LocalArtifactStore
from adapters.sqlite_storage import SQLiteStorage
from core.config import BatchConfig
from core.errors import PersistenceError, ValidationError
from core.models import STATUS_COMPLETE, STATUS_ERROR, BatchFile, MasterSet, ProcessingLogEntry
from core.processor import BatchProcessor, artifact_name


class FakeStore:
    def __init__(self, masters: "dict[str, set[str]] | None" = None) -> None:
        self.phones: set[str] = set()
        self.masters: dict[str, int] = {}
        self.memberships: dict[int, set[str]] = {}
        self.logs: list[ProcessingLogEntry] = []
        self.load_calls: list[list[str]] = []
        for name, numbers in (masters or {}).items():
            master = self.find_or_create_master(name)
            self.insert_phones(numbers)
            self.insert_memberships(master.id, numbers)

    def _master(self, name: str) -> MasterSet:
        master_id = self.masters[name]
        return MasterSet(id=master_id, name=name, phone_count=len(self.memberships[master_id]))

    def load_phones(self, names: Iterable[str]) -> set[str]:
        names = list(names)
        self.load_calls.append(names)
        result: set[str] = set()
        for name in names:
            if name in self.masters:
                result |= self.memberships[self.masters[name]]
        return result

    def find_or_create_master(self, name: str) -> MasterSet:
        if name not in self.masters:
            master_id = len(self.masters) + 1
            self.masters[name] = master_id
            self.memberships[master_id] = set()
        return self._master(name)

    def create_master(self, name: str) -> MasterSet:
        return self.find_or_create_master(name)

    def list_masters(self) -> list[MasterSet]:
        return [self._master(name) for name in self.masters]

    def insert_phones(self, numbers: Iterable[str]) -> int:
        new = set(numbers) - self.phones
        self.phones |= new
        return len(new)

    def insert_memberships(self, master_id: int, numbers: Iterable[str]) -> int:
        new = set(numbers) - self.memberships[master_id]
        self.memberships[master_id] |= new
        return len(new)

    def recount_master(self, master_id: int) -> int:
        return len(self.memberships[master_id])

    def append_log(self, entry: ProcessingLogEntry) -> None:
        self.logs.append(entry)

    def list_logs(self, limit: int = 100) -> list[ProcessingLogEntry]:
        return list(reversed(self.logs))[:limit]


class BrokenStore(FakeStore):
    def load_phones(self, names: Iterable[str]) -> set[str]:
        raise PersistenceError("database is locked")


def _file(name: str, body: str, tag: str = "solar") -> BatchFile:
    return BatchFile(name=name, content=f"Name,Phone\n{body}", source_tag=tag)


def test_batch_dedupes_across_files_and_merges() -> None:
    store = FakeStore(masters={"GLOBAL": {"2025550000"}})
    processor = BatchProcessor(store, config=BatchConfig(parallel_limit=1))
    files = [
        _file("a.csv", "Ada,2025550000\nBob,2025550001\n"),
        _file("b.csv", "Cy,(202) 555-0001\nDi,2025550002\n", tag="adt"),
    ]

    result = asyncio.run(processor.process(files, ["global"]))

    assert store.load_calls == [["GLOBAL"]]
    assert [item.final_count for item in result.files] == [1, 1]
    assert [item.dupes_removed for item in result.files] == [1, 1]
    assert result.new_numbers == {"2025550001", "2025550002"}
    assert result.summary.total_original == 4
    assert result.summary.total_dupes == 2
    assert result.summary.total_final == 2
    assert result.summary.new_numbers_added == 2
    assert result.summary.masters_updated == ["GLOBAL", "SOLAR", "ADT"]
    assert {name: len(store.memberships[mid]) for name, mid in store.masters.items()} == {
        "GLOBAL": 3,
        "SOLAR": 2,
        "ADT": 2,
    }


def test_batch_writes_one_log_entry() -> None:
    store = FakeStore()
    processor = BatchProcessor(store)

    result = asyncio.run(processor.process([_file("a.csv", "Ada,2025550001\n")], []))

    assert len(store.logs) == 1
    entry = store.logs[0]
    assert entry.batch_id == result.batch_id
    assert entry.batch_id.startswith("batch_")
    assert entry.source_tags == ["SOLAR"]
    assert entry.files_processed == 1
    assert entry.scrubbed_against == []
    assert (entry.original_count, entry.duplicates_removed, entry.final_count) == (1, 0, 1)


def test_bad_file_does_not_abort_batch() -> None:
    store = FakeStore()
    processor = BatchProcessor(store)
    files = [
        _file("good.csv", "Ada,2025550001\n"),
        BatchFile(name="bad.csv", content='Phone\n"2025550002"x\n', source_tag="solar"),
        _file("later.csv", "Bob,2025550003\n"),
    ]

    result = asyncio.run(processor.process(files, []))

    statuses = {item.name: item.status for item in result.files}
    assert statuses == {"good.csv": STATUS_COMPLETE, "bad.csv": STATUS_ERROR, "later.csv": STATUS_COMPLETE}
    bad = result.files[1]
    assert (bad.original_count, bad.final_count, bad.dupes_removed, bad.clean_content) == (0, 0, 0, "")
    assert bad.error
    assert result.new_numbers == {"2025550001", "2025550003"}


def test_results_keep_submission_order() -> None:
    processor = BatchProcessor(FakeStore(), config=BatchConfig(parallel_limit=2))
    files = [_file(f"{i}.csv", f"P,20255500{i:02d}\n") for i in range(7)]

    result = asyncio.run(processor.process(files, []))

    assert [item.name for item in result.files] == [f"{i}.csv" for i in range(7)]
    assert len(result.new_numbers) == 7


def test_same_file_twice_keeps_rows_once() -> None:
    processor = BatchProcessor(FakeStore())
    body = "Ada,2025550001\nBob,3035550002\n"
    files = [_file("a.csv", body), _file("a_copy.csv", body)]

    result = asyncio.run(processor.process(files, []))

    assert result.summary.total_final == 2
    assert result.summary.total_dupes == 2


def test_concurrent_files_never_double_count_a_number() -> None:
    processor = BatchProcessor(FakeStore(), config=BatchConfig(parallel_limit=6))
    body = "".join(f"R{i},{2025550000 + i}\n" for i in range(300))
    files = [_file(f"{i}.csv", body) for i in range(6)]

    result = asyncio.run(processor.process(files, []))

    assert result.summary.total_final == 300
    assert result.summary.total_dupes == 300 * 5
    assert len(result.new_numbers) == 300


def test_groups_are_processed_with_a_barrier(monkeypatch: pytest.MonkeyPatch) -> None:
    processor = BatchProcessor(FakeStore(), config=BatchConfig(parallel_limit=3))
    lock = threading.Lock()
    active = 0
    peak = 0
    original = processor._dedupe_one

    def tracking(file, scrub_set, seen):
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.02)
        try:
            return original(file, scrub_set, seen)
        finally:
            with lock:
                active -= 1

    monkeypatch.setattr(processor, "_dedupe_one", tracking)
    files = [_file(f"{i}.csv", f"P,20255500{i:02d}\n") for i in range(8)]

    asyncio.run(processor.process(files, []))

    assert peak <= 3


def test_empty_submission_is_rejected() -> None:
    with pytest.raises(ValidationError):
        asyncio.run(BatchProcessor(FakeStore()).process([], []))


def test_store_outage_fails_whole_batch() -> None:
    store = BrokenStore()

    with pytest.raises(PersistenceError):
        asyncio.run(BatchProcessor(store).process([_file("a.csv", "Ada,2025550001\n")], ["GLOBAL"]))
    assert store.logs == []


def test_end_to_end_with_sqlite_and_artifacts(tmp_path: Path) -> None:
    storage = SQLiteStorage(str(tmp_path / "masters.db"))
    storage.init_db()
    processor = BatchProcessor(storage, artifacts=LocalArtifactStore(str(tmp_path / "out")))
    files = [_file("leads.csv", "Ada,(202) 555-0001\nBob,202.555.0001\n")]

    first = asyncio.run(processor.process(files, ["GLOBAL"]))
    second = asyncio.run(processor.process(files, ["GLOBAL"]))

    written = first.files[0].location
    assert written is not None
    assert Path(written).read_text(encoding="utf-8") == "Name,Phone\nAda,2025550001\n"
    assert second.summary.total_final == 0
    assert second.files[0].location is None
    assert {m.name: m.phone_count for m in storage.list_masters()} == {"GLOBAL": 1, "SOLAR": 1}
    assert len(storage.list_logs()) == 2


def test_failed_file_leaves_no_numbers_behind() -> None:
    store = FakeStore()
    processor = BatchProcessor(store, config=BatchConfig(parallel_limit=1))
    files = [
        BatchFile(name="bad.csv", content='Phone\n2025550001\n"2025550002"x\n', source_tag="solar"),
        BatchFile(name="later.csv", content="Phone\n2025550001\n", source_tag="solar"),
    ]

    result = asyncio.run(processor.process(files, []))

    bad, later = result.files
    assert bad.status == STATUS_ERROR
    assert later.status == STATUS_COMPLETE
    assert (later.final_count, later.dupes_removed) == (1, 0)
    assert result.new_numbers == {"2025550001"}
    assert store.memberships[store.masters["GLOBAL"]] == {"2025550001"}


def test_artifacts_keep_prefix_and_unique_names(tmp_path: Path) -> None:
    processor = BatchProcessor(FakeStore(), artifacts=LocalArtifactStore(str(tmp_path)))
    files = [
        _file("east/leads.csv", "Ada,2025550001\n"),
        _file("west/leads.csv", "Bob,2025550002\n"),
    ]

    result = asyncio.run(processor.process(files, []))

    locations = [Path(item.location) for item in result.files]
    assert [path.name for path in locations] == ["clean_leads.csv", "clean_leads_2.csv"]
    assert locations[0].read_text(encoding="utf-8") == "Name,Phone\nAda,2025550001\n"
    assert locations[1].read_text(encoding="utf-8") == "Name,Phone\nBob,2025550002\n"


def test_artifact_name_strips_folders_and_suffixes_repeats() -> None:
    taken: set[str] = set()

    names = [artifact_name(name, taken) for name in ["a\\leads.csv", "b/leads.csv", "leads.csv", "notes"]]

    assert names == ["clean_leads.csv", "clean_leads_2.csv", "clean_leads_3.csv", "clean_notes"]
