from __future__ import annotations

import pytest

from core.errors import ValidationError
from core.loader import load_scrub_set
from core.masters import normalize_master_names, validate_master_name


class RecordingStore:
    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    def load_phones(self, names) -> set[str]:
        self.calls.append(list(names))
        return {"2025551234"}


def test_normalize_master_names_dedupes_and_uppercases() -> None:
    assert normalize_master_names([" vivint", "VIVINT", "", "adt", "Global"]) == ["VIVINT", "ADT", "GLOBAL"]


def test_validate_master_name() -> None:
    assert validate_master_name("  solar ") == "SOLAR"


@pytest.mark.parametrize("name", ["", "   ", "x" * 101])
def test_validate_master_name_rejects_bad_lengths(name: str) -> None:
    with pytest.raises(ValidationError):
        validate_master_name(name)


def test_validate_master_name_rejects_reserved() -> None:
    with pytest.raises(ValidationError):
        validate_master_name("global", reserved=["GLOBAL"])


def test_empty_selection_skips_the_store() -> None:
    store = RecordingStore()

    assert load_scrub_set(store, []) == set()
    assert load_scrub_set(store, ["  "]) == set()
    assert store.calls == []


def test_loader_normalizes_names_before_querying() -> None:
    store = RecordingStore()

    assert load_scrub_set(store, ["adt", "ADT ", "solar"]) == {"2025551234"}
    assert store.calls == [["ADT", "SOLAR"]]
