"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for storage adapters so that the core can
be reused with different backends. Every write primitive must be safe to
retry on its own; the core never wraps them in a multi-statement transaction.
"""

from __future__ import annotations

from typing import Iterable, Protocol

from core.models import MasterSet, ProcessingLogEntry


class MasterStorePort(Protocol):
    """Master list operations required by the core pipeline."""

    def load_phones(self, names: Iterable[str]) -> set[str]:
        ...

    def find_or_create_master(self, name: str) -> MasterSet:
        ...

    def create_master(self, name: str) -> MasterSet:
        ...

    def list_masters(self) -> list[MasterSet]:
        ...

    def insert_phones(self, numbers: Iterable[str]) -> int:
        ...

    def insert_memberships(self, master_id: int, numbers: Iterable[str]) -> int:
        ...

    def recount_master(self, master_id: int) -> int:
        ...

    def append_log(self, entry: ProcessingLogEntry) -> None:
        ...

    def list_logs(self, limit: int = 100) -> list[ProcessingLogEntry]:
        ...


class ArtifactStorePort(Protocol):
    """Where cleaned files end up once a batch is processed."""

    def save(self, batch_id: str, name: str, content: str) -> str:
        ...

    def cleanup(self, older_than_days: int) -> int:
        ...
