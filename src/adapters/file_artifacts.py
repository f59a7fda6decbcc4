"""Local filesystem artifact adapter.

Implements the core ArtifactStorePort by writing cleaned CSVs under
``<root>/processed/<batch_id>/``.
"""

from __future__ import annotations

import logging
import shutil
import time
from pathlib import Path

LOGGER = logging.getLogger(__name__)

PROCESSED_DIR = "processed"


class LocalArtifactStore:
    """Stores cleaned files on disk, one directory per batch."""

    def __init__(self, root: str) -> None:
        self._root = Path(root) / PROCESSED_DIR

    def save(self, batch_id: str, name: str, content: str) -> str:
        """Write one cleaned file and return its path."""

        # Archive members may carry folders; only the base name is kept.
        target_dir = self._root / batch_id
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / Path(name).name
        path.write_text(content, encoding="utf-8", newline="")
        return str(path)

    def cleanup(self, older_than_days: int) -> int:
        """Delete batch directories older than the retention window and return how many."""

        if not self._root.exists():
            return 0
        cutoff = time.time() - older_than_days * 86400
        removed = 0
        for batch_dir in self._root.iterdir():
            if not batch_dir.is_dir():
                continue
            if batch_dir.stat().st_mtime < cutoff:
                shutil.rmtree(batch_dir)
                removed += 1
                LOGGER.info("Removed old batch directory %s", batch_dir.name)
        return removed
