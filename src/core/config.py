"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.columns import PHONE_HINTS

GLOBAL_MASTER = "GLOBAL"


@dataclass(frozen=True)
class BatchConfig:
    """Batch processing settings for the core pipeline."""

    parallel_limit: int = 3
    merge_chunk_size: int = 20_000
    global_master: str = GLOBAL_MASTER
    phone_hints: tuple[str, ...] = PHONE_HINTS
