"""Static configuration for listscrub.

All user-editable settings (paths, batch tuning, phone column hints, logging)
live in a single JSON file for quick edits without touching Python.
"""

import json
import os

from dotenv import load_dotenv

from core.columns import PHONE_HINTS as DEFAULT_PHONE_HINTS
from core.config import GLOBAL_MASTER as DEFAULT_GLOBAL_MASTER

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")

# Path overrides can come from a local .env file.
load_dotenv(os.path.join(PROJECT_ROOT, ".env"))


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _resolve_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Where to store the SQLite database and the cleaned output files.
_storage = _CONFIG.get("storage", {})
DB_PATH = _resolve_path(os.getenv("LISTSCRUB_DB_PATH") or _storage.get("db_path", "data/listscrub.db"))
OUTPUT_DIR = _resolve_path(os.getenv("LISTSCRUB_OUTPUT_DIR") or _storage.get("output_dir", "output"))
# Cleaned batches older than this are removed by the cleanup command.
RETENTION_DAYS = int(_storage.get("retention_days", 7))

# Batch tuning:
# - PARALLEL_LIMIT: files deduped concurrently per group
# - MERGE_CHUNK_SIZE: phones per bulk insert during the master merge
_batch = _CONFIG.get("batch", {})
PARALLEL_LIMIT = int(_batch.get("parallel_limit", 3))
MERGE_CHUNK_SIZE = int(_batch.get("merge_chunk_size", 20_000))

# Master list every new number is folded into.
GLOBAL_MASTER = str(_CONFIG.get("global_master", DEFAULT_GLOBAL_MASTER)).strip().upper()

# Header substrings used to auto-detect the phone column.
PHONE_HINTS = tuple(_CONFIG.get("phone_column_hints", DEFAULT_PHONE_HINTS))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
