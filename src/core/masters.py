"""Master list naming rules (core domain)."""

from __future__ import annotations

from typing import Iterable

from core.errors import ValidationError

MAX_NAME_LENGTH = 100


def normalize_master_name(name: str) -> str:
    """Return the stored form of a master list name (trimmed, upper-cased)."""

    return name.strip().upper()


def normalize_master_names(names: Iterable[str]) -> list[str]:
    """Normalize names, dropping blanks and repeats while keeping order."""

    result: list[str] = []
    for name in names:
        if not name:
            continue
        cleaned = normalize_master_name(name)
        if cleaned and cleaned not in result:
            result.append(cleaned)
    return result


def validate_master_name(name: str, reserved: Iterable[str] = ()) -> str:
    """Normalize a user-supplied name for explicit creation or raise ValidationError."""

    if not isinstance(name, str):
        raise ValidationError("Master name is required")
    cleaned = normalize_master_name(name)
    if not cleaned or len(cleaned) > MAX_NAME_LENGTH:
        raise ValidationError(f"Master name must be between 1 and {MAX_NAME_LENGTH} characters")
    if cleaned in {normalize_master_name(item) for item in reserved}:
        raise ValidationError(f"Cannot create {cleaned} (reserved)")
    return cleaned
