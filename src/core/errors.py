"""Error types raised by the core and its adapters."""

from __future__ import annotations


class ScrubError(Exception):
    """Base class for every error raised by listscrub."""


class ValidationError(ScrubError):
    """Caller input was rejected (bad master name, empty batch)."""


class FileProcessingError(ScrubError):
    """A single file could not be parsed; sibling files are unaffected."""


class PersistenceError(ScrubError):
    """The master store failed; the whole batch call fails."""


class NameConflictError(ScrubError):
    """A master list with the requested name already exists."""
