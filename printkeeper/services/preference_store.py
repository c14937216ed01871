"""
Preference Store: the printing a user last chose for each card name.

Entries are created by explicit user selections only, never expire and are
removed only by clear(). Every selection of any printing for a name bumps
that name's selection count.
"""

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from printkeeper.config import PREFERENCES_STORAGE_KEY, PREFERENCES_VERSION
from printkeeper.models.failure import FailureKind
from printkeeper.storage.backends import BlobStorage
from printkeeper.storage.versioned import VersionedDocument

logger = logging.getLogger(__name__)


class PreferenceEntry(BaseModel):
    """The remembered printing for one card name."""

    printing_id: str
    set_code: str | None = None
    collector_number: str | None = None
    set_name: str | None = None
    rarity: str | None = None
    image_uris: dict[str, str] | None = None
    selected_at: float
    selection_count: int = 1


@dataclass(frozen=True, slots=True)
class RecentSelection:
    card_name: str
    printing_id: str
    set_code: str | None
    selected_at: float


@dataclass(frozen=True, slots=True)
class PreferencePatterns:
    """
    Aggregate view of all preferences.

    Attributes:
        preferred_sets: Summed selection counts per set code
        recent_selections: All preferences, newest first
        total_selections: Sum of every selection count
    """

    preferred_sets: dict[str, int]
    recent_selections: tuple[RecentSelection, ...]
    total_selections: int

    def preferred_set(self) -> str | None:
        """Most selected set code. Ties go to the set seen first."""
        if not self.preferred_sets:
            return None
        return max(self.preferred_sets, key=lambda code: self.preferred_sets[code])


def _str_or_none(value: object) -> str | None:
    return value if isinstance(value, str) and value else None


class PreferenceStore:
    """
    Per-name printing preferences backed by a versioned blob.

    Args:
        storage: Blob backend
        clock: Returns current time in seconds (injectable for tests)
    """

    def __init__(self, storage: BlobStorage, *, clock: Callable[[], float] = time.time) -> None:
        self.clock = clock
        self._document = VersionedDocument(
            storage, PREFERENCES_STORAGE_KEY, PREFERENCES_VERSION, clock
        )

    def get(self, name: str) -> PreferenceEntry | None:
        raw = (self._load() or {}).get(name)
        if raw is None:
            return None
        return self._parse(name, raw)

    def has(self, name: str) -> bool:
        return self.get(name) is not None

    def set(self, name: str, printing: Mapping[str, Any]) -> PreferenceEntry | None:
        """
        Record an explicit printing choice.

        Args:
            name: Card name
            printing: The chosen catalog printing

        Returns:
            The stored entry, or None if the input was rejected or could not
            be persisted.
        """
        printing_id = printing.get("id") if isinstance(printing, Mapping) else None
        if not name or not isinstance(printing_id, str) or not printing_id:
            logger.warning("PREFERENCE_REJECTED: name=%s reason=missing printing id", name)
            return None

        entries = self._load()
        if entries is None:
            logger.error("PREFERENCE_WRITE_SKIPPED: name=%s reason=storage unreadable", name)
            return None
        previous = self._parse(name, entries[name]) if name in entries else None
        image_uris = printing.get("image_uris")

        entry = PreferenceEntry(
            printing_id=printing_id,
            set_code=_str_or_none(printing.get("set")),
            collector_number=_str_or_none(printing.get("collector_number")),
            set_name=_str_or_none(printing.get("set_name")),
            rarity=_str_or_none(printing.get("rarity")),
            image_uris=(
                {k: v for k, v in image_uris.items() if isinstance(v, str)}
                if isinstance(image_uris, Mapping)
                else None
            ),
            selected_at=self.clock(),
            selection_count=previous.selection_count + 1 if previous else 1,
        )
        entries[name] = entry.model_dump(mode="json")

        result = self._document.save(entries)
        if not result.ok:
            logger.error(
                "PREFERENCE_WRITE_FAILED: name=%s error=%s",
                name,
                result.error.message if result.error else None,
            )
            return None

        logger.info(
            "PREFERENCE_SET: name=%s printing=%s count=%d",
            name,
            printing_id,
            entry.selection_count,
        )
        return entry

    def clear(self, name: str | None = None) -> None:
        """Clear one name's preference, or every preference when name is None."""
        if name is None:
            self._document.reset()
            logger.info("PREFERENCES_CLEARED")
            return

        entries = self._load()
        if entries is not None and entries.pop(name, None) is not None:
            self._document.save(entries)

    def get_all(self) -> dict[str, PreferenceEntry]:
        entries: dict[str, PreferenceEntry] = {}
        for name, raw in (self._load() or {}).items():
            entry = self._parse(name, raw)
            if entry is not None:
                entries[name] = entry
        return entries

    def get_patterns(self) -> PreferencePatterns:
        """Aggregate selection patterns for smart defaults."""
        all_entries = self.get_all()

        preferred_sets: dict[str, int] = {}
        for entry in all_entries.values():
            if entry.set_code:
                preferred_sets[entry.set_code] = (
                    preferred_sets.get(entry.set_code, 0) + entry.selection_count
                )

        recent = sorted(
            (
                RecentSelection(
                    card_name=name,
                    printing_id=entry.printing_id,
                    set_code=entry.set_code,
                    selected_at=entry.selected_at,
                )
                for name, entry in all_entries.items()
            ),
            key=lambda selection: selection.selected_at,
            reverse=True,
        )

        return PreferencePatterns(
            preferred_sets=preferred_sets,
            recent_selections=tuple(recent),
            total_selections=sum(e.selection_count for e in all_entries.values()),
        )

    def _load(self) -> dict[str, Any] | None:
        """
        Stored entries, or None when storage could not be read.

        A corrupted document has already been reset by the versioned layer
        and counts as an empty store. Any other read failure returns None,
        and writers then skip the write.
        """
        result = self._document.load()
        if result.ok:
            return result.value or {}
        error = result.error
        if error is not None and error.kind == FailureKind.STORAGE_CORRUPTED:
            return {}
        logger.error("PREFERENCE_READ_FAILED: %s", error.message if error else None)
        return None

    def _parse(self, name: str, raw: object) -> PreferenceEntry | None:
        try:
            return PreferenceEntry.model_validate(raw)
        except ValidationError:
            logger.warning("PREFERENCE_MALFORMED: name=%s", name)
            return None
