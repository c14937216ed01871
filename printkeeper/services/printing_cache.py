"""
Printing Cache: TTL cache of catalog printing lists, keyed by card name.

Persisted as one versioned blob through a BlobStorage backend so printing
lists survive across sessions without refetching from the catalog.

INVARIANTS:
- A live entry holds a non-empty printing list and is younger than the
  expiry window
- Expired, malformed and corrupted entries are evicted silently
- When the cache is full, the oldest fraction of entries (by timestamp) is
  evicted before a new entry is written
- Public methods never raise; persistence failures are logged and absorbed

QUOTA:
A write rejected for quota purges expired entries and retries once. A
second rejection is logged and the write is dropped.
"""

import asyncio
import logging
import math
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from printkeeper.config import (
    CACHE_EVICTION_FRACTION,
    CACHE_STORAGE_KEY,
    CACHE_VERSION,
    WARM_UP_BATCH_DELAY_SECONDS,
    WARM_UP_BATCH_SIZE,
    WARM_UP_CONCURRENT_BATCHES,
    WARM_UP_PRINTING_LIMIT,
    settings,
)
from printkeeper.models.failure import FailureKind
from printkeeper.storage.backends import BlobStorage
from printkeeper.storage.versioned import VersionedDocument

logger = logging.getLogger(__name__)

REQUIRED_PRINTING_FIELDS = ("id", "set", "collector_number")

PrintingFetcher = Callable[[str], Awaitable[list[dict[str, Any]]]]
ProgressCallback = Callable[[int, int], None]


class CacheEntry(BaseModel):
    """One cached printing list."""

    model_config = ConfigDict(frozen=True)

    printings: list[dict[str, Any]] = Field(..., min_length=1)
    selected_printing: dict[str, Any]
    timestamp: float


@dataclass(frozen=True, slots=True)
class CacheStats:
    """Snapshot of cache size."""

    entries: int
    size_kb: float
    max_entries: int
    version: str


@dataclass(frozen=True, slots=True)
class CacheValidation:
    """
    Outcome of cross-checking a cache hit.

    Attributes:
        valid: The entry may be used
        suspicious: A single printing was cached for a card known to have
            more. Reported only; does not make the entry invalid.
        reason: Why the entry was rejected or flagged
    """

    valid: bool
    suspicious: bool = False
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class WarmUpReport:
    """Counts from a warm-up run."""

    fetched: int
    skipped: int
    failed: int
    failed_names: tuple[str, ...] = ()

    @property
    def total(self) -> int:
        return self.fetched + self.skipped + self.failed


def has_image_reference(printing: Mapping[str, Any]) -> bool:
    """True if the printing or any of its faces carries image URIs."""
    if isinstance(printing.get("image_uris"), Mapping) and printing["image_uris"]:
        return True
    faces = printing.get("card_faces")
    if not isinstance(faces, list):
        return False
    return any(
        isinstance(face, Mapping) and isinstance(face.get("image_uris"), Mapping)
        for face in faces
    )


def is_well_formed_printing(printing: object) -> bool:
    """A printing has an id, set, collector number and an image reference."""
    if not isinstance(printing, Mapping):
        return False
    if not all(printing.get(key) for key in REQUIRED_PRINTING_FIELDS):
        return False
    return has_image_reference(printing)


class PrintingCache:
    """
    Cache of printing lists per card name.

    Args:
        storage: Blob backend
        clock: Returns current time in seconds (injectable for tests)
        expiry_hours: Entry lifetime. Defaults to settings.cache_expiry_hours
        max_entries: Capacity. Defaults to settings.cache_max_entries
        eviction_fraction: Share of entries evicted when full
        warm_up_delay: Pause between warm-up batch groups, in seconds
    """

    def __init__(
        self,
        storage: BlobStorage,
        *,
        clock: Callable[[], float] = time.time,
        expiry_hours: float | None = None,
        max_entries: int | None = None,
        eviction_fraction: float = CACHE_EVICTION_FRACTION,
        warm_up_delay: float = WARM_UP_BATCH_DELAY_SECONDS,
    ) -> None:
        self.clock = clock
        self.expiry_seconds = (
            expiry_hours if expiry_hours is not None else settings.cache_expiry_hours
        ) * 3600
        self.max_entries = max_entries if max_entries is not None else settings.cache_max_entries
        self.eviction_fraction = eviction_fraction
        self.warm_up_delay = warm_up_delay
        self._document = VersionedDocument(storage, CACHE_STORAGE_KEY, CACHE_VERSION, clock)

    # =========================================================================
    # READS
    # =========================================================================

    def get(self, name: str) -> CacheEntry | None:
        """
        Get the live entry for a card.

        Returns:
            The entry, or None if absent, expired or malformed. Expired and
            malformed entries are removed.
        """
        entries = self._load()
        raw = entries.get(name) if entries is not None else None
        if entries is None or raw is None:
            return None

        entry = self._parse(raw)
        if entry is None or not all(is_well_formed_printing(p) for p in entry.printings):
            self._evict(entries, name, "malformed")
            return None
        if self._is_expired(entry):
            self._evict(entries, name, "expired")
            return None
        return entry

    def has(self, name: str) -> bool:
        return self.get(name) is not None

    def stats(self) -> CacheStats:
        entries = self._load() or {}
        return CacheStats(
            entries=len(entries),
            size_kb=round(self._document.serialized_size(entries) / 1024, 2),
            max_entries=self.max_entries,
            version=CACHE_VERSION,
        )

    def validate_hit(
        self,
        name: str,
        entry: CacheEntry,
        *,
        known_printing_count: int | None = None,
    ) -> CacheValidation:
        """
        Cross-check a cache hit before using it.

        Checks, in order:
        1. Every printing has the minimum fields (evicts on failure)
        2. The entry is within the freshness window (evicts on failure)
        3. A single cached printing when the card is known to have more is
           flagged as suspicious

        Args:
            name: Card name the entry is cached under
            entry: Entry returned by get()
            known_printing_count: Printing count from another source, if known
        """
        if not all(is_well_formed_printing(p) for p in entry.printings):
            self.remove(name)
            logger.warning("CACHE_EVICT: name=%s reason=malformed_printing", name)
            return CacheValidation(valid=False, reason="malformed_printing")

        if self._is_expired(entry):
            self.remove(name)
            logger.info("CACHE_EVICT: name=%s reason=stale", name)
            return CacheValidation(valid=False, reason="stale")

        if len(entry.printings) == 1 and (known_printing_count or 0) > 1:
            logger.warning(
                "CACHE_SUSPICIOUS: name=%s cached=1 known=%d", name, known_printing_count
            )
            return CacheValidation(valid=True, suspicious=True, reason="single_printing")

        return CacheValidation(valid=True)

    # =========================================================================
    # WRITES
    # =========================================================================

    def set(
        self,
        name: str,
        printings: Sequence[Mapping[str, Any]],
        selected_printing: Mapping[str, Any] | None = None,
    ) -> bool:
        """
        Cache a printing list.

        Args:
            name: Card name
            printings: Printings, stored verbatim
            selected_printing: Printing shown for the card. Defaults to the first.

        Returns:
            True if the entry was persisted. Empty names, empty lists and
            lists holding anything but mappings are rejected (False), as is
            any write while storage cannot be read.
        """
        if not name or not printings:
            return False
        if not all(isinstance(p, Mapping) for p in printings) or not (
            selected_printing is None or isinstance(selected_printing, Mapping)
        ):
            logger.warning("CACHE_SET_REJECTED: name=%s reason=printing is not a mapping", name)
            return False

        entries = self._load()
        if entries is None:
            logger.error("CACHE_WRITE_SKIPPED: name=%s reason=storage unreadable", name)
            return False
        if len(entries) >= self.max_entries:
            self._trim(entries)

        entry = CacheEntry(
            printings=[dict(p) for p in printings],
            selected_printing=dict(selected_printing or printings[0]),
            timestamp=self.clock(),
        )
        entries[name] = entry.model_dump(mode="json")
        return self._persist(entries)

    def remove(self, name: str) -> None:
        entries = self._load()
        if entries is not None and name in entries:
            del entries[name]
            self._persist(entries)

    def clear(self) -> None:
        result = self._document.reset()
        if not result.ok and result.error is not None:
            logger.error("CACHE_CLEAR_FAILED: %s", result.error.message)
            return
        logger.info("CACHE_CLEARED")

    def purge_expired(self) -> int:
        """Remove expired entries. Returns how many were removed."""
        entries = self._load()
        if entries is None:
            return 0
        removed = self._drop_expired(entries)
        if removed:
            self._persist(entries)
            logger.info("CACHE_PURGE: removed=%d", removed)
        return removed

    # =========================================================================
    # WARM-UP
    # =========================================================================

    async def warm_up(
        self,
        names: Iterable[str],
        fetcher: PrintingFetcher,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> WarmUpReport:
        """
        Prefetch printing lists for cards that are not cached.

        Cards are fetched in batches of WARM_UP_BATCH_SIZE, with at most
        WARM_UP_CONCURRENT_BATCHES batches in flight and a short pause between
        batch groups. A failing card does not affect the others. Only the
        first WARM_UP_PRINTING_LIMIT printings of each card are kept.

        Args:
            names: Card names (duplicates and blanks are ignored)
            fetcher: Async callable returning the printings for a name
            on_progress: Called with (done, total) after each batch

        Returns:
            WarmUpReport with fetched, skipped and failed counts.
        """
        unique = list(dict.fromkeys(n for n in names if n))
        pending = [n for n in unique if not self.has(n)]
        skipped = len(unique) - len(pending)

        batches = [
            pending[i : i + WARM_UP_BATCH_SIZE] for i in range(0, len(pending), WARM_UP_BATCH_SIZE)
        ]
        logger.info(
            "WARM_UP_START: pending=%d skipped=%d batches=%d", len(pending), skipped, len(batches)
        )

        failed: list[str] = []
        done = 0
        for start in range(0, len(batches), WARM_UP_CONCURRENT_BATCHES):
            if start:
                await asyncio.sleep(self.warm_up_delay)
            group = batches[start : start + WARM_UP_CONCURRENT_BATCHES]
            results = await asyncio.gather(*(self._warm_batch(batch, fetcher) for batch in group))
            for batch, outcomes in zip(group, results, strict=True):
                failed.extend(name for name, ok in zip(batch, outcomes, strict=True) if not ok)
                done += len(batch)
                if on_progress is not None:
                    on_progress(done, len(pending))

        report = WarmUpReport(
            fetched=len(pending) - len(failed),
            skipped=skipped,
            failed=len(failed),
            failed_names=tuple(failed),
        )
        logger.info(
            "WARM_UP_DONE: fetched=%d skipped=%d failed=%d",
            report.fetched,
            report.skipped,
            report.failed,
        )
        return report

    def schedule_warm_up(
        self,
        names: Iterable[str],
        fetcher: PrintingFetcher,
    ) -> "asyncio.Task[WarmUpReport]":
        """
        Run warm_up in the background on the running event loop.

        Must be called from within a running loop.
        """
        task = asyncio.get_running_loop().create_task(self.warm_up(list(names), fetcher))
        task.add_done_callback(_log_warm_up_failure)
        return task

    async def _warm_batch(self, batch: list[str], fetcher: PrintingFetcher) -> list[bool]:
        return list(await asyncio.gather(*(self._warm_one(name, fetcher) for name in batch)))

    async def _warm_one(self, name: str, fetcher: PrintingFetcher) -> bool:
        try:
            printings = await fetcher(name)
            if not printings:
                logger.warning("WARM_UP_FAILED: name=%s error=no printings", name)
                return False
            return self.set(name, printings[:WARM_UP_PRINTING_LIMIT])
        except Exception as e:
            logger.warning("WARM_UP_FAILED: name=%s error=%s", name, e)
            return False

    # =========================================================================
    # PERSISTENCE HELPERS
    # =========================================================================

    def _load(self) -> dict[str, Any] | None:
        """Stored entries. Corrupted documents read as empty, other read failures as None."""
        result = self._document.load()
        if result.ok:
            return result.value or {}
        error = result.error
        if error is not None and error.kind == FailureKind.STORAGE_CORRUPTED:
            return {}
        logger.error("CACHE_READ_FAILED: %s", error.message if error else None)
        return None

    def _persist(self, entries: dict[str, Any]) -> bool:
        result = self._document.save(entries)
        if result.ok:
            return True

        error = result.error
        if error is not None and error.is_quota:
            purged = self._drop_expired(entries)
            logger.warning("CACHE_QUOTA: purged=%d retrying", purged)
            result = self._document.save(entries)
            if result.ok:
                return True
            error = result.error

        logger.error(
            "CACHE_WRITE_FAILED: kind=%s message=%s",
            error.kind.value if error else None,
            error.message if error else None,
        )
        return False

    def _parse(self, raw: object) -> CacheEntry | None:
        try:
            return CacheEntry.model_validate(raw)
        except ValidationError:
            return None

    def _is_expired(self, entry: CacheEntry) -> bool:
        return self.clock() - entry.timestamp > self.expiry_seconds

    def _evict(self, entries: dict[str, Any], name: str, reason: str) -> None:
        del entries[name]
        self._persist(entries)
        logger.info("CACHE_EVICT: name=%s reason=%s", name, reason)

    def _drop_expired(self, entries: dict[str, Any]) -> int:
        doomed = [
            name
            for name, raw in entries.items()
            if (entry := self._parse(raw)) is None or self._is_expired(entry)
        ]
        for name in doomed:
            del entries[name]
        return len(doomed)

    def _trim(self, entries: dict[str, Any]) -> None:
        """Evict the oldest share of entries (unreadable entries go first)."""
        count = max(1, math.floor(self.max_entries * self.eviction_fraction))

        def age_key(name: str) -> float:
            entry = self._parse(entries[name])
            return entry.timestamp if entry is not None else float("-inf")

        victims = sorted(entries, key=age_key)[:count]
        for name in victims:
            del entries[name]
        logger.info("CACHE_TRIM: evicted=%d remaining=%d", len(victims), len(entries))


def _log_warm_up_failure(task: "asyncio.Task[WarmUpReport]") -> None:
    if task.cancelled():
        logger.info("WARM_UP_CANCELLED")
        return
    error = task.exception()
    if error is not None:
        logger.error("WARM_UP_CRASHED: %s", error)
