"""
Versioned blob documents.

A store persists as one JSON document:

    {"_version": "1.0", "_last_updated": 1700000000.0, "entries": {...}}

INVARIANTS:
- A document whose version differs from the expected one is discarded
  (forward-only compatibility, no migration)
- A document that is not valid JSON, or not shaped as above, is discarded
- Every save serializes the full document and writes it once
"""

import json
import logging
import time
from collections.abc import Callable
from typing import Any

from printkeeper.models.failure import FailureKind
from printkeeper.models.result import Result
from printkeeper.storage.backends import BlobStorage

logger = logging.getLogger(__name__)

VERSION_FIELD = "_version"
UPDATED_FIELD = "_last_updated"
ENTRIES_FIELD = "entries"


class VersionedDocument:
    """
    Load/save a versioned entries mapping through a BlobStorage.

    Args:
        storage: Backend holding the blob
        key: Storage key for this document
        version: Expected version tag
        clock: Returns current time in seconds (injectable for tests)
    """

    def __init__(
        self,
        storage: BlobStorage,
        key: str,
        version: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.storage = storage
        self.key = key
        self.version = version
        self.clock = clock

    def load(self) -> Result[dict[str, Any]]:
        """
        Load the entries mapping.

        Returns:
            Success with the entries (empty when nothing is stored), or a
            failure. Corrupted and outdated documents are deleted before the
            STORAGE_CORRUPTED failure is returned, so callers can treat that
            failure as "empty store". Other failures mean the blob was not read.
        """
        read = self.storage.read(self.key)
        if not read.ok:
            return Result(error=read.error)
        if read.value is None:
            return Result.success({})

        try:
            document = json.loads(read.value)
        except json.JSONDecodeError as e:
            return self._discard(f"unparseable blob: {e.msg}")

        if not isinstance(document, dict):
            return self._discard("blob is not an object")

        found_version = document.get(VERSION_FIELD)
        if found_version != self.version:
            return self._discard(f"version mismatch: found={found_version} expected={self.version}")

        entries = document.get(ENTRIES_FIELD)
        if not isinstance(entries, dict):
            return self._discard("entries field missing or not an object")

        return Result.success(entries)

    def save(self, entries: dict[str, Any]) -> Result[None]:
        """Serialize and write the whole document in one call."""
        document = {
            VERSION_FIELD: self.version,
            UPDATED_FIELD: self.clock(),
            ENTRIES_FIELD: entries,
        }
        try:
            blob = json.dumps(document, separators=(",", ":"))
        except (TypeError, ValueError) as e:
            logger.error("STORE_SERIALIZE_FAILED: key=%s error=%s", self.key, e)
            return Result.failure(FailureKind.STORAGE_CORRUPTED, str(e), key=self.key)
        return self.storage.write(self.key, blob)

    def reset(self) -> Result[None]:
        """Remove the document entirely."""
        return self.storage.delete(self.key)

    def serialized_size(self, entries: dict[str, Any]) -> int:
        """Size in bytes of the document as it would be written."""
        document = {VERSION_FIELD: self.version, UPDATED_FIELD: 0.0, ENTRIES_FIELD: entries}
        return len(json.dumps(document, separators=(",", ":")).encode("utf-8"))

    def _discard(self, reason: str) -> Result[dict[str, Any]]:
        logger.warning("STORE_RESET: key=%s reason=%s", self.key, reason)
        self.storage.delete(self.key)
        return Result.failure(FailureKind.STORAGE_CORRUPTED, reason, key=self.key)
