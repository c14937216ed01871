from collections.abc import Callable
from typing import Any

import pytest

from printkeeper.models.failure import FailureKind
from printkeeper.models.result import Result
from printkeeper.services.preference_store import PreferenceStore
from printkeeper.services.printing_cache import PrintingCache
from printkeeper.storage.backends import MemoryBlobStorage

START_TIME = 1_700_000_000.0


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FlakyBlobStorage(MemoryBlobStorage):
    """Memory backend whose next `failing_reads` reads report the store unavailable."""

    def __init__(self) -> None:
        super().__init__()
        self.failing_reads = 0

    def read(self, key: str) -> Result[str]:
        if self.failing_reads:
            self.failing_reads -= 1
            return Result.failure(FailureKind.STORAGE_UNAVAILABLE, "backend offline", key=key)
        return super().read(key)


def build_printing(
    printing_id: str,
    set_code: str = "m10",
    collector_number: str = "1",
    **overrides: Any,
) -> dict[str, Any]:
    printing: dict[str, Any] = {
        "id": printing_id,
        "name": "Lightning Bolt",
        "set": set_code,
        "set_name": f"Set {set_code.upper()}",
        "collector_number": collector_number,
        "rarity": "common",
        "released_at": "2009-07-17",
        "type_line": "Instant",
        "finishes": ["nonfoil", "foil"],
        "prices": {"usd": "1.50", "usd_foil": "4.00", "usd_etched": None},
        "image_uris": {
            "small": f"https://img.example/{printing_id}/small.jpg",
            "normal": f"https://img.example/{printing_id}/normal.jpg",
        },
    }
    printing.update(overrides)
    return printing


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_storage() -> MemoryBlobStorage:
    return MemoryBlobStorage()


@pytest.fixture
def make_printing() -> Callable[..., dict[str, Any]]:
    """Factory for well-formed catalog printings."""
    return build_printing


@pytest.fixture
def bolt_printings() -> list[dict[str, Any]]:
    """Three printings of Lightning Bolt, oldest first."""
    return [
        build_printing(
            "bolt-lea-0000-0000-0000-000000000001",
            set_code="lea",
            collector_number="161",
            finishes=["nonfoil"],
            prices={"usd": "450.00", "usd_foil": None},
        ),
        build_printing(
            "bolt-m10-0000-0000-0000-000000000002",
            set_code="m10",
            collector_number="146",
        ),
        build_printing(
            "bolt-sld-0000-0000-0000-000000000003",
            set_code="sld",
            collector_number="97",
            finishes=["foil"],
            prices={"usd": None, "usd_foil": "12.00"},
        ),
    ]


@pytest.fixture
def cache(memory_storage: MemoryBlobStorage, clock: FakeClock) -> PrintingCache:
    return PrintingCache(memory_storage, clock=clock, warm_up_delay=0.0)


@pytest.fixture
def preferences(memory_storage: MemoryBlobStorage, clock: FakeClock) -> PreferenceStore:
    return PreferenceStore(memory_storage, clock=clock)


@pytest.fixture
def flaky_storage() -> FlakyBlobStorage:
    return FlakyBlobStorage()
