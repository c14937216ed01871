"""Tests for the cache warm-up job."""

from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from printkeeper.jobs import warm_cache
from printkeeper.services.catalog_client import CatalogNotFoundError
from printkeeper.services.printing_cache import PrintingCache, WarmUpReport
from printkeeper.storage.backends import MemoryBlobStorage


class StubCatalog:
    def __init__(self, known: set[str]) -> None:
        self.known = known
        self.calls: list[str] = []

    async def fetch_printings(self, name: str) -> list[dict[str, Any]]:
        self.calls.append(name)
        if name not in self.known:
            raise CatalogNotFoundError(name)
        return [
            {
                "id": f"{name}-1",
                "name": name,
                "set": "lea",
                "collector_number": "1",
                "image_uris": {"normal": "https://img.test/1.jpg"},
            }
        ]


class TestRunWarmUp:
    @pytest.mark.asyncio
    async def test_warms_known_cards(self) -> None:
        storage = MemoryBlobStorage()
        catalog = StubCatalog({"Island", "Sol Ring"})

        report = await warm_cache.run_warm_up(
            ["Island", "Sol Ring", "Not A Card"], storage=storage, catalog=catalog
        )

        assert report.fetched == 2
        assert report.failed == 1
        assert report.failed_names == ("Not A Card",)
        cache = PrintingCache(storage)
        assert cache.has("Island")
        assert cache.has("Sol Ring")

    @pytest.mark.asyncio
    async def test_cached_cards_are_skipped(self) -> None:
        storage = MemoryBlobStorage()
        catalog = StubCatalog({"Island"})
        await warm_cache.run_warm_up(["Island"], storage=storage, catalog=catalog)

        report = await warm_cache.run_warm_up(["Island"], storage=storage, catalog=catalog)

        assert report.skipped == 1
        assert report.fetched == 0
        assert catalog.calls == ["Island"]


class TestCli:
    def test_parse_names(self) -> None:
        args = warm_cache.parse_args(["Lightning Bolt", "Opt"])
        assert args.names == ["Lightning Bolt", "Opt"]

    def test_parse_defaults_to_empty(self) -> None:
        assert warm_cache.parse_args([]).names == []

    def test_main_uses_common_cards_by_default(self) -> None:
        report = WarmUpReport(fetched=1, skipped=0, failed=0)
        with patch.object(warm_cache, "run_warm_up", AsyncMock(return_value=report)) as run:
            warm_cache.main([])

        run.assert_awaited_once_with(list(warm_cache.COMMON_CARDS))

    def test_main_passes_names(self) -> None:
        report = WarmUpReport(fetched=1, skipped=0, failed=0)
        with patch.object(warm_cache, "run_warm_up", AsyncMock(return_value=report)) as run:
            warm_cache.main(["Opt"])

        run.assert_awaited_once_with(["Opt"])
