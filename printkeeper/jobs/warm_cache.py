"""
Warm the printing cache.

Prefetches printing lists for the given card names, or for a built-in list
of commonly opened cards, so the first open of each card is served from
cache.

Usage:
    python -m printkeeper.jobs.warm_cache
    python -m printkeeper.jobs.warm_cache "Lightning Bolt" "Sol Ring"
"""

import argparse
import asyncio
import logging
from collections.abc import Sequence

from printkeeper.config import settings
from printkeeper.services.catalog_client import CatalogClient
from printkeeper.services.printing_cache import PrintingCache, WarmUpReport
from printkeeper.storage.backends import BlobStorage, SqlBlobStorage

logger = logging.getLogger(__name__)

COMMON_CARDS: tuple[str, ...] = (
    "Plains",
    "Island",
    "Swamp",
    "Mountain",
    "Forest",
    "Sol Ring",
    "Lightning Bolt",
    "Counterspell",
    "Swords to Plowshares",
    "Command Tower",
    "Arcane Signet",
    "Llanowar Elves",
    "Dark Ritual",
    "Brainstorm",
    "Path to Exile",
)


async def run_warm_up(
    names: Sequence[str],
    storage: BlobStorage | None = None,
    catalog: CatalogClient | None = None,
) -> WarmUpReport:
    """
    Warm the cache for the given names.

    Args:
        names: Card names to prefetch
        storage: Blob backend. Defaults to settings.storage_url
        catalog: Catalog client. Defaults to one built from settings

    Returns:
        WarmUpReport with fetched, skipped and failed counts.
    """
    if storage is None:
        storage = SqlBlobStorage.from_url(settings.storage_url, settings.storage_quota_bytes)
    if catalog is None:
        catalog = CatalogClient()

    cache = PrintingCache(storage)
    logger.info("Warming printing cache for %d cards...", len(names))

    def report_progress(done: int, total: int) -> None:
        logger.info("Warmed %d/%d cards", done, total)

    report = await cache.warm_up(names, catalog.fetch_printings, on_progress=report_progress)
    if report.failed_names:
        logger.warning("Failed to warm: %s", ", ".join(report.failed_names))
    return report


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Prefetch card printings into the cache.")
    parser.add_argument(
        "names",
        nargs="*",
        help="Card names to warm (default: a built-in list of common cards)",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    args = parse_args(argv)
    names = args.names or list(COMMON_CARDS)
    report = asyncio.run(run_warm_up(names))
    logger.info(
        "Cache warm-up complete: fetched=%d skipped=%d failed=%d",
        report.fetched,
        report.skipped,
        report.failed,
    )


if __name__ == "__main__":
    main()
