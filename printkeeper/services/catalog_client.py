"""
Catalog client: fetches printings from a Scryfall-shaped REST API.

Search: GET {base}/cards/search?q=!"<name>" game:paper&unique=prints&order=released
Lookup: GET {base}/cards/{id}

Failures raise CatalogError subclasses so callers can tell a card that does
not exist (terminal) from a catalog that is down or slow (retryable).
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from printkeeper.config import settings
from printkeeper.models.failure import FailureKind, KnownError

logger = logging.getLogger(__name__)

# Pause between result pages (catalog asks for 50-100 ms between requests)
PAGE_DELAY_SECONDS = 0.1


# =============================================================================
# CATALOG ERRORS
# =============================================================================


class CatalogError(KnownError):
    """Base class for catalog failures."""

    pass


class CatalogNotFoundError(CatalogError):
    """The catalog has no such card or printing. Terminal."""

    def __init__(self, query: str):
        self.query = query
        super().__init__(
            kind=FailureKind.NOT_FOUND,
            message=f"No printings found for '{query}'.",
            suggestion="Check the card name spelling.",
            retryable=False,
        )


class CatalogUnavailableError(CatalogError):
    """The catalog failed or could not be reached. Retryable."""

    def __init__(self, detail: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(
            kind=FailureKind.SERVICE_UNAVAILABLE,
            message="The card catalog is unavailable right now.",
            detail=detail,
            suggestion="Try again in a moment.",
            retryable=True,
        )


class CatalogTimeoutError(CatalogError):
    """The catalog did not answer within the timeout. Retryable."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(
            kind=FailureKind.TIMEOUT,
            message="The card catalog took too long to respond.",
            detail=f"timed out after {timeout}s",
            suggestion="Try again in a moment.",
            retryable=True,
        )


# =============================================================================
# CLIENT
# =============================================================================


def search_query(name: str) -> str:
    """Exact-name query for paper printings."""
    escaped = name.replace('"', '\\"')
    return f'!"{escaped}" game:paper'


class CatalogClient:
    """
    Async catalog client.

    Args:
        base_url: API root. Defaults to settings.catalog_base_url
        timeout: Per-request timeout in seconds
        max_pages: Result pages followed per search
        client: Shared httpx.AsyncClient. When omitted, each call opens its own.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        max_pages: int | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = (base_url or settings.catalog_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.catalog_timeout_seconds
        self.max_pages = max_pages if max_pages is not None else settings.catalog_max_pages
        self._client = client

    async def fetch_printings(self, name: str) -> list[dict[str, Any]]:
        """
        Fetch every paper printing of a card, oldest release first.

        Args:
            name: Exact card name

        Returns:
            Printing dicts as returned by the catalog.

        Raises:
            CatalogNotFoundError: Unknown card, or no printings
            CatalogUnavailableError: Transport failure or non-404 HTTP error
            CatalogTimeoutError: Request timed out
        """
        name = name.strip()
        if not name:
            raise CatalogError(FailureKind.INVALID_INPUT, "A card name is required.")

        url = f"{self.base_url}/cards/search"
        params: dict[str, str] | None = {
            "q": search_query(name),
            "unique": "prints",
            "order": "released",
        }
        printings: list[dict[str, Any]] = []

        async with self._session() as client:
            for page in range(1, self.max_pages + 1):
                data = await self._get_json(client, url, params, query=name)
                printings.extend(card for card in data.get("data", []) if isinstance(card, dict))

                next_page = data.get("next_page")
                if not data.get("has_more") or not isinstance(next_page, str):
                    break
                if page == self.max_pages:
                    logger.warning(
                        "CATALOG_PAGE_LIMIT: name=%s pages=%d printings=%d",
                        name,
                        page,
                        len(printings),
                    )
                    break
                # Next page URL carries the query
                url, params = next_page, None
                await asyncio.sleep(PAGE_DELAY_SECONDS)

        if not printings:
            raise CatalogNotFoundError(name)

        logger.info("CATALOG_FETCH: name=%s printings=%d", name, len(printings))
        return printings

    async def fetch_printing(self, printing_id: str) -> dict[str, Any]:
        """
        Fetch one printing by catalog id.

        Raises:
            CatalogNotFoundError: Unknown id
            CatalogUnavailableError: Transport failure or non-404 HTTP error
            CatalogTimeoutError: Request timed out
        """
        if not printing_id:
            raise CatalogError(FailureKind.INVALID_INPUT, "A printing id is required.")

        async with self._session() as client:
            return await self._get_json(
                client, f"{self.base_url}/cards/{printing_id}", None, query=printing_id
            )

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(
            headers={"User-Agent": settings.catalog_user_agent, "Accept": "application/json"},
            timeout=self.timeout,
            follow_redirects=True,
        ) as client:
            yield client

    async def _get_json(
        self,
        client: httpx.AsyncClient,
        url: str,
        params: dict[str, str] | None,
        *,
        query: str,
    ) -> dict[str, Any]:
        try:
            response = await client.get(url, params=params, timeout=self.timeout)
        except httpx.TimeoutException as e:
            logger.warning("CATALOG_TIMEOUT: query=%s timeout=%s", query, self.timeout)
            raise CatalogTimeoutError(self.timeout) from e
        except httpx.RequestError as e:
            logger.warning("CATALOG_UNREACHABLE: query=%s error=%s", query, e)
            raise CatalogUnavailableError(str(e)) from e

        if response.status_code == 404:
            raise CatalogNotFoundError(query)
        if response.is_error:
            logger.warning("CATALOG_HTTP_ERROR: query=%s status=%d", query, response.status_code)
            raise CatalogUnavailableError(
                f"HTTP {response.status_code}", status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError as e:
            raise CatalogError(
                FailureKind.EXTERNAL_API_ERROR,
                "The card catalog returned an unreadable response.",
                detail=str(e),
                retryable=True,
            ) from e

        if not isinstance(data, dict):
            raise CatalogError(
                FailureKind.EXTERNAL_API_ERROR,
                "The card catalog returned an unexpected response.",
                detail=type(data).__name__,
                retryable=True,
            )
        return data
