"""
Pricing Resolution Engine.

Derives one displayable price from a card record of any producer shape.

Resolution order (first success wins):
1. Stored override: a previously computed price annotation (modalPrice)
2. Catalog price: finish-aware selection from the printing's price table
3. Legacy field: a flat price/usd field on the record
4. Basic land: fixed nominal amount
5. Category: tokens price at zero, anything else at a small nominal amount
   signalling "real price unknown"
6. Caller fallback: options.fallback_price
7. None: caller renders "price unavailable"

Tier 5 always yields for a valid record, so tiers 6 and 7 only apply to
records that fail validation. Those are still marked is_valid=False.

INVARIANTS:
- Never raises; malformed input degrades to price=None, is_valid=False
- No hidden state: same (record, options) gives the same result
- Every amount used is validated (finite, 0 <= x <= 1000)
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from printkeeper.pricing.amounts import format_price, is_valid_price, price_text
from printkeeper.pricing.finish_tables import FinishTables, get_finish_tables
from printkeeper.pricing.finishes import FinishInfo, FinishKind, determine_finish
from printkeeper.pricing.records import CardRecord, RecordShape, normalize_record

logger = logging.getLogger(__name__)

BASIC_LAND_PRICE = "0.10"
TOKEN_PRICE = "0.00"
GENERIC_FALLBACK_PRICE = "0.05"

PRICE_USD = "usd"
PRICE_USD_FOIL = "usd_foil"
PRICE_USD_ETCHED = "usd_etched"

# Price-table keys tried per finish, in order
FINISH_PRICE_CHAINS: dict[FinishKind, tuple[str, ...]] = {
    FinishKind.ETCHED: (PRICE_USD_ETCHED, PRICE_USD_FOIL, PRICE_USD),
    FinishKind.SPECIAL_FOIL: (PRICE_USD_FOIL, PRICE_USD),
    FinishKind.FOIL: (PRICE_USD_FOIL, PRICE_USD),
    FinishKind.NORMAL: (PRICE_USD,),
}


class PriceSource(str, Enum):
    """Provenance tag: which resolution tier produced the price."""

    STORED = "stored"

    FOIL_ONLY_ETCHED = "foil_only_etched"
    FOIL_ONLY_SPECIAL = "foil_only_special"
    FOIL_ONLY = "foil_only"
    FOIL_ETCHED = "foil_etched"
    FOIL_SPECIAL = "foil_special"
    FOIL = "foil"
    NONFOIL = "nonfoil"

    LEGACY_FIELD = "legacy_field"
    BASIC_LAND_FALLBACK = "basic_land_fallback"
    TOKEN_FALLBACK = "token_fallback"
    GENERIC_FALLBACK = "generic_fallback"
    CALLER_FALLBACK = "caller_fallback"

    NOT_FOUND = "not_found"
    INVALID_RECORD = "invalid_record"

    @property
    def is_catalog(self) -> bool:
        """Price came from a real catalog price table."""
        return self in _CATALOG_SOURCES

    @property
    def is_estimate(self) -> bool:
        """Price is a placeholder, not a market value."""
        return self in _ESTIMATE_SOURCES


_CATALOG_SOURCES = frozenset(
    {
        PriceSource.FOIL_ONLY_ETCHED,
        PriceSource.FOIL_ONLY_SPECIAL,
        PriceSource.FOIL_ONLY,
        PriceSource.FOIL_ETCHED,
        PriceSource.FOIL_SPECIAL,
        PriceSource.FOIL,
        PriceSource.NONFOIL,
    }
)

_ESTIMATE_SOURCES = frozenset(
    {
        PriceSource.BASIC_LAND_FALLBACK,
        PriceSource.TOKEN_FALLBACK,
        PriceSource.GENERIC_FALLBACK,
        PriceSource.CALLER_FALLBACK,
    }
)

# (finish kind, foil-only) -> provenance of a catalog price
_CATALOG_SOURCE_BY_FINISH: dict[tuple[FinishKind, bool], PriceSource] = {
    (FinishKind.ETCHED, True): PriceSource.FOIL_ONLY_ETCHED,
    (FinishKind.SPECIAL_FOIL, True): PriceSource.FOIL_ONLY_SPECIAL,
    (FinishKind.FOIL, True): PriceSource.FOIL_ONLY,
    (FinishKind.ETCHED, False): PriceSource.FOIL_ETCHED,
    (FinishKind.SPECIAL_FOIL, False): PriceSource.FOIL_SPECIAL,
    (FinishKind.FOIL, False): PriceSource.FOIL,
    (FinishKind.NORMAL, False): PriceSource.NONFOIL,
    (FinishKind.NORMAL, True): PriceSource.NONFOIL,
}


@dataclass(frozen=True, slots=True)
class ResolutionOptions:
    """
    Options for resolve_price.

    Attributes:
        prefer_stored_override: Use a valid stored price annotation first
        fallback_price: Amount used when no tier yields a price
    """

    prefer_stored_override: bool = True
    fallback_price: str | None = None


@dataclass(frozen=True, slots=True)
class PriceMetadata:
    """Diagnostics accompanying a resolution."""

    card_name: str | None
    record_shape: RecordShape
    catalog_id: str | None
    finishes: tuple[str, ...]
    available_prices: tuple[str, ...]
    was_stored: bool = False


@dataclass(frozen=True, slots=True)
class PriceResolution:
    """Result of resolve_price."""

    price: str | None
    source: PriceSource
    finish: FinishInfo
    is_valid: bool
    metadata: PriceMetadata

    @property
    def display(self) -> str:
        return format_price(self.price)


def _available_prices(prices: Mapping[str, Any]) -> tuple[str, ...]:
    return tuple(key for key, value in prices.items() if is_valid_price(value))


def _catalog_price(record: CardRecord, finish: FinishInfo) -> tuple[str, PriceSource] | None:
    for key in FINISH_PRICE_CHAINS[finish.kind]:
        amount = price_text(record.prices.get(key))
        if amount is not None:
            return amount, _CATALOG_SOURCE_BY_FINISH[(finish.kind, finish.is_foil_only)]
    return None


def _category_fallback(record: CardRecord, tables: FinishTables) -> tuple[str, PriceSource]:
    type_line = record.type_line.lower()
    if "basic land" in type_line or (record.name or "") in tables.basic_land_names:
        return BASIC_LAND_PRICE, PriceSource.BASIC_LAND_FALLBACK
    if "token" in type_line:
        return TOKEN_PRICE, PriceSource.TOKEN_FALLBACK
    return GENERIC_FALLBACK_PRICE, PriceSource.GENERIC_FALLBACK


def _resolve(
    record: CardRecord,
    finish: FinishInfo,
    options: ResolutionOptions,
    tables: FinishTables,
) -> tuple[str | None, PriceSource]:
    if not record.is_valid:
        if options.fallback_price is not None:
            return options.fallback_price, PriceSource.CALLER_FALLBACK
        return None, PriceSource.INVALID_RECORD

    if options.prefer_stored_override:
        stored = price_text(record.stored_price)
        if stored is not None:
            return stored, PriceSource.STORED

    catalog = _catalog_price(record, finish)
    if catalog is not None:
        return catalog

    legacy = price_text(record.legacy_price)
    if legacy is not None:
        return legacy, PriceSource.LEGACY_FIELD

    return _category_fallback(record, tables)


def resolve_price(card_record: object, options: ResolutionOptions | None = None) -> PriceResolution:
    """
    Resolve the displayable price for a card record.

    Args:
        card_record: Card record in any producer shape (or anything else)
        options: Resolution options (defaults: prefer stored, no fallback)

    Returns:
        PriceResolution with price, provenance, finish and metadata.
    """
    if options is None:
        options = ResolutionOptions()

    tables = get_finish_tables()
    record = normalize_record(card_record)
    finish = determine_finish(record, tables)
    price, source = _resolve(record, finish, options, tables)

    resolution = PriceResolution(
        price=price,
        source=source,
        finish=finish,
        is_valid=record.is_valid and is_valid_price(price),
        metadata=PriceMetadata(
            card_name=record.name,
            record_shape=record.shape,
            catalog_id=record.catalog_id,
            finishes=record.finishes,
            available_prices=_available_prices(record.prices),
            was_stored=source == PriceSource.STORED,
        ),
    )

    logger.debug(
        "PRICE_RESOLVED: name=%s source=%s price=%s finish=%s",
        record.name,
        source.value,
        price,
        finish.kind.value,
    )
    return resolution


def price_for_printing(
    printing: Mapping[str, Any],
    foil: bool,
    options: ResolutionOptions | None = None,
) -> PriceResolution:
    """
    Price a catalog printing with a user foil choice.

    The foil choice replaces the printing's own `foil` key, which in catalog
    data describes availability rather than this card instance.
    """
    if options is None:
        options = ResolutionOptions(prefer_stored_override=False)
    return resolve_price({**printing, "foil": foil}, options)
