"""
Price resolution for card records.

Pure functions only: no I/O beyond loading the shipped finish tables once.
"""

from printkeeper.pricing.amounts import format_price, is_valid_price, parse_price
from printkeeper.pricing.engine import (
    PriceMetadata,
    PriceResolution,
    PriceSource,
    ResolutionOptions,
    price_for_printing,
    resolve_price,
)
from printkeeper.pricing.finishes import (
    FinishAvailability,
    FinishInfo,
    FinishKind,
    determine_finish,
    reconcile_foil_for_printing,
)
from printkeeper.pricing.records import CardRecord, RecordShape, normalize_record

__all__ = [
    # Engine
    "PriceMetadata",
    "PriceResolution",
    "PriceSource",
    "ResolutionOptions",
    "price_for_printing",
    "resolve_price",
    # Amounts
    "format_price",
    "is_valid_price",
    "parse_price",
    # Finishes
    "FinishAvailability",
    "FinishInfo",
    "FinishKind",
    "determine_finish",
    "reconcile_foil_for_printing",
    # Records
    "CardRecord",
    "RecordShape",
    "normalize_record",
]
