"""
Card record normalization.

Card records reach the engine in several producer shapes, and the same
logical field (name, printing id, price table, foil flag) sits at different
depths in each:

- RawSearchResult: a catalog printing, optionally with a user `foil` flag
  merged in at the top level
- StoredCollectionItem: a deck/collection item wrapping the printing in
  `scryfall_json`, with user fields (`foil`, `printing`, `modalPrice`)
- ModalSelection: a UI wrapper nesting the item under `cardObj` and
  `cardObj.card`

Each shape has an adapter that projects it into one CardRecord. Records of
no known shape fall back to a bounded-depth key search.

INVARIANT: normalization never raises. Non-mapping input becomes an invalid
CardRecord.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

MAX_SEARCH_DEPTH = 10

# Every location a user foil flag is known to live at
FOIL_FLAG_PATHS: tuple[str, ...] = (
    "foil",
    "isFoil",
    "cardObj.foil",
    "cardObj.isFoil",
    "cardObj.card.foil",
    "cardObj.card.isFoil",
    "card.foil",
    "card.isFoil",
)

# Where the printing currently shown in a deck list is referenced, most specific first
REFERENCED_PRINTING_PATHS: tuple[str, ...] = (
    "cardObj.card.scryfall_json.id",
    "printing",
    "cardObj.printing",
    "cardObj.card.printing",
    "card.scryfall_json.id",
    "cardObj.scryfall_json.id",
    "scryfall_json.id",
    "scryfall_id",
    "id",
)


class RecordShape(str, Enum):
    """Known producer shapes."""

    RAW_SEARCH_RESULT = "raw_search_result"
    STORED_COLLECTION_ITEM = "stored_collection_item"
    MODAL_SELECTION = "modal_selection"
    UNKNOWN = "unknown"
    INVALID = "invalid"


@dataclass(frozen=True, slots=True)
class CardRecord:
    """
    Canonical view of a card record.

    Attributes:
        shape: Producer shape the record was recognized as
        name: Card name, if any location carries one
        printing: The catalog printing mapping (empty if none found)
        prices: Finish-keyed price table
        finishes: Finishes listed by the printing (empty when absent)
        set_code: Printing set code
        type_line: Type line ("" if unknown)
        promo_types: Printing promo types
        frame_effects: Printing frame effects
        explicit_foil: True if any foil flag location is strictly True
        stored_price: Previously computed price annotation (modalPrice)
        legacy_price: Flat price/usd field
        referenced_printing_id: Printing id the record points at
    """

    shape: RecordShape
    name: str | None = None
    printing: Mapping[str, Any] = field(default_factory=dict)
    prices: Mapping[str, Any] = field(default_factory=dict)
    finishes: tuple[str, ...] = ()
    set_code: str | None = None
    type_line: str = ""
    promo_types: tuple[str, ...] = ()
    frame_effects: tuple[str, ...] = ()
    explicit_foil: bool = False
    stored_price: Any = None
    legacy_price: Any = None
    referenced_printing_id: str | None = None

    @property
    def is_valid(self) -> bool:
        """False for non-mappings and mappings carrying none of the expected fields."""
        if self.shape == RecordShape.INVALID:
            return False
        return bool(
            self.name
            or self.printing
            or self.prices
            or self.type_line
            or self.stored_price is not None
            or self.legacy_price is not None
        )

    @property
    def catalog_id(self) -> str | None:
        value = self.printing.get("id")
        return value if isinstance(value, str) else None


# =============================================================================
# PATH HELPERS
# =============================================================================


def get_path(obj: object, path: str) -> Any:
    """Follow a dotted path through nested mappings. Returns None if any step is missing."""
    current: Any = obj
    for key in path.split("."):
        if not isinstance(current, Mapping) or key not in current:
            return None
        current = current[key]
    return current


def find_nested_value(obj: object, path: str, max_depth: int = MAX_SEARCH_DEPTH) -> Any:
    """
    Find a value by dotted path, falling back to a depth-first key search.

    The fallback looks for the path's last key anywhere in the tree,
    visiting keys in insertion order, so results are deterministic.

    Args:
        obj: Record to search
        path: Dotted path (e.g. "scryfall_json.prices.usd")
        max_depth: Maximum nesting depth searched

    Returns:
        The first non-None value found, or None.
    """
    if not isinstance(obj, Mapping) or max_depth <= 0:
        return None

    direct = get_path(obj, path)
    if direct is not None:
        return direct

    return _search_key(obj, path.split(".")[-1], 0, max_depth)


def _search_key(obj: Mapping[str, Any], key: str, depth: int, max_depth: int) -> Any:
    if depth >= max_depth:
        return None
    value = obj.get(key)
    if value is not None:
        return value
    for child in obj.values():
        if isinstance(child, Mapping):
            found = _search_key(child, key, depth + 1, max_depth)
            if found is not None:
                return found
    return None


def _first_str(*values: Any) -> str | None:
    for value in values:
        if isinstance(value, str) and value:
            return value
    return None


def _first_mapping(*values: Any) -> Mapping[str, Any]:
    for value in values:
        if isinstance(value, Mapping):
            return value
    return {}


def as_str_tuple(value: Any) -> tuple[str, ...]:
    if isinstance(value, str) or not isinstance(value, Sequence):
        return ()
    return tuple(item for item in value if isinstance(item, str))


def _explicit_foil(record: Mapping[str, Any]) -> bool:
    return any(get_path(record, path) is True for path in FOIL_FLAG_PATHS)


def _referenced_printing_id(record: Mapping[str, Any]) -> str | None:
    return _first_str(*(get_path(record, path) for path in REFERENCED_PRINTING_PATHS))


# =============================================================================
# SHAPE DETECTION AND ADAPTERS
# =============================================================================


def detect_shape(record: object) -> RecordShape:
    """Recognize which producer a record came from."""
    if not isinstance(record, Mapping):
        return RecordShape.INVALID
    if isinstance(record.get("cardObj"), Mapping):
        return RecordShape.MODAL_SELECTION
    if isinstance(record.get("scryfall_json"), Mapping):
        return RecordShape.STORED_COLLECTION_ITEM
    if "prices" in record or "finishes" in record or ("id" in record and "set" in record):
        return RecordShape.RAW_SEARCH_RESULT
    return RecordShape.UNKNOWN


def _build(
    record: Mapping[str, Any],
    shape: RecordShape,
    printing: Mapping[str, Any],
    name: str | None,
) -> CardRecord:
    """Shared projection once the printing mapping and name are located."""
    prices = _first_mapping(
        printing.get("prices"),
        record.get("prices"),
        find_nested_value(record, "prices"),
    )
    finishes = as_str_tuple(printing.get("finishes")) or as_str_tuple(record.get("finishes"))
    type_line = _first_str(
        printing.get("type_line"),
        record.get("type_line"),
        find_nested_value(record, "type_line"),
    )

    return CardRecord(
        shape=shape,
        name=name or _first_str(find_nested_value(record, "name")),
        printing=printing,
        prices=prices,
        finishes=finishes,
        set_code=_first_str(printing.get("set"), record.get("set")),
        type_line=type_line or "",
        promo_types=as_str_tuple(printing.get("promo_types")),
        frame_effects=as_str_tuple(printing.get("frame_effects")),
        explicit_foil=_explicit_foil(record),
        stored_price=find_nested_value(record, "modalPrice"),
        legacy_price=_legacy_price(record),
        referenced_printing_id=_referenced_printing_id(record),
    )


def _legacy_price(record: Mapping[str, Any]) -> Any:
    for key in ("price", "usd"):
        if record.get(key) is not None:
            return record[key]
    for key in ("price", "usd"):
        found = find_nested_value(record, key)
        if found is not None:
            return found
    return None


def adapt_raw_search_result(record: Mapping[str, Any]) -> CardRecord:
    """The record is the printing."""
    return _build(record, RecordShape.RAW_SEARCH_RESULT, record, _first_str(record.get("name")))


def adapt_stored_collection_item(record: Mapping[str, Any]) -> CardRecord:
    """The printing lives under scryfall_json."""
    printing = _first_mapping(record.get("scryfall_json"))
    name = _first_str(record.get("name"), printing.get("name"))
    return _build(record, RecordShape.STORED_COLLECTION_ITEM, printing, name)


def adapt_modal_selection(record: Mapping[str, Any]) -> CardRecord:
    """The item lives under cardObj, possibly again under cardObj.card."""
    printing = _first_mapping(
        get_path(record, "cardObj.card.scryfall_json"),
        get_path(record, "cardObj.scryfall_json"),
        record.get("scryfall_json"),
    )
    name = _first_str(
        get_path(record, "cardObj.card.name"),
        get_path(record, "cardObj.name"),
        record.get("name"),
        printing.get("name"),
    )
    return _build(record, RecordShape.MODAL_SELECTION, printing, name)


def adapt_unknown(record: Mapping[str, Any]) -> CardRecord:
    """No recognizable shape: locate everything by key search."""
    printing = _first_mapping(find_nested_value(record, "scryfall_json"))
    return _build(record, RecordShape.UNKNOWN, printing, None)


_ADAPTERS = {
    RecordShape.RAW_SEARCH_RESULT: adapt_raw_search_result,
    RecordShape.STORED_COLLECTION_ITEM: adapt_stored_collection_item,
    RecordShape.MODAL_SELECTION: adapt_modal_selection,
    RecordShape.UNKNOWN: adapt_unknown,
}


def normalize_record(record: object) -> CardRecord:
    """
    Project any card record into a CardRecord.

    Args:
        record: Anything. Non-mappings yield an invalid record.

    Returns:
        Canonical CardRecord. Never raises.
    """
    shape = detect_shape(record)
    if shape == RecordShape.INVALID or not isinstance(record, Mapping):
        return CardRecord(shape=RecordShape.INVALID)
    return _ADAPTERS[shape](record)
