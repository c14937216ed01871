"""
Foil/finish determination.

Derives finish availability and the finish a card is priced as, from a
normalized CardRecord. Pure and deterministic: same record, same answer.

Rules:
- explicit foil: any foil flag location is strictly True
- availability: from the printing's finishes list when present, otherwise
  inferred from the set code via the finish tables
- foil-only:     has_foil and not has_nonfoil
- non-foil-only: has_nonfoil and not has_foil
- effective foil = explicit foil OR foil-only (foil-only always wins, even
  over a stale explicit False)
"""

from dataclasses import dataclass
from enum import Enum

from printkeeper.pricing.finish_tables import FinishTables, get_finish_tables
from printkeeper.pricing.records import CardRecord

FINISH_NONFOIL = "nonfoil"
FINISH_FOIL = "foil"
FINISH_ETCHED = "etched"


class FinishKind(str, Enum):
    """Finish a card instance is priced as."""

    NORMAL = "normal"
    FOIL = "foil"
    ETCHED = "etched"
    SPECIAL_FOIL = "special_foil"


FINISH_DISPLAY: dict[FinishKind, str] = {
    FinishKind.NORMAL: "Normal",
    FinishKind.FOIL: "Foil",
    FinishKind.ETCHED: "Etched",
    FinishKind.SPECIAL_FOIL: "Special Foil",
}


@dataclass(frozen=True, slots=True)
class FinishAvailability:
    """Which finishes exist for a printing."""

    has_nonfoil: bool
    has_foil: bool
    inferred: bool  # True when derived from the set code, not a finishes list

    @property
    def is_foil_only(self) -> bool:
        return self.has_foil and not self.has_nonfoil

    @property
    def is_nonfoil_only(self) -> bool:
        return self.has_nonfoil and not self.has_foil


@dataclass(frozen=True, slots=True)
class FinishInfo:
    """
    Finish metadata for one card instance.

    Attributes:
        kind: Finish the card is priced as
        explicit_foil: A foil flag location was strictly True
        is_foil: Effective foil status used for pricing
        availability: Finishes the printing comes in
    """

    kind: FinishKind
    explicit_foil: bool
    is_foil: bool
    availability: FinishAvailability

    @property
    def display(self) -> str:
        return FINISH_DISPLAY[self.kind]

    @property
    def is_foil_only(self) -> bool:
        return self.availability.is_foil_only

    @property
    def is_nonfoil_only(self) -> bool:
        return self.availability.is_nonfoil_only


def determine_availability(
    finishes: tuple[str, ...],
    set_code: str | None,
    tables: FinishTables | None = None,
) -> FinishAvailability:
    """
    Determine which finishes a printing comes in.

    Args:
        finishes: The printing's finishes list (empty when absent)
        set_code: The printing's set code, used only when finishes is empty
        tables: Finish tables (defaults to the shipped tables)
    """
    if finishes:
        return FinishAvailability(
            has_nonfoil=FINISH_NONFOIL in finishes,
            has_foil=FINISH_FOIL in finishes or FINISH_ETCHED in finishes,
            inferred=False,
        )

    if tables is None:
        tables = get_finish_tables()
    has_nonfoil, has_foil = tables.classify_set(set_code)
    return FinishAvailability(has_nonfoil=has_nonfoil, has_foil=has_foil, inferred=True)


def determine_finish(record: CardRecord, tables: FinishTables | None = None) -> FinishInfo:
    """
    Determine the finish a card instance is priced as.

    Etched takes precedence over special foil, which takes precedence over
    plain foil. Non-foil instances are always NORMAL.
    """
    if tables is None:
        tables = get_finish_tables()

    availability = determine_availability(record.finishes, record.set_code, tables)
    is_foil = record.explicit_foil or availability.is_foil_only

    if not is_foil:
        kind = FinishKind.NORMAL
    elif FINISH_ETCHED in record.finishes or FINISH_ETCHED in record.frame_effects:
        kind = FinishKind.ETCHED
    elif any(promo in tables.special_foil_promo_types for promo in record.promo_types):
        kind = FinishKind.SPECIAL_FOIL
    else:
        kind = FinishKind.FOIL

    return FinishInfo(
        kind=kind,
        explicit_foil=record.explicit_foil,
        is_foil=is_foil,
        availability=availability,
    )


def reconcile_foil_for_printing(
    finishes: tuple[str, ...],
    set_code: str | None,
    requested_foil: bool | None = None,
    tables: FinishTables | None = None,
) -> bool:
    """
    Foil status to apply after switching to a printing.

    Foil-only printings force foil and non-foil-only printings force
    non-foil. When both finishes exist the requested status is kept, and
    an unspecified request resets to non-foil.
    """
    availability = determine_availability(finishes, set_code, tables)
    if availability.is_foil_only:
        return True
    if availability.is_nonfoil_only:
        return False
    return bool(requested_foil)
