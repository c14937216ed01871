"""
Printing Selection Coordinator.

Orchestrates which printing of a card is shown, and at what price, as the
user opens cards, picks printings, toggles foil and flips faces.

Default selection precedence when a card is opened:
1. The user's remembered preference for the name
2. The printing the record itself references (its deck-list printing)
3. The first printing the catalog returned

INVARIANTS:
- A later open_card supersedes earlier ones; a result arriving for a card
  that is no longer current is dropped, but its cache write is kept
- Only explicit selections write a preference. Inherited selections never do
- An explicit selection is validated before any write; if it is rejected
  neither store is touched
- While the user is navigating faces, re-opening the same card keeps the
  displayed printing even if a preference exists
- The view is replaced in one assignment once all writes are done
"""

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Protocol

from printkeeper.models.failure import (
    FailureDetail,
    FailureKind,
    KnownError,
    OutcomeType,
    describe_unknown_failure,
)
from printkeeper.pricing.engine import PriceResolution, price_for_printing
from printkeeper.pricing.finishes import determine_availability, reconcile_foil_for_printing
from printkeeper.pricing.records import as_str_tuple, normalize_record
from printkeeper.services.catalog_client import CatalogNotFoundError
from printkeeper.services.preference_store import PreferenceStore
from printkeeper.services.printing_cache import PrintingCache, is_well_formed_printing

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_SIZE = "normal"


class PrintingSource(Protocol):
    """Anything that can list the printings of a card."""

    async def fetch_printings(self, name: str) -> list[dict[str, Any]]: ...


class SelectionSource(str, Enum):
    """Why the displayed printing was chosen."""

    PREFERENCE = "preference"
    REFERENCED = "referenced"
    FIRST = "first"
    EXPLICIT = "explicit"
    CURRENT = "current"


@dataclass(frozen=True, slots=True)
class CardView:
    """What the session currently displays."""

    card_name: str | None = None
    printings: tuple[dict[str, Any], ...] = ()
    selected_printing: dict[str, Any] | None = None
    selection_source: SelectionSource | None = None
    foil: bool = False
    face_index: int = 0
    navigating_faces: bool = False
    price: PriceResolution | None = None
    updated_at: float = 0.0

    @property
    def selected_id(self) -> str | None:
        if self.selected_printing is None:
            return None
        value = self.selected_printing.get("id")
        return value if isinstance(value, str) else None

    def find_printing(self, printing_id: str) -> dict[str, Any] | None:
        for printing in self.printings:
            if printing.get("id") == printing_id:
                return printing
        return None


@dataclass(frozen=True, slots=True)
class SelectionOutcome:
    """
    Result of a coordinator operation.

    Attributes:
        outcome: SUCCESS, REFUSAL (nothing applied) or a failure type
        view: The view after the operation
        failure: Explanation when the operation did not succeed
        stale: The result was for a card no longer current and was dropped
        settled: Both stores persisted the explicit selection
    """

    outcome: OutcomeType
    view: CardView
    failure: FailureDetail | None = None
    stale: bool = False
    settled: bool = False

    @property
    def ok(self) -> bool:
        return self.outcome == OutcomeType.SUCCESS

    @property
    def price(self) -> PriceResolution | None:
        return self.view.price


def _printing_finishes(printing: Mapping[str, Any]) -> tuple[tuple[str, ...], str | None]:
    set_code = printing.get("set")
    finishes = as_str_tuple(printing.get("finishes"))
    return finishes, set_code if isinstance(set_code, str) else None


def _faces(printing: Mapping[str, Any] | None) -> list[Mapping[str, Any]]:
    if printing is None:
        return []
    faces = printing.get("card_faces")
    if not isinstance(faces, list):
        return []
    return [face for face in faces if isinstance(face, Mapping)]


class PrintingSelectionCoordinator:
    """
    Per-session printing selection.

    Args:
        cache: Printing cache
        preferences: Preference store
        catalog: Source of printing lists (normally a CatalogClient)
        clock: Returns current time in seconds (injectable for tests)
    """

    def __init__(
        self,
        cache: PrintingCache,
        preferences: PreferenceStore,
        catalog: PrintingSource,
        *,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.cache = cache
        self.preferences = preferences
        self.catalog = catalog
        self.clock = clock or time.time
        self._view = CardView()
        self._current_name: str | None = None

    @property
    def current_view(self) -> CardView:
        return self._view

    # =========================================================================
    # OPEN
    # =========================================================================

    async def open_card(self, record: object) -> SelectionOutcome:
        """
        Open a card record and choose the printing to display.

        Args:
            record: Card record in any producer shape

        Returns:
            SelectionOutcome. Catalog failures come back as KNOWN_FAILURE
            with the catalog's FailureDetail; a superseded lookup comes back
            as REFUSAL with stale=True.
        """
        card = normalize_record(record)
        name = card.name
        if not name:
            return self._refuse(
                FailureKind.MISSING_REQUIRED,
                "This card has no name, so its printings cannot be loaded.",
                outcome=OutcomeType.KNOWN_FAILURE,
            )

        previous = self._view
        keep_displayed = previous.card_name == name and previous.navigating_faces
        self._current_name = name

        try:
            printings = await self._load_printings(name)
        except KnownError as e:
            if self._current_name != name:
                return self._stale(name)
            logger.warning("OPEN_CARD_FAILED: name=%s kind=%s", name, e.kind.value)
            return SelectionOutcome(
                outcome=OutcomeType.KNOWN_FAILURE, view=self._view, failure=e.to_detail()
            )
        except Exception as e:
            if self._current_name != name:
                return self._stale(name)
            logger.exception("OPEN_CARD_CRASHED: name=%s", name)
            return SelectionOutcome(
                outcome=OutcomeType.UNKNOWN_FAILURE,
                view=self._view,
                failure=describe_unknown_failure(e),
            )

        if self._current_name != name:
            return self._stale(name)

        selected, source = self._default_selection(
            name, printings, card.referenced_printing_id, previous if keep_displayed else None
        )
        if source == SelectionSource.CURRENT:
            foil = previous.foil
        else:
            finishes, set_code = _printing_finishes(selected)
            foil = reconcile_foil_for_printing(finishes, set_code, card.explicit_foil)

        self._view = CardView(
            card_name=name,
            printings=tuple(printings),
            selected_printing=selected,
            selection_source=source,
            foil=foil,
            face_index=previous.face_index if keep_displayed else 0,
            navigating_faces=keep_displayed,
            price=price_for_printing(selected, foil),
            updated_at=self.clock(),
        )
        logger.info(
            "OPEN_CARD: name=%s printing=%s source=%s foil=%s",
            name,
            self._view.selected_id,
            source.value,
            foil,
        )
        return SelectionOutcome(outcome=OutcomeType.SUCCESS, view=self._view)

    async def _load_printings(self, name: str) -> list[dict[str, Any]]:
        """Cached printings when trustworthy, otherwise a fresh catalog fetch."""
        entry = self.cache.get(name)
        known_count = len(self._view.printings) if self._view.card_name == name else None
        if (
            entry is not None
            and self.cache.validate_hit(name, entry, known_printing_count=known_count).valid
        ):
            preference = self.preferences.get(name)
            if preference is None or any(
                p.get("id") == preference.printing_id for p in entry.printings
            ):
                return list(entry.printings)
            logger.info(
                "CACHE_EVICT: name=%s reason=preference %s not cached",
                name,
                preference.printing_id,
            )
            self.cache.remove(name)

        printings = await self.catalog.fetch_printings(name)
        if not printings:
            raise CatalogNotFoundError(name)
        self.cache.set(name, printings)
        return printings

    def _default_selection(
        self,
        name: str,
        printings: list[dict[str, Any]],
        referenced_id: str | None,
        displayed: CardView | None,
    ) -> tuple[dict[str, Any], SelectionSource]:
        by_id = {p.get("id"): p for p in printings}

        if displayed is not None and displayed.selected_id is not None:
            current = by_id.get(displayed.selected_id)
            if current is not None:
                return current, SelectionSource.CURRENT

        preference = self.preferences.get(name)
        if preference is not None and preference.printing_id in by_id:
            return by_id[preference.printing_id], SelectionSource.PREFERENCE

        if referenced_id is not None and referenced_id in by_id:
            return by_id[referenced_id], SelectionSource.REFERENCED

        return printings[0], SelectionSource.FIRST

    def _stale(self, name: str) -> SelectionOutcome:
        logger.info("OPEN_CARD_STALE: name=%s current=%s", name, self._current_name)
        return SelectionOutcome(outcome=OutcomeType.REFUSAL, view=self._view, stale=True)

    # =========================================================================
    # USER ACTIONS
    # =========================================================================

    def select_printing(self, printing_id: str, *, foil: bool | None = None) -> SelectionOutcome:
        """
        Apply an explicit printing choice and remember it.

        Foil is reset on a printing change: foil-only printings become foil,
        non-foil-only printings become non-foil, and printings with both
        finishes become non-foil unless `foil` is given.

        Args:
            printing_id: Id of a printing in the current list
            foil: Requested foil status

        Returns:
            SUCCESS with settled=True when both stores were written, or
            REFUSAL when the printing is unknown or malformed.
        """
        view = self._view
        if view.card_name is None:
            return self._refuse(FailureKind.INVALID_INPUT, "No card is open.")

        printing = view.find_printing(printing_id)
        if printing is None or not is_well_formed_printing(printing):
            logger.warning(
                "SELECT_REJECTED: name=%s printing=%s", view.card_name, printing_id
            )
            return self._refuse(
                FailureKind.INVALID_INPUT,
                "That printing is not available for this card.",
                detail=printing_id,
            )

        requested = foil
        if requested is None and printing_id == view.selected_id:
            requested = view.foil
        finishes, set_code = _printing_finishes(printing)
        new_foil = reconcile_foil_for_printing(finishes, set_code, requested)

        cache_ok = self.cache.set(view.card_name, view.printings, selected_printing=printing)
        preference = self.preferences.set(view.card_name, printing)

        self._view = replace(
            view,
            selected_printing=printing,
            selection_source=SelectionSource.EXPLICIT,
            foil=new_foil,
            face_index=0,
            navigating_faces=False,
            price=price_for_printing(printing, new_foil),
            updated_at=self.clock(),
        )
        settled = cache_ok and preference is not None
        logger.info(
            "SELECT_PRINTING: name=%s printing=%s foil=%s settled=%s",
            view.card_name,
            printing_id,
            new_foil,
            settled,
        )
        return SelectionOutcome(outcome=OutcomeType.SUCCESS, view=self._view, settled=settled)

    def toggle_foil(self, foil: bool) -> SelectionOutcome:
        """Set foil status. Ignored for printings that come in one finish only."""
        view = self._view
        if view.selected_printing is None:
            return self._refuse(FailureKind.INVALID_INPUT, "No card is open.")

        finishes, set_code = _printing_finishes(view.selected_printing)
        availability = determine_availability(finishes, set_code)
        if availability.is_foil_only or availability.is_nonfoil_only:
            return self._refuse(
                FailureKind.INVALID_INPUT,
                "This printing only comes in one finish.",
            )

        self._view = replace(
            view,
            foil=foil,
            price=price_for_printing(view.selected_printing, foil),
            updated_at=self.clock(),
        )
        return SelectionOutcome(outcome=OutcomeType.SUCCESS, view=self._view)

    def navigate_face(self, face_index: int) -> SelectionOutcome:
        """Show another face of a multi-faced printing."""
        faces = _faces(self._view.selected_printing)
        if len(faces) < 2 or not 0 <= face_index < len(faces):
            return self._refuse(
                FailureKind.INVALID_INPUT,
                "This printing has no such face.",
                detail=str(face_index),
            )

        self._view = replace(
            self._view,
            face_index=face_index,
            navigating_faces=True,
            updated_at=self.clock(),
        )
        return SelectionOutcome(outcome=OutcomeType.SUCCESS, view=self._view)

    def image_for_view(self, size: str = DEFAULT_IMAGE_SIZE) -> str | None:
        """Image URI for the displayed face, falling back to the printing image."""
        printing = self._view.selected_printing
        if printing is None:
            return None

        faces = _faces(printing)
        if faces and self._view.face_index < len(faces):
            face_images = faces[self._view.face_index].get("image_uris")
            if isinstance(face_images, Mapping) and isinstance(face_images.get(size), str):
                return face_images[size]

        images = printing.get("image_uris")
        if isinstance(images, Mapping) and isinstance(images.get(size), str):
            return images[size]
        return None

    def _refuse(
        self,
        kind: FailureKind,
        message: str,
        *,
        detail: str | None = None,
        outcome: OutcomeType = OutcomeType.REFUSAL,
    ) -> SelectionOutcome:
        return SelectionOutcome(
            outcome=outcome,
            view=self._view,
            failure=FailureDetail(kind=kind, message=message, detail=detail),
        )
