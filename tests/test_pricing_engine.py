"""
Tests for the pricing resolution engine.

INVARIANTS:
- Never raises; malformed input degrades to price=None, is_valid=False
- Same (record, options) always gives the same result
- Resolution tiers are tried strictly in order
"""

from typing import Any

import pytest

from printkeeper.pricing.engine import (
    PriceSource,
    ResolutionOptions,
    price_for_printing,
    resolve_price,
)
from printkeeper.pricing.finishes import FinishKind
from printkeeper.pricing.records import RecordShape


@pytest.fixture
def stored_item() -> dict[str, Any]:
    """A collection item with both a stored price and catalog prices."""
    return {
        "name": "Sol Ring",
        "foil": False,
        "modalPrice": "2.00",
        "scryfall_json": {
            "id": "sol-0001",
            "name": "Sol Ring",
            "set": "c21",
            "type_line": "Artifact",
            "finishes": ["nonfoil", "foil"],
            "prices": {"usd": "1.25", "usd_foil": "3.00"},
        },
    }


class TestEndToEndScenarios:
    def test_basic_land_without_prices(self) -> None:
        result = resolve_price(
            {
                "name": "Forest",
                "scryfall_json": {"type_line": "Basic Land — Forest", "prices": {}},
                "foil": False,
            },
            ResolutionOptions(fallback_price=None),
        )

        assert result.price == "0.10"
        assert result.source == PriceSource.BASIC_LAND_FALLBACK

    def test_explicit_foil_uses_foil_price(self) -> None:
        result = resolve_price(
            {
                "name": "Counterspell",
                "prices": {"usd": "15.99", "usd_foil": "45.00"},
                "foil": True,
                "finishes": ["nonfoil", "foil"],
            }
        )

        assert result.price == "45.00"
        assert result.source == PriceSource.FOIL
        assert result.finish.kind == FinishKind.FOIL

    def test_priceless_instant_gets_generic_fallback(self) -> None:
        result = resolve_price({"name": "Opt", "prices": {}, "type_line": "Instant"})

        assert result.price == "0.05"
        assert result.is_valid
        assert result.source == PriceSource.GENERIC_FALLBACK
        assert result.source.is_estimate
        assert not result.source.is_catalog

    def test_display_formatting(self) -> None:
        result = resolve_price({"name": "Opt", "prices": {"usd": "3"}})
        assert result.display == "$3.00"


class TestStoredOverride:
    def test_stored_wins_when_preferred(self, stored_item: dict[str, Any]) -> None:
        result = resolve_price(stored_item, ResolutionOptions(prefer_stored_override=True))

        assert result.price == "2.00"
        assert result.source == PriceSource.STORED
        assert result.metadata.was_stored

    def test_catalog_wins_when_not_preferred(self, stored_item: dict[str, Any]) -> None:
        result = resolve_price(stored_item, ResolutionOptions(prefer_stored_override=False))

        assert result.price == "1.25"
        assert result.source == PriceSource.NONFOIL

    def test_invalid_stored_price_is_skipped(self, stored_item: dict[str, Any]) -> None:
        stored_item["modalPrice"] = "9999"
        result = resolve_price(stored_item)

        assert result.price == "1.25"
        assert result.source == PriceSource.NONFOIL


class TestFinishAwareChain:
    def test_foil_only_overrides_explicit_false(self) -> None:
        result = resolve_price(
            {
                "name": "Opt",
                "finishes": ["foil"],
                "foil": False,
                "prices": {"usd": "0.50", "usd_foil": "2.50"},
            }
        )

        assert result.price == "2.50"
        assert result.source == PriceSource.FOIL_ONLY
        assert result.finish.is_foil

    def test_nonfoil_uses_base_price_only(self) -> None:
        result = resolve_price(
            {"name": "Opt", "finishes": ["nonfoil", "foil"], "prices": {"usd_foil": "2.50"}}
        )
        assert result.source != PriceSource.FOIL
        assert result.price == "0.05"

    def test_foil_falls_back_to_base_price(self) -> None:
        result = resolve_price(
            {"name": "Opt", "foil": True, "prices": {"usd": "0.50", "usd_foil": None}}
        )

        assert result.price == "0.50"
        assert result.source == PriceSource.FOIL

    def test_etched_chain(self) -> None:
        record = {
            "name": "Opt",
            "foil": True,
            "finishes": ["nonfoil", "etched"],
            "prices": {"usd": "0.50", "usd_foil": "1.00", "usd_etched": "3.00"},
        }
        assert resolve_price(record).price == "3.00"
        assert resolve_price(record).source == PriceSource.FOIL_ETCHED

        record["prices"] = {"usd": "0.50", "usd_foil": "1.00", "usd_etched": "bad"}
        assert resolve_price(record).price == "1.00"

    def test_foil_only_etched_tag(self) -> None:
        result = resolve_price(
            {"name": "Opt", "finishes": ["etched"], "prices": {"usd_etched": "4.00"}}
        )

        assert result.price == "4.00"
        assert result.source == PriceSource.FOIL_ONLY_ETCHED

    def test_special_foil_tags(self) -> None:
        explicit = resolve_price(
            {
                "name": "Opt",
                "foil": True,
                "finishes": ["nonfoil", "foil"],
                "promo_types": ["surgefoil"],
                "prices": {"usd_foil": "6.00"},
            }
        )
        foil_only = resolve_price(
            {
                "name": "Opt",
                "finishes": ["foil"],
                "promo_types": ["rainbow"],
                "prices": {"usd_foil": "6.00"},
            }
        )

        assert explicit.source == PriceSource.FOIL_SPECIAL
        assert foil_only.source == PriceSource.FOIL_ONLY_SPECIAL

    def test_foil_only_inferred_from_set(self) -> None:
        result = resolve_price({"name": "Opt", "set": "p30a", "prices": {"usd_foil": "8.00"}})

        assert result.price == "8.00"
        assert result.finish.availability.inferred

    @pytest.mark.parametrize("flag", ["foil", "isFoil"])
    def test_foil_flag_on_card_wrapper(self, flag: str) -> None:
        record = {
            "card": {
                "name": "Lightning Bolt",
                flag: True,
                "scryfall_json": {
                    "finishes": ["nonfoil", "foil"],
                    "prices": {"usd": "1.00", "usd_foil": "5.00"},
                },
            }
        }

        result = resolve_price(record)

        assert result.finish.explicit_foil
        assert result.price == "5.00"
        assert result.source == PriceSource.FOIL

    def test_foil_flag_on_nested_card_of_modal_selection(self) -> None:
        record = {
            "cardObj": {
                "card": {
                    "name": "Lightning Bolt",
                    "isFoil": True,
                    "scryfall_json": {
                        "finishes": ["nonfoil", "foil"],
                        "prices": {"usd": "1.00", "usd_foil": "5.00"},
                    },
                }
            }
        }

        assert resolve_price(record).price == "5.00"


class TestFallbackTiers:
    def test_legacy_field(self) -> None:
        result = resolve_price({"name": "Opt", "price": "0.75"})

        assert result.price == "0.75"
        assert result.source == PriceSource.LEGACY_FIELD

    def test_basic_land_by_name(self) -> None:
        result = resolve_price({"name": "Snow-Covered Island", "prices": {}})
        assert result.source == PriceSource.BASIC_LAND_FALLBACK

    def test_token(self) -> None:
        result = resolve_price({"name": "Soldier", "type_line": "Token Creature — Soldier"})

        assert result.price == "0.00"
        assert result.source == PriceSource.TOKEN_FALLBACK
        assert result.is_valid

    def test_caller_fallback_for_invalid_record(self) -> None:
        result = resolve_price(None, ResolutionOptions(fallback_price="1.00"))

        assert result.price == "1.00"
        assert result.source == PriceSource.CALLER_FALLBACK
        assert not result.is_valid


class TestMalformedInput:
    @pytest.mark.parametrize("record", [None, 42, "Forest", [], {}, {"unrelated": True}])
    def test_degrades_without_raising(self, record: object) -> None:
        result = resolve_price(record)

        assert result.price is None
        assert result.source == PriceSource.INVALID_RECORD
        assert not result.is_valid
        assert result.display == "N/A"

    def test_garbage_price_table(self) -> None:
        result = resolve_price({"name": "Opt", "prices": {"usd": "abc", "usd_foil": -3}})

        assert result.source == PriceSource.GENERIC_FALLBACK
        assert result.metadata.available_prices == ()


class TestDeterminism:
    def test_repeated_calls_match(self, stored_item: dict[str, Any]) -> None:
        options = ResolutionOptions(prefer_stored_override=False)
        assert resolve_price(stored_item, options) == resolve_price(stored_item, options)

    def test_input_is_not_mutated(self, stored_item: dict[str, Any]) -> None:
        before = repr(stored_item)
        resolve_price(stored_item)
        assert repr(stored_item) == before


class TestMetadata:
    def test_metadata_describes_record(self, stored_item: dict[str, Any]) -> None:
        metadata = resolve_price(stored_item).metadata

        assert metadata.card_name == "Sol Ring"
        assert metadata.record_shape == RecordShape.STORED_COLLECTION_ITEM
        assert metadata.catalog_id == "sol-0001"
        assert metadata.available_prices == ("usd", "usd_foil")


class TestPriceForPrinting:
    def test_user_foil_choice_replaces_catalog_flag(self) -> None:
        printing = {
            "id": "p-1",
            "name": "Opt",
            "foil": True,
            "nonfoil": True,
            "finishes": ["nonfoil", "foil"],
            "prices": {"usd": "0.10", "usd_foil": "0.90"},
        }

        assert price_for_printing(printing, foil=False).price == "0.10"
        assert price_for_printing(printing, foil=True).price == "0.90"

    def test_ignores_stored_override(self) -> None:
        printing = {"id": "p-1", "name": "Opt", "modalPrice": "5.00", "prices": {"usd": "0.10"}}
        assert price_for_printing(printing, foil=False).price == "0.10"
