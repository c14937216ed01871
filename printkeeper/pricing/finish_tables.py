"""
Finish classification tables.

Catalog data does not always list a printing's finishes. When it doesn't,
finish availability is inferred from the set code using three fixed lists
shipped in data/finish_tables.json:

- very_old_sets: printed before foils existed (non-foil only)
- nonfoil_only_sets: special non-foil-only products (playtest cards, The List)
- foil_only_sets: special foil-only products

Any other set defaults to both finishes. The same file holds the promo types
that count as special foil and the canonical basic land names.
"""

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

DATA_DIR = Path(__file__).parent.parent / "data"
FINISH_TABLES_PATH = DATA_DIR / "finish_tables.json"


@dataclass(frozen=True, slots=True)
class FinishTables:
    """Immutable finish classification data."""

    version: str
    very_old_sets: frozenset[str]
    nonfoil_only_sets: frozenset[str]
    foil_only_sets: frozenset[str]
    special_foil_promo_types: frozenset[str]
    basic_land_names: frozenset[str]

    def classify_set(self, set_code: str | None) -> tuple[bool, bool]:
        """
        Infer (has_nonfoil, has_foil) from a set code.

        Args:
            set_code: Set code in any case, or None

        Returns:
            Finish availability. Unknown or missing set codes allow both.
        """
        code = (set_code or "").lower()
        if code in self.very_old_sets or code in self.nonfoil_only_sets:
            return True, False
        if code in self.foil_only_sets:
            return False, True
        return True, True


def load_finish_tables(path: Path | None = None) -> FinishTables:
    """
    Load finish tables from JSON.

    Args:
        path: Path to JSON file. Defaults to data/finish_tables.json

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file is not valid JSON or misses a table
    """
    if path is None:
        path = FINISH_TABLES_PATH

    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Finish tables at {path} are corrupted: {e}") from e

    try:
        return FinishTables(
            version=str(raw["version"]),
            very_old_sets=frozenset(s.lower() for s in raw["very_old_sets"]),
            nonfoil_only_sets=frozenset(s.lower() for s in raw["nonfoil_only_sets"]),
            foil_only_sets=frozenset(s.lower() for s in raw["foil_only_sets"]),
            special_foil_promo_types=frozenset(raw["special_foil_promo_types"]),
            basic_land_names=frozenset(raw["basic_land_names"]),
        )
    except KeyError as e:
        raise ValueError(f"Finish tables at {path} missing table: {e.args[0]}") from e


@lru_cache(maxsize=1)
def get_finish_tables() -> FinishTables:
    """
    Get cached finish tables.

    Loaded once per process; the returned object is immutable.
    """
    return load_finish_tables()
