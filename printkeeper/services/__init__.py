"""
PrintKeeper services.

Stateful collaborators around the pricing engine: the printing cache, the
preference store, the catalog client and the selection coordinator.
"""

from printkeeper.services.catalog_client import (
    CatalogClient,
    CatalogError,
    CatalogNotFoundError,
    CatalogTimeoutError,
    CatalogUnavailableError,
)
from printkeeper.services.preference_store import (
    PreferenceEntry,
    PreferencePatterns,
    PreferenceStore,
)
from printkeeper.services.printing_cache import (
    CacheEntry,
    CacheStats,
    CacheValidation,
    PrintingCache,
    WarmUpReport,
    is_well_formed_printing,
)
from printkeeper.services.printing_selection import (
    CardView,
    PrintingSelectionCoordinator,
    SelectionOutcome,
    SelectionSource,
)

__all__ = [
    # Catalog boundary
    "CatalogClient",
    "CatalogError",
    "CatalogNotFoundError",
    "CatalogTimeoutError",
    "CatalogUnavailableError",
    # Preferences
    "PreferenceEntry",
    "PreferencePatterns",
    "PreferenceStore",
    # Printing cache
    "CacheEntry",
    "CacheStats",
    "CacheValidation",
    "PrintingCache",
    "WarmUpReport",
    "is_well_formed_printing",
    # Coordinator
    "CardView",
    "PrintingSelectionCoordinator",
    "SelectionOutcome",
    "SelectionSource",
]
