from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="PRINTKEEPER_")

    app_name: str = "PrintKeeper"
    debug: bool = False

    # Blob storage for the printing cache and preference ledger
    storage_url: str = "sqlite:///printkeeper.db"

    catalog_base_url: str = "https://api.scryfall.com"
    catalog_user_agent: str = "PrintKeeper/1.0"
    catalog_timeout_seconds: float = 10.0
    catalog_max_pages: int = 5

    cache_expiry_hours: float = 24.0
    cache_max_entries: int = 1000

    # Optional byte cap on each stored blob (None = backend decides)
    storage_quota_bytes: int | None = None


settings = Settings()


# =============================================================================
# PRINTING CACHE LIMITS
# =============================================================================

# Fraction of max_entries evicted (oldest first) when the cache is full
CACHE_EVICTION_FRACTION = 0.2

# Persisted blob version; a mismatch on load resets the store
CACHE_STORAGE_KEY = "printingsCache"
CACHE_VERSION = "1.0"

PREFERENCES_STORAGE_KEY = "printingPreferences"
PREFERENCES_VERSION = "1.0"


# =============================================================================
# CACHE WARM-UP LIMITS
# =============================================================================

# Cards fetched in parallel within one batch
WARM_UP_BATCH_SIZE = 6

# Batches in flight at once (hard cap: batch size x concurrent batches)
WARM_UP_CONCURRENT_BATCHES = 2

# Pause between batch groups, in seconds
WARM_UP_BATCH_DELAY_SECONDS = 0.05

# Printings kept per card when warming (full lists come from the coordinator)
WARM_UP_PRINTING_LIMIT = 20
