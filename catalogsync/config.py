from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from catalogsync.models.failure import FatalConfigError


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env")

    app_name: str = "CatalogSync"
    debug: bool = False

    database_url: str = "postgresql+asyncpg://localhost:5432/catalogsync"

    # Product-search provider. The token is never embedded in source.
    catalog_api_token: str = ""
    catalog_search_url: str = "https://www.pricecharting.com/api/products"
    catalog_platform: str = "trading-card"

    # Provider rate limit: minimum pause after every search call
    request_delay_ms: int = 2000
    max_attempts: int = 3
    retry_backoff_seconds: float = 5.0
    request_timeout_seconds: float = 30.0

    # Set matching. Older import scripts used 0.90; 0.85 is the agreed default.
    similarity_threshold: float = 0.85
    word_overlap_threshold: float = 0.6

    query_format: Literal["phrase", "dashed"] = "phrase"

    checkpoint_path: str = "reconcile-checkpoint.json"
    max_error_records: int = 100


settings = Settings()


def require_runtime_config(config: Settings) -> None:
    """
    Validate the settings a reconciliation run cannot start without.

    Raises:
        FatalConfigError: If credentials are missing or tuning values are invalid
    """
    missing = [
        name
        for name, value in (
            ("CATALOG_API_TOKEN", config.catalog_api_token),
            ("DATABASE_URL", config.database_url),
            ("CATALOG_SEARCH_URL", config.catalog_search_url),
        )
        if not value.strip()
    ]
    if missing:
        raise FatalConfigError(
            f"Missing required configuration: {', '.join(missing)}",
            detail="Set the variables in the environment or in .env",
        )

    if not 0.0 < config.similarity_threshold <= 1.0:
        raise FatalConfigError(
            f"similarity_threshold must be in (0, 1], got {config.similarity_threshold}"
        )
    if config.request_delay_ms < 0:
        raise FatalConfigError(f"request_delay_ms must be >= 0, got {config.request_delay_ms}")
    if config.max_attempts < 1:
        raise FatalConfigError(f"max_attempts must be >= 1, got {config.max_attempts}")


# =============================================================================
# SET MATCHING TABLES
# =============================================================================

# Subset keywords whose presence in a set name makes the keyword path decisive.
# A candidate must carry the keyword plus every anchor token of the target:
# its 4-digit year and whichever manufacturer, product-line and parent-brand
# tokens the target names.
SUBSET_KEYWORDS = ("what if", "autograph", "refractor", "parallel", "short print")

MANUFACTURER_TOKENS = ("upper deck", "topps", "panini", "fleer", "skybox")

PRODUCT_LINE_TOKENS = ("marvel", "platinum", "chrome", "ultra", "prizm")

# Parent product names a subset is printed under
PARENT_BRAND_TOKENS = ("masterpieces",)

# Whole-word tokens marking search hits that are not trading cards
NON_CARD_TOKENS = (
    "playstation",
    "xbox",
    "nintendo",
    "dvd",
    "blu ray",
    "figure",
    "funko",
    "toy",
    "video game",
)
