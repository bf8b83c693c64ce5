"""Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_version: str = "0.1.0"
    debug: bool = False

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Upstream HTTP
    request_timeout_seconds: float = 30.0

    # Category tree cache
    category_tree_ttl_seconds: float = 12 * 60 * 60
    attribute_ttl_seconds: float | None = None  # None = same as tree TTL

    # Match cache and matcher
    match_cache_ttl_seconds: float = 30 * 60
    match_cache_max_entries: int = 100
    match_min_score: float = 0.05
    match_default_top_n: int = 5
    search_default_limit: int = 30

    # Trendyol
    trendyol_enabled: bool = True
    trendyol_base_url: str = "https://apigw.trendyol.com"
    trendyol_api_key: str = ""
    trendyol_api_secret: str = ""
    trendyol_user_agent: str = "marketcat"
    trendyol_tree_ttl_seconds: float | None = None

    # Hepsiburada
    hepsiburada_enabled: bool = True
    hepsiburada_base_url: str = "https://mpop.hepsiburada.com"
    hepsiburada_username: str = ""
    hepsiburada_password: str = ""
    hepsiburada_user_agent: str = "marketcat"
    hepsiburada_page_size: int = 1000
    hepsiburada_tree_ttl_seconds: float | None = None

    # Temu
    temu_enabled: bool = True
    temu_base_url: str = "https://openapi-b-eu.temu.com/openapi/router"
    temu_app_key: str = ""
    temu_app_secret: str = ""
    temu_access_token: str = ""
    temu_max_category_requests: int = 500
    temu_concurrent_requests: int = 10
    temu_tree_ttl_seconds: float | None = None

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    def tree_ttl_for(self, marketplace: str) -> float:
        """Get the category tree TTL for a marketplace.

        Args:
            marketplace: Marketplace name (e.g. "trendyol").

        Returns:
            Per-marketplace override if set, global default otherwise.
        """
        override = getattr(self, f"{marketplace}_tree_ttl_seconds", None)
        return override if override is not None else self.category_tree_ttl_seconds

    def attribute_ttl_for(self, marketplace: str) -> float:
        """Get the attribute cache TTL for a marketplace."""
        if self.attribute_ttl_seconds is not None:
            return self.attribute_ttl_seconds
        return self.tree_ttl_for(marketplace)


settings = Settings()
