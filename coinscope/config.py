from pydantic_settings import BaseSettings


class ConfigurationError(RuntimeError):
    """Raised when a run is started without the credentials it needs."""


class Settings(BaseSettings):
    # OpenRouter (generation)
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    expansion_model: str = "openai/gpt-4o"
    synthesis_model: str = "google/gemini-2.5-flash"
    expansion_temperature: float = 0.4
    synthesis_temperature: float = 0.3
    synthesis_max_tokens: int = 4096

    # Search provider
    search_provider: str = "exa"  # exa | tavily | brave
    search_fallback_provider: str = ""  # optional: exa | tavily | brave
    exa_api_key: str = ""
    tavily_api_key: str = ""
    brave_api_key: str = ""
    search_timeout_s: float = 30.0

    # Market data / asset catalog
    market_data_provider: str = "coingecko"  # coingecko | none
    coingecko_api_key: str = ""  # pro key, optional
    coingecko_max_pages: int = 4
    coingecko_timeout_s: float = 20.0
    catalog_min_market_cap: float = 1_000_000
    catalog_min_volume: float = 10_000
    catalog_ttl_seconds: int = 6 * 3600
    asset_resolver: str = "auto"  # auto | pattern | catalog

    # Scraping
    scrape_max_parallel: int = 8
    scrape_static_timeout_s: float = 15.0
    scrape_browser_timeout_ms: int = 15000
    scrape_max_content_chars: int = 8000

    # Query expansion
    max_synonyms: int = 12

    # Context store
    context_store: str = "file"  # none | memory | file
    context_store_path: str = "data/context_store.json"
    context_store_max_documents: int = 200

    # App
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def search_api_keys(self) -> dict[str, str]:
        return {
            "exa": self.exa_api_key,
            "tavily": self.tavily_api_key,
            "brave": self.brave_api_key,
        }

    def validate_for_run(self) -> None:
        """Fail fast when the configured providers have no credentials."""
        missing: list[str] = []
        if not self.openrouter_api_key.strip():
            missing.append("OPENROUTER_API_KEY")

        provider = self.search_provider.lower().strip()
        if provider not in self.search_api_keys:
            raise ConfigurationError(f"Unsupported SEARCH_PROVIDER: {self.search_provider}")
        if not self.search_api_keys[provider].strip():
            missing.append(f"{provider.upper()}_API_KEY")

        if missing:
            raise ConfigurationError(
                "Missing required configuration: " + ", ".join(missing)
            )


settings = Settings()
