from __future__ import annotations

from pydantic import ConfigDict
from pydantic_settings import BaseSettings

DEFAULT_TOP_REGIONS = ["IN", "RU", "US", "DE", "CN", "FR", "ES", "NL", "GB", "PL"]
DEFAULT_OTHER_REGIONS = [
    "IT", "AT", "CH", "CZ", "HU", "SE", "NO", "DK", "FI", "BE",
    "PT", "GR", "TR", "RS", "HR", "SI", "SK", "RO", "BG", "UA",
    "BY", "LT", "LV", "EE", "GE", "AM", "AZ", "IL", "AR", "BR",
    "MX", "CA", "AU", "NZ", "JP", "KR", "PH", "ID", "MY", "SG",
    "TH", "VN", "ZA", "EG", "MA",
]  # fmt: skip


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "TourneyRadar Ingest"
    app_version: str = "0.1.0"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str | None = None
    db_pool_min_size: int = 1
    db_pool_max_size: int = 5
    db_auto_create_schema: bool = False

    # Trigger
    cron_secret: str | None = None

    # Geocoding providers
    google_maps_api_key: str | None = None
    google_geocoding_base_url: str = "https://maps.googleapis.com"
    nominatim_base_url: str = "https://nominatim.openstreetmap.org"
    nominatim_user_agent: str = "TourneyRadar-Ingest/0.1 (ops@tourneyradar.example)"
    nominatim_min_interval_seconds: float = 1.0
    geocode_cache_persist: bool = True
    resolver_tiers: list[str] = ["exact", "city-cache", "geocoder", "region-centroid"]

    # Crawler
    crawler_base_url: str = "https://chess-results.com"
    crawler_user_agent: str = "Mozilla/5.0 (compatible; TourneyRadar-Ingest/0.1)"
    crawler_page_delay_seconds: float = 0.2
    crawler_max_consecutive_errors: int = 3
    crawler_retry_attempts: int = 3
    http_timeout_seconds: float = 15.0

    # Orchestrator
    ingest_source: str = "chess-results"
    ingest_top_regions: list[str] = DEFAULT_TOP_REGIONS
    ingest_other_regions: list[str] = DEFAULT_OTHER_REGIONS
    ingest_top_target: int = 100
    ingest_other_target: int = 50
    ingest_concurrency: int = 4
    ingest_run_budget_seconds: float = 1800.0

    # Sentry
    sentry_dsn: str | None = None

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Metrics
    metrics_backend: str = "stdout"
    metrics_namespace: str = "ingest"
    metrics_disable: bool = False
    metrics_sample_rate: float = 1.0
    metrics_statsd_host: str = "127.0.0.1"
    metrics_statsd_port: int = 8125

    @property
    def region_targets(self) -> dict[str, int]:
        """Return the configured per-region target counts, top tier winning on overlap."""
        targets = {code.upper(): self.ingest_other_target for code in self.ingest_other_regions}
        targets.update({code.upper(): self.ingest_top_target for code in self.ingest_top_regions})
        return targets

    model_config = ConfigDict(env_file=".env", case_sensitive=False)


settings = Settings()
