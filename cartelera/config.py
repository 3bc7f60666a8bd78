from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import Field, AliasChoices, HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class MongoDBSettings(BaseSettings):
    """MongoDB connection and collection settings."""
    uri: Optional[str] = Field(None, validation_alias=AliasChoices('MONGODB_URI', 'MONGO_URI'))
    database: str = Field("cartelera", validation_alias=AliasChoices('MONGODB_DATABASE', 'MONGO_DATABASE'))
    events_collection: str = Field("events_v2", validation_alias=AliasChoices('MONGODB_EVENTS_COLLECTION', 'MONGO_EVENTS_COLLECTION'))
    server_selection_timeout_ms: int = 10000

    model_config = SettingsConfigDict(
        env_prefix='MONGODB_',
        extra='ignore',
        populate_by_name=True
    )


class GlobalScraperSettings(BaseSettings):
    """Browser session and pacing settings shared by every scraper."""
    user_agents: List[str] = Field(default_factory=lambda: [
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2.1 Safari/605.1.15",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    ])
    default_request_timeout_ms: int = Field(60000, validation_alias=AliasChoices('SCRAPER_GLOBAL_DEFAULT_REQUEST_TIMEOUT_MS', 'DEFAULT_REQUEST_TIMEOUT_MS'))
    min_delay_ms: int = Field(2000, validation_alias=AliasChoices('SCRAPER_GLOBAL_MIN_DELAY_MS', 'MIN_DELAY_MS'))
    max_delay_ms: int = Field(5000, validation_alias=AliasChoices('SCRAPER_GLOBAL_MAX_DELAY_MS', 'MAX_DELAY_MS'))
    default_headless_browser: bool = Field(True, validation_alias=AliasChoices('SCRAPER_GLOBAL_DEFAULT_HEADLESS_BROWSER', 'HEADLESS'))
    navigation_retries: int = 3
    challenge_timeout_ms: int = 30000
    viewport_width: int = 1920
    viewport_height: int = 1080
    locale: str = "es-CL"
    timezone_id: str = "America/Santiago"
    latitude: float = -33.4489
    longitude: float = -70.6693

    model_config = SettingsConfigDict(
        env_prefix='SCRAPER_GLOBAL_',
        extra='ignore',
        populate_by_name=True
    )


class FileOutputSettings(BaseSettings):
    """Settings for controlling file-based outputs."""
    base_output_directory: Path = Field(Path("output_data"), validation_alias=AliasChoices('FILE_OUTPUT_BASE_OUTPUT_DIRECTORY', 'BASE_OUTPUT_DIRECTORY'))
    enable_json_output: bool = Field(False, validation_alias=AliasChoices('FILE_OUTPUT_ENABLE_JSON_OUTPUT', 'ENABLE_JSON_OUTPUT'))
    log_output_directory: Path = Field(Path("scraper_logs"), validation_alias=AliasChoices('FILE_OUTPUT_LOG_OUTPUT_DIRECTORY', 'LOG_OUTPUT_DIRECTORY'))
    enable_file_logging: bool = Field(True, validation_alias=AliasChoices('FILE_OUTPUT_ENABLE_FILE_LOGGING', 'ENABLE_FILE_LOGGING'))

    model_config = SettingsConfigDict(
        env_prefix='FILE_OUTPUT_',
        extra='ignore',
        populate_by_name=True
    )


class SentrySettings(BaseSettings):
    """Configuration for Sentry error tracking."""
    dsn: Optional[HttpUrl] = Field(None, validation_alias=AliasChoices('SENTRY_DSN'))
    environment: Optional[str] = Field(None, description="Overrides the app environment for Sentry if set.")
    traces_sample_rate: float = Field(0.0, ge=0.0, le=1.0)

    model_config = SettingsConfigDict(
        env_prefix='SENTRY_',
        extra='ignore',
        populate_by_name=True
    )


# --- Scraper-Specific Settings Models ---

class PuntoTicketSettings(BaseSettings):
    """Configuration specific to the PuntoTicket scraper."""
    source: str = "puntoticket"
    base_url: str = "https://www.puntoticket.com"
    all_events_path: str = "/todos"
    category_paths: List[str] = Field(default_factory=lambda: ['/musica', '/deportes', '/teatro', '/familia', '/especiales'])
    event_card_selector: str = '.event-card, .evento-item, article.event, [class*="event-card"], [class*="evento"]'
    event_link_selector: str = 'a[href*="/evento/"], a[href*="/event/"]'
    country_selectors: List[str] = Field(default_factory=lambda: [
        'a[href*="chile"]',
        '[data-country="cl"]',
        '[data-country="chile"]',
        'img[alt*="Chile"]',
        'button:has-text("Chile")',
        'a:has-text("Chile")',
    ])
    max_scrolls: int = Field(100, description="Scroll cap for the main listing page.")
    category_max_scrolls: int = Field(50, description="Scroll cap for each category page.")
    scroll_delay_ms: int = 1500
    detail_timeout_ms: int = 45000
    concurrency: int = Field(1, ge=1)
    task_retries: int = Field(2, ge=0, description="Extra attempts per event page after the first failure.")
    task_timeout_ms: int = Field(180000, ge=0, description="Limit for one extraction attempt; 0 disables it.")
    post_task_min_delay_ms: int = 2000
    post_task_max_delay_ms: int = 4000
    scrape_version: str = "2.1"

    model_config = SettingsConfigDict(
        env_prefix='PUNTOTICKET_',
        extra='ignore'
    )

    @property
    def post_task_delay_range_s(self) -> Tuple[float, float]:
        return self.post_task_min_delay_ms / 1000.0, self.post_task_max_delay_ms / 1000.0

    @property
    def task_timeout_s(self) -> Optional[float]:
        return self.task_timeout_ms / 1000.0 if self.task_timeout_ms else None


class AllScraperSpecificSettings(BaseSettings):
    """Container for all scraper-specific configurations."""
    puntoticket: PuntoTicketSettings = PuntoTicketSettings()

    model_config = SettingsConfigDict(extra='ignore')


class Settings(BaseSettings):
    """Main application settings."""
    environment: str = Field("development", validation_alias=AliasChoices('APP_ENV', 'ENVIRONMENT'))
    log_level: str = Field("INFO", validation_alias=AliasChoices('APP_LOG_LEVEL', 'LOG_LEVEL'))
    site_timezone: str = Field("America/Santiago", validation_alias=AliasChoices('SITE_TIMEZONE'))

    mongodb: MongoDBSettings = MongoDBSettings()
    scraper_globals: GlobalScraperSettings = GlobalScraperSettings()
    file_outputs: FileOutputSettings = FileOutputSettings()
    sentry: SentrySettings = SentrySettings()

    scrapers_specific: AllScraperSpecificSettings = AllScraperSpecificSettings()

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        env_nested_delimiter='__',
        extra='ignore',
        populate_by_name=True
    )


settings = Settings()
