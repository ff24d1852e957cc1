"""Global configuration management using pydantic-settings.

This module implements the 12-factor app methodology for configuration,
loading values from environment variables with strict type validation.
The Singleton pattern ensures consistent configuration state across the application.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BLOCKED_RESOURCE_TYPES = [
    "image",
    "font",
    "stylesheet",
    "media",
    "texttrack",
    "fetch",
    "eventsource",
    "websocket",
    "manifest",
    "other",
]

DEFAULT_BLOCKED_DOMAINS = ["google-analytics.com", "doubleclick.net"]


class GlobalConfig(BaseSettings):
    """Centralized configuration with environment variable binding.

    All configuration values are loaded from environment variables,
    with sensible defaults for development. Production deployments
    should override these via .env or environment injection.

    Attributes:
        app_name: Application identifier for logging.
        environment: Deployment environment (development/staging/production).
        debug: Enable verbose debugging output.
        headless: Run Chromium without a window.
        chrome_executable_path: Chromium binary used in production.
        log_level: Minimum log level for output filtering.
        log_dir: Directory path for structured JSON log files.
        mongodb_url: Document store connection string (required at startup).
        database_name: Database holding the price and report collections.
        target_url_template: Data center URL with {entity_id} and {grade}.
        value_selector: CSS selector of the element holding the price.
        readiness_attribute: Attribute that must be non-empty before extraction.
        readiness_timeout_ms: Upper bound of the readiness poll.
        max_concurrent_tasks: Semaphore limit for in-flight extraction units.
        grouping: Pool unit granularity (one pair or one entity per slot).
        failure_policy: Whether failed extractions are dropped or stored.
        error_marker: Price string stored for failures under the record policy.
        exclusion_list_path: JSON array of player ids never processed.
        campaign_seasons: Season selectors searched by the default campaign.
        campaign_grades: Enhancement grades collected per player.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Metadata
    app_name: str = Field(default="PlayerValue-Pro", description="Application identifier")
    environment: Literal["development", "staging", "production", "test"] = Field(
        default="development", description="Deployment environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    # Browser Configuration
    headless: bool = Field(default=True, description="Run browser in headless mode")
    chrome_executable_path: str = Field(
        default="/usr/bin/google-chrome-stable",
        description="Chromium executable used when environment is production",
    )
    request_timeout_ms: int = Field(
        default=30000, ge=1000, le=120000, description="Navigation timeout in milliseconds"
    )

    # Logging Configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Minimum log level"
    )
    log_dir: Path = Field(default=Path("logs"), description="Log output directory")
    log_rotation: str = Field(default="1 week", description="Log rotation interval")
    log_retention: str = Field(default="1 month", description="Log retention period")

    # Document Store
    mongodb_url: str | None = Field(default=None, description="MongoDB connection string")
    database_name: str = Field(default="fconline", description="Database name")
    price_collection: str = Field(default="prices", description="Price documents")
    report_collection: str = Field(default="playerreports", description="Player reports")
    season_image_collection: str = Field(default="seasonids", description="Season images")

    # Target Configuration
    target_url_template: str = Field(
        default=(
            "https://fconline.nexon.com/DataCenter/PlayerInfo"
            "?spid={entity_id}&n1Strong={grade}"
        ),
        description="Valuation page URL template",
    )
    value_selector: str = Field(default=".txt strong", description="Price element selector")
    readiness_attribute: str = Field(
        default="title", description="Attribute populated once the price is rendered"
    )
    readiness_timeout_ms: int = Field(
        default=80000, ge=1000, le=600000, description="Readiness poll upper bound"
    )

    # Request Filtering
    blocked_resource_types: list[str] = Field(
        default_factory=lambda: list(DEFAULT_BLOCKED_RESOURCE_TYPES),
        description="Resource categories aborted before they hit the network",
    )
    blocked_domains: list[str] = Field(
        default_factory=lambda: list(DEFAULT_BLOCKED_DOMAINS),
        description="Hosts aborted regardless of resource category",
    )

    # Orchestration
    max_concurrent_tasks: int = Field(
        default=10, ge=1, le=50, description="Async semaphore limit"
    )
    grouping: Literal["grade", "entity"] = Field(
        default="grade", description="One pool slot per (player, grade) or per player"
    )
    failure_policy: Literal["drop", "record"] = Field(
        default="drop", description="Drop failed extractions or store the error marker"
    )
    error_marker: str = Field(default="ERROR", min_length=1, description="Stored failure value")
    error_ratio_alert_threshold: float = Field(
        default=0.30, ge=0.0, le=1.0, description="Error ratio that triggers an alert log"
    )

    # Query Builder
    query_row_limit: int = Field(default=10000, ge=1, description="Rows per season query")
    name_pattern: str = Field(default="", description="Player name regex (empty = all)")

    # Campaign
    campaign_seasons: list[int] = Field(default_factory=lambda: [256])
    campaign_grades: list[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5, 6, 7, 8])
    campaign_min_rating: int = Field(default=0, ge=0)
    campaign_split_by_season: bool = Field(
        default=False, description="Query, extract and write each season as its own batch"
    )

    # Exclusions
    exclusion_list_path: Path = Field(
        default=Path("seed/player_restrictions.json"),
        description="JSON array of player ids never processed",
    )

    # Output Configuration
    output_dir: Path = Field(default=Path("output"), description="Report output directory")
    generate_reports: bool = Field(default=True, description="Write Excel/HTML reports")

    @field_validator("log_dir", "output_dir", "exclusion_list_path", mode="before")
    @classmethod
    def ensure_path(cls, value: str | Path) -> Path:
        """Convert string paths to Path objects."""
        return Path(value) if isinstance(value, str) else value

    @field_validator("target_url_template")
    @classmethod
    def validate_template(cls, value: str) -> str:
        """Require both placeholders so every (player, grade) gets its own URL."""
        for placeholder in ("{entity_id}", "{grade}"):
            if placeholder not in value:
                raise ValueError(f"target_url_template must contain {placeholder}")
        return value

    @field_validator("campaign_grades")
    @classmethod
    def validate_grades(cls, value: list[int]) -> list[int]:
        """Grades are enhancement tiers 1-8."""
        for grade in value:
            if not 1 <= grade <= 8:
                raise ValueError(f"Grade {grade} outside 1-8")
        return value

    @property
    def executable_path(self) -> str | None:
        """Chromium binary to launch; None selects the Playwright bundle."""
        if self.environment == "production":
            return self.chrome_executable_path
        return None


@lru_cache(maxsize=1)
def get_config() -> GlobalConfig:
    """Retrieve the singleton GlobalConfig instance.

    Uses LRU cache to ensure single instantiation across the application lifecycle.

    Returns:
        GlobalConfig: The validated configuration instance.
    """
    return GlobalConfig()
