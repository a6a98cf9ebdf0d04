# dbforge/config.py
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dbforge.errors import ConfigurationError

# Protocol A (container-only) and protocol B (container + data sources)
LEGACY_NOTION_VERSION = "2022-06-28"
DATA_SOURCES_NOTION_VERSION = "2025-09-03"

REQUIRED_SETTINGS = ("NOTION_API_KEY", "NOTION_PARENT_PAGE_ID", "GEMINI_API_KEY")


class Settings(BaseSettings):
    # Workspace API
    NOTION_API_KEY: Optional[str] = None
    NOTION_PARENT_PAGE_ID: Optional[str] = None
    NOTION_DATABASE_ID: Optional[str] = None  # default container for record routes
    NOTION_BASE_URL: str = "https://api.notion.com/v1"
    NOTION_API_VERSION: str = DATA_SOURCES_NOTION_VERSION
    NOTION_LEGACY_API_VERSION: str = LEGACY_NOTION_VERSION

    # Generative model (Gemini through its OpenAI-compatible endpoint)
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    MODEL_FALLBACKS: List[str] = ["gemini-2.0-flash", "gemini-1.5-pro", "gemini-1.5-flash"]
    LLM_TEMP: float = 0.2
    LLM_MAX_TOKENS: Optional[int] = None
    LLM_MAX_ATTEMPTS: int = 3

    # Listing cache / enrichment
    LISTING_CACHE_TTL_S: float = 300.0
    ENRICH_BATCH_SIZE: int = 5
    LISTING_MAX_PAGES: int = 50

    # Service Metadata
    SERVICE_NAME: str = "dbforge"
    PORT: int = 8020
    ENV: str = "local"
    LOG_LEVEL: str = "INFO"

    REQUEST_TIMEOUT_S: int = 30

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("MODEL_FALLBACKS")
    @classmethod
    def _at_least_one_model(cls, v: List[str]) -> List[str]:
        models = [m.strip() for m in v if m and m.strip()]
        if not models:
            raise ValueError("MODEL_FALLBACKS must name at least one model")
        return models

    @field_validator("ENRICH_BATCH_SIZE", "LISTING_MAX_PAGES", "LLM_MAX_ATTEMPTS")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    def missing_required(self, *names: str) -> List[str]:
        return [n for n in (names or REQUIRED_SETTINGS) if not getattr(self, n, None)]

    def require(self, *names: str) -> None:
        """Raise ConfigurationError listing every absent setting among *names*."""
        missing = self.missing_required(*names)
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}",
                missing=missing,
            )


def get_settings() -> Settings:
    return Settings()
