"""Runtime configuration for KINN RADAR.

Everything is read from the environment (prefix ``RADAR_``) or a ``.env``
file. The validator word lists live in :class:`RegionVocabulary` so a
deployment can widen the region or change the relevance vocabulary without a
code change, e.g. ``RADAR_VOCAB_REGION_ALLOW='["innsbruck","hall"]'``.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RegionVocabulary(BaseSettings):
    """Lowercase substring vocabularies used by the eligibility validator."""

    model_config = SettingsConfigDict(env_prefix="RADAR_VOCAB_", env_file=".env", extra="ignore")

    cost_terms: list[str] = Field(
        default_factory=lambda: [
            "€", "eur", "euro", "price", "preis", "ticket", "eintritt",
            "gebühr", "fee", "cost", "kosten", "beitrag",
        ]
    )
    free_terms: list[str] = Field(
        default_factory=lambda: [
            "kostenlos", "gratis", "free", "0€", "eintritt frei",
            "kostenfrei", "gebührenfrei",
        ]
    )
    region_allow: list[str] = Field(
        default_factory=lambda: [
            "innsbruck", "hall", "wattens", "kufstein", "wörgl", "schwaz",
            "telfs", "imst", "landeck", "lienz", "kitzbühel", "tirol", "tyrol",
        ]
    )
    region_deny: list[str] = Field(
        default_factory=lambda: [
            "wien", "vienna", "salzburg", "graz", "linz", "münchen", "munich",
            "zürich", "online-only", "webinar",
        ]
    )
    relevance_terms: list[str] = Field(
        default_factory=lambda: [
            "ai", "ki", "artificial intelligence", "künstliche intelligenz",
            "machine learning", "ml", "deep learning", "data science",
            "data analytics", "llm", "large language", "neural", "nlp",
            "computer vision", "gpt", "transformer",
        ]
    )
    private_terms: list[str] = Field(
        default_factory=lambda: [
            "internal", "intern", "employees only", "nur für mitarbeiter",
            "members only", "nur für mitglieder", "geschlossen", "private",
            "invitation only", "auf einladung",
        ]
    )


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="RADAR_", env_file=".env", extra="ignore")

    # Store
    redis_url: str = "redis://localhost:6379/0"

    # LLM collaborator (any OpenAI-compatible endpoint; Groq in production)
    llm_api_key: str | None = None
    llm_base_url: str | None = "https://api.groq.com/openai/v1"
    llm_model: str = "openai/gpt-oss-120b"
    llm_temperature: float = 0.1
    llm_max_tokens: int = 4000
    llm_timeout: float = 60.0

    # Source fetching
    fetch_timeout: float = 30.0
    user_agent: str = "Mozilla/5.0 (compatible; KINN-RADAR/1.0)"
    accept_language: str = "de-AT,de;q=0.9,en;q=0.8"
    content_max_chars: int = 20_000
    newsletter_max_chars: int = 30_000
    window_days_back: int = 90
    window_days_ahead: int = 365
    run_all_batch_size: int = 3

    # Newsletter webhook
    radar_alias: str = "radar"
    resend_api_key: str | None = None
    resend_base_url: str = "https://api.resend.com"

    # Notifications
    email_from: str = "KINN RADAR <radar@kinn.at>"
    notify_email: str | None = None

    # Spreadsheet sink
    google_service_account_key: str | None = None
    google_sheet_id: str | None = None

    log_level: str = "INFO"

    vocabulary: RegionVocabulary = Field(default_factory=RegionVocabulary)


@lru_cache
def get_settings() -> Settings:
    return Settings()
