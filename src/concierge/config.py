"""Configuration models for the concierge."""

from __future__ import annotations

from datetime import date, datetime, timezone
from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ModelConfig(BaseModel):
    """Configures completion/embedding models and per-call client limits."""

    chat_model: str = "gpt-4o-mini"
    classifier_model: str = "gpt-4o-mini"
    temporal_model: str | None = None
    embedding_model: str = "text-embedding-3-small"
    answer_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    request_timeout_seconds: float = Field(default=30.0, gt=0.0)
    max_retries: int = Field(default=2, ge=0)

    @property
    def resolved_temporal_model(self) -> str:
        return self.temporal_model or self.classifier_model


class RetrievalConfig(BaseModel):
    """Configures DataVault retrieval and candidate-query expansion."""

    top_k: int = Field(default=4, ge=1)
    region_name: str = "Isle of Wight"
    region_places: list[str] = Field(
        default_factory=lambda: [
            "Cowes", "Newport", "Ryde", "Sandown", "Shanklin", "Ventnor",
            "Yarmouth", "Brighstone", "Freshwater", "Bembridge",
        ]
    )
    confidence_sample_size: int = Field(default=3, ge=1)
    max_web_anchors: int = Field(default=3, ge=0)


class PlannerConfig(BaseModel):
    """Configures the tool-selection thresholds."""

    confidence_threshold: int = Field(default=8, ge=1, le=10)
    geo_confidence_minimum: int = Field(default=7, ge=1, le=10)


class WebSearchConfig(BaseModel):
    """Configures the live web search backend (disabled by default)."""

    enabled: bool = False
    searx_url: str = "http://localhost:8080"
    timeout_seconds: float = Field(default=10.0, gt=0.0)
    max_results: int = Field(default=5, ge=1)


class TemporalConfig(BaseModel):
    """Reference date used to resolve relative temporal phrases."""

    reference_date: date | None = None

    def today(self) -> str:
        if self.reference_date is not None:
            return self.reference_date.isoformat()
        return datetime.now(timezone.utc).date().isoformat()


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CONCIERGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        populate_by_name=True,
    )

    debug: bool = False
    openai_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("CONCIERGE_OPENAI_API_KEY", "OPENAI_API_KEY"),
    )
    vector_store: str = Field(default="memory", pattern="^(memory|faiss)$")
    # JSON snapshot for `memory`, index folder for `faiss`; unset keeps the store in-process.
    vector_store_path: Path | None = None
    model: ModelConfig = ModelConfig()
    retrieval: RetrievalConfig = RetrievalConfig()
    planner: PlannerConfig = PlannerConfig()
    web_search: WebSearchConfig = WebSearchConfig()
    temporal: TemporalConfig = TemporalConfig()


@lru_cache
def get_settings() -> AppSettings:
    """Return cached settings instance."""
    return AppSettings()
