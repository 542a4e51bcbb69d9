"""Application settings."""

from functools import lru_cache
import os
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from adstudio.models import AdType, Language, ModelChoice

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "adstudio"
    app_env: str = "dev"
    app_debug: bool = False
    log_level: str = "INFO"

    default_language: Language = "zh"
    default_ad_type: AdType = "text_poster"
    default_model: ModelChoice = "veo3"

    spec_mode: str = "template"
    llm_model: str = "gemini-3-flash-preview"
    llm_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    llm_timeout_s: float = Field(default=30.0, ge=0.5)
    gemini_api_key: str = ""

    max_versions: int = Field(default=100, ge=1)
    max_attachments: int = Field(default=10, ge=0)
    max_prompt_chars: int = Field(default=500, ge=1)

    start_delay_max_s: float = Field(default=2.0, ge=0.0)
    tick_interval_s: float = Field(default=1.5, ge=0.0)
    initial_progress: int = Field(default=5, ge=0, le=99)
    progress_step_min: int = Field(default=2, ge=1)
    progress_step_max: int = Field(default=21, ge=1)
    failure_probability: float = Field(default=0.0, ge=0.0, le=1.0)
    export_delay_s: float = Field(default=2.0, ge=0.0)

    model_config = SettingsConfigDict(
        env_prefix="ADSTUDIO_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    @model_validator(mode="after")
    def _check_step_bounds(self) -> "Settings":
        if self.progress_step_max < self.progress_step_min:
            raise ValueError("progress_step_max must be >= progress_step_min")
        return self

    def resolved_gemini_api_key(self) -> str:
        return self.gemini_api_key or os.getenv("GEMINI_API_KEY", "") or os.getenv("API_KEY", "")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
