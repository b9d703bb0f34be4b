"""
Application configuration using pydantic-settings.

Loads configuration from environment variables with sensible defaults.
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Structured extraction (OpenAI)
    openai_api_key: Optional[str] = None
    structured_model: str = "gpt-4o"
    rent_roll_model: str = "gpt-4o-mini"
    structured_max_chars: int = 8000

    # OCR Settings
    ocr_min_text_chars: int = 100
    tesseract_cmd: Optional[str] = None

    # Category mapping
    category_config_path: Optional[Path] = None
    embedding_model: str = "all-MiniLM-L6-v2"
    embeddings_path: Path = Path("./data/label_embeddings.pkl")

    # Pipeline
    max_concurrency: int = 4
    max_upload_size_mb: int = 50

    # Application
    debug: bool = False
    log_level: str = "INFO"

    @property
    def max_upload_size_bytes(self) -> int:
        """Get maximum upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024

    @property
    def structured_extraction_enabled(self) -> bool:
        return bool(self.openai_api_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
