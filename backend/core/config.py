"""
Application configuration management
"""

from typing import Annotated, List, Optional
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from pydantic import field_validator


class Settings(BaseSettings):
    """Application settings"""

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Service identity
    PROJECT_NAME: str = "Neurolyzer Skin Analyzer"
    SERVICE_NAME: str = "neurolyzer-skin-analyzer"
    VERSION: str = "2.1.0"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3050

    # CORS Settings
    CORS_ORIGINS: Annotated[List[str], NoDecode] = [
        "http://localhost:3000",
        "http://localhost:3050",
    ]

    # Inference service (Gemini)
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-2.0-flash-exp"
    GEMINI_API_BASE: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_TEMPERATURE: float = 0.3
    GEMINI_MAX_OUTPUT_TOKENS: int = 4096
    ANALYSIS_TIMEOUT_SECONDS: float = 60.0

    # File Upload Settings
    MAX_FILE_SIZE: int = 15 * 1024 * 1024  # 15MB
    MAX_FILES: int = 5
    ALLOWED_MIME_TYPES: Annotated[List[str], NoDecode] = [
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "image/webp",
    ]

    # Staging
    UPLOAD_DIR: str = "./uploads"
    CLEANUP_DELAY_SECONDS: float = 5.0
    STAGING_MAX_AGE_SECONDS: float = 3600.0
    STAGING_SWEEP_INTERVAL_SECONDS: float = 600.0

    # Logging
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("ALLOWED_MIME_TYPES", mode="before")
    @classmethod
    def parse_allowed_mime_types(cls, v):
        if isinstance(v, str):
            return [mime.strip().lower() for mime in v.split(",") if mime.strip()]
        return v

    @property
    def api_key_configured(self) -> bool:
        return bool(self.GEMINI_API_KEY)


# Create settings instance
settings = Settings()
