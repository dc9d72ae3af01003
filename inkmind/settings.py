# settings.py
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Project
    PROJECT_NAME: str = "InkMind Backend"
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"

    # Security
    JWT_SECRET: str = "super-secret-key"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRY_MINUTES: int = 60 * 24  # 24h

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./dev.db"  # default local SQLite

    # Image generation (Gemini)
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.5-flash-image"
    GEMINI_API_URL: str = "https://generativelanguage.googleapis.com/v1beta/models"
    GENERATION_HTTP_TIMEOUT: float = 60.0
    GENERATION_MAX_RETRIES: int = 0

    # Vercel Blob
    BLOB_READ_WRITE_TOKEN: str = ""

    # Lineage & retention
    LINEAGE_MAX_DEPTH: int = 1000
    PURGE_AFTER_DAYS: int = 30

    # Frontend URL (CORS)
    FRONTEND_URL: str = "http://localhost:5173"


# ✅ Instantiate settings globally
settings = Settings()
