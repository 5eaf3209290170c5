"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env file
as a fallback. Pydantic Settings automatically:
  1. Reads from environment variables (highest priority)
  2. Falls back to .env file values
  3. Uses defaults defined here (lowest priority)

Usage:
    from ledger.config import settings
    print(settings.TRANSFER_MAX_RETRIES)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the Ledger API."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "Ledger API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # --- Database ---
    # SQLite for local use; swap to a postgresql+asyncpg URL for production
    DATABASE_URL: str = "sqlite+aiosqlite:///./ledger.db"

    # --- Transfers ---
    # Attempts made when a transfer loses an optimistic version check or
    # hits a storage lock before ConcurrencyConflictError reaches the caller
    TRANSFER_MAX_RETRIES: int = 3
    TRANSFER_RETRY_BACKOFF_SECONDS: float = 0.05

    # When False, transfers only debit the source (the legacy behaviour) and
    # crediting the target is left to an external settlement process
    CREDIT_TARGET_ON_TRANSFER: bool = True

    # --- CORS ---
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
