"""
Application settings.
"""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings, read from the environment and an optional ``.env`` file.
    """

    # General
    PROJECT_NAME: str = "Book Recommender"
    VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: str = "5432"
    POSTGRES_DB: str = "book_recommender"
    DATABASE_URL_OVERRIDE: str | None = None
    DB_ECHO: bool = False

    @property
    def DATABASE_URL(self) -> str:
        """
        Connection URL for the async engine.
        """
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "logs/app.log"
    LOG_ROTATION: str = "10 MB"
    LOG_RETENTION: str = "7 days"

    # Business rules
    MAX_RECOMMENDATIONS_PER_BOOK: int = 3

    # Rating persistence
    RATING_STORE_BACKEND: Literal["sql", "legacy_file"] = "sql"
    LEGACY_RATINGS_FILE: str = "ValutazioniLibri.dati.csv"

    # CORS
    BACKEND_CORS_ORIGINS: list[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="allow"
    )


settings = Settings()
