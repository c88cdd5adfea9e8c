from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Postgres (messages, friend requests, contacts; users are read-only here)
    DATABASE_URL: str

    # JWT settings (tokens are issued by the auth service)
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str | None = None

    # =================================================================
    # REALTIME SETTINGS
    # =================================================================
    OFFLINE_BROADCAST_DELAY_SECONDS: float = 5.0

    # Message history paging for GET /messages/{id}
    HISTORY_DEFAULT_PAGE_SIZE: int = 20
    HISTORY_MAX_PAGE_SIZE: int = 100

    # =================================================================
    # DATABASE POOL SETTINGS
    # =================================================================
    DB_POOL_MIN_SIZE: int = 3
    DB_POOL_MAX_SIZE: int = 12
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            # Smaller pool and faster failure for local development
            config.update(
                {
                    "min_size": min(self.DB_POOL_MIN_SIZE, 2),
                    "max_size": min(self.DB_POOL_MAX_SIZE, 6),
                    "timeout": 15.0,
                }
            )

        return config


settings = Settings()
