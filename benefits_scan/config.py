from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Postgres settings
    DATABASE_URL: str = "postgresql://localhost:5432/benefits"

    # =================================================================
    # DATABASE POOL SETTINGS
    # =================================================================
    DB_POOL_MIN_SIZE: int = 2
    DB_POOL_MAX_SIZE: int = 10
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    # =================================================================
    # WMB SCAN QUEUE SETTINGS
    # =================================================================
    SCAN_QUEUE_BATCH_SIZE: int = 10
    SCAN_QUEUE_INTERVAL_MINUTES: int = 5
    SCAN_QUEUE_MAX_ATTEMPTS: int = 3
    SCAN_QUEUE_RETRY_BACKOFF_SECONDS: int = 300
    SCAN_QUEUE_STALE_AFTER_SECONDS: int = 1800  # 30 minutes

    # System variable holding the fallback policy id
    DEFAULT_POLICY_VARIABLE: str = "policy_default"

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
            config.update(
                {
                    "min_size": 1,
                    "max_size": 4,
                    "timeout": 15.0,
                }
            )

        return config

    def get_scan_queue_config(self) -> dict:
        """Retry and reclaim limits for the scheduled WMB scan queue drain."""
        return {
            "max_attempts": self.SCAN_QUEUE_MAX_ATTEMPTS,
            "retry_backoff_seconds": self.SCAN_QUEUE_RETRY_BACKOFF_SECONDS,
            "stale_after_seconds": self.SCAN_QUEUE_STALE_AFTER_SECONDS,
        }


settings = Settings()
