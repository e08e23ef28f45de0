"""Application configuration settings."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration
    db_host: str = "localhost"
    db_port: int = 3306
    db_user: str = "sqlite"
    db_password: str = ""
    db_name: str = "shift_changes"
    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_pool_timeout: int = 30
    db_pool_recycle: int = 3600

    # LINE Messaging Configuration (push notifications)
    line_channel_access_token: str = ""
    line_api_max_retries: int = 3
    line_api_timeout: int = 10

    # Application Settings
    debug: bool = False
    log_level: str = "INFO"
    api_prefix: str = "/api"
    api_version: str = "v1"

    # Notification Dispatcher Settings
    notification_dispatch_enabled: bool = False
    notification_dispatch_interval_seconds: int = 30
    notification_dispatch_batch_size: int = 50
    notification_max_attempts: int = 5

    # CORS Settings
    cors_origins: List[str] = []

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
    )

    @property
    def database_url(self) -> str:
        """Construct database URL from configuration."""
        # Use SQLite if DB_USER is 'sqlite'
        if self.db_user.lower() == 'sqlite':
            return f"sqlite:///./{self.db_name}.db"
        return f"mysql+pymysql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return not self.debug


# Global settings instance
settings = Settings()
