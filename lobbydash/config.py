"""Application configuration."""

import os

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Backing store (REST + realtime)
    store_url: str = os.getenv("STORE_URL", "http://localhost:54321")
    store_api_key: str = os.getenv("STORE_API_KEY", "")
    store_timeout_seconds: float = float(os.getenv("STORE_TIMEOUT_SECONDS", "10"))

    # Server
    server_host: str = os.getenv("SERVER_HOST", "0.0.0.0")
    server_port: int = int(os.getenv("SERVER_PORT", "8000"))

    # Rotation
    rotation_interval_seconds: float = float(
        os.getenv("ROTATION_INTERVAL_SECONDS", "30")
    )

    # Auto reload (only meant to be enabled on the lobby display itself)
    auto_reload_enabled: bool = os.getenv("AUTO_RELOAD_ENABLED", "false").lower() == "true"
    auto_reload_ms: float = float(os.getenv("AUTO_RELOAD_MS", "600000"))  # 10 minutes
    auto_reload_pause_when_hidden: bool = (
        os.getenv("AUTO_RELOAD_PAUSE_WHEN_HIDDEN", "true").lower() == "true"
    )

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    class Config:
        """Pydantic config."""

        env_file = ".env"
        case_sensitive = False


settings = Settings()
