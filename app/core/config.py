"""Application settings loaded from environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "alert-overlay"
    app_version: str = "0.1.0"
    api_prefix: str = "/api"
    host: str = "0.0.0.0"
    port: int = 8080

    # Alerts backend (REST + change stream)
    alerts_api_url: str = "http://localhost:3000/api"
    alerts_stream_url: str = "http://localhost:3000/api/alerts/stream"
    alerts_api_key: str | None = None
    http_timeout: float = 10.0
    stream_max_retries: int = 0  # 0 = reconnect forever
    stream_backoff_seconds: float = 0.5

    # Overlay binding at startup; the rendering surface may rebind later
    overlay_id: str | None = None
    alert_duration_seconds: str | None = None

    # Display timings
    default_duration_ms: int = 5000
    settle_delay_ms: int = 1000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="OVERLAY_",
        extra="ignore",
    )


settings = Settings()

__all__ = ["settings", "Settings"]
