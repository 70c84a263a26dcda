"""Application configuration."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Server
    server_host: str = "0.0.0.0"
    server_port: int = 8000
    app_url: str = ""  # public base URL for image links, derived from the request when empty

    # Storage
    database_path: str = "data/devices.db"

    # Devices
    api_key_secret: str = ""
    default_refresh_rate: int = 300  # seconds between polls, doubled at night
    default_timezone: str = "UTC"
    image_url_timeout: int = 30

    # Screens
    calendar_timezone: str = "Australia/Sydney"
    calendar_max_rows: int = 0  # 0 = as many as fit in a day column

    # Logging
    log_level: str = "INFO"
    persist_system_logs: bool = False


settings = Settings()
