"""Configuration management using Pydantic Settings"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Checkout configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # External Services
    catalog_api_base: str = "http://localhost:8002"
    ledger_api_base: str = "http://localhost:8002"

    # Service
    service_name: str = "bdn-checkout"
    log_level: str = "INFO"
    default_currency: str = "USD"

    # HTTP Client
    http_timeout_seconds: float = 5.0
    ledger_connect_retries: int = 3
    ledger_backoff_base: float = 0.5  # Exponential backoff base in seconds

    # Settlement
    settlement_timeout_seconds: float = 10.0
    simulated_settlement_delay_seconds: float = 2.0


settings = Settings()
