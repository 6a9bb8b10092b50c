"""
PPOB Chat Configuration Module

Loads environment variables for the storefront backend: reseller and
payment-gateway credentials, LLM access, storage and scheduling knobs.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Notes:
    - Reseller (Digiflazz) and gateway (Paydisini) secrets are environment-based
    - intent_confidence_threshold is the single cut-off for "ambiguous" commands
    - catalog_sync_interval_minutes = 0 disables the periodic sync job
    """

    # AWS Bedrock Configuration
    aws_region: str = "us-east-1"
    aws_bedrock_model_id: str = "us.anthropic.claude-sonnet-4-20250514-v1:0"
    llm_timeout_seconds: float = 30.0

    # Intent policy
    intent_confidence_threshold: float = 0.8

    # Demo Configuration
    demo_mode: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Upstream reseller (Digiflazz)
    digiflazz_username: str = ""
    digiflazz_api_key: str = ""
    digiflazz_base_url: str = "https://api.digiflazz.com/v1"

    # Payment gateway (Paydisini)
    paydisini_api_key: str = ""
    paydisini_base_url: str = "https://paydisini.co.id/api/"
    paydisini_default_service: str = "11"  # QRIS
    payment_valid_seconds: int = 10800  # 3 hours
    paydisini_verify_callback: bool = False

    upstream_timeout_seconds: float = 15.0

    # Catalog
    catalog_backend: Literal["sql", "memory"] = "sql"
    seed_default_products: bool = True
    catalog_sync_interval_minutes: int = 60

    # Database
    database_path: str = "./ppob_chat.db"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)


# Global settings instance
settings = Settings()
