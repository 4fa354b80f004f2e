from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from salestax.schemas.address import Address


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "salestax-taxcloud"
    version: str = "1.0.0"
    DEBUG: bool = False
    APP_DATABASE_DSN: str = "sqlite:////tmp/salestax.db"

    # TaxCloud credentials
    taxcloud_connection_id: str = ""  # API login ID / v3 connection ID
    taxcloud_api_key: str = ""
    taxcloud_api_url: str = "https://api.v3.taxcloud.com/tax/"
    taxcloud_legacy_api_url: str = "https://api.taxcloud.net/1.0/TaxCloud/"
    taxcloud_request_timeout: float = 30.0

    # Lookup behaviour
    tax_based_on: Literal["item-price", "line-price"] = "item-price"
    capture_immediately: bool = False
    validate_addresses: bool = True

    # Business locations; items without an origin use default_origin_index
    origin_addresses: list[Address] = []
    default_origin_index: int = 0

    # Taxability Information Codes
    shipping_tic: int = 11010
    fee_tic: int = 10010
    default_tic: int = 0

    # Host tax rate that carries TaxCloud amounts on orders
    taxcloud_rate_id: str = "TAXCLOUD"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
