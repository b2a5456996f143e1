"""
Application settings.

Credentials and tunables are read from the environment once (after loading
``.env`` / ``.dev.env``) into a ``Settings`` object that is handed to every
component explicitly.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator


class ConfigurationError(Exception):
    """A required setting or credential is missing or invalid."""
    pass


class Settings(BaseModel):
    """Runtime configuration, populated from environment variables by alias."""

    backend: str = Field(default="etsy", alias="STOREFRONT_BACKEND")
    data_dir: Path = Field(default=Path("data"), alias="DATA_DIR")

    # Cache
    cache_backend: str = Field(default="file", alias="CACHE_BACKEND")
    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")
    cache_ttl_seconds: int = Field(default=60 * 60 * 24 * 7, alias="CACHE_TTL_SECONDS")
    cache_ttl_jitter_seconds: int = Field(default=0, alias="CACHE_TTL_JITTER_SECONDS")
    stale_if_error: bool = Field(default=True, alias="CACHE_STALE_IF_ERROR")

    # Etsy Open API v3
    etsy_api_key: Optional[str] = Field(default=None, alias="ETSY_API_KEY")
    etsy_api_secret: Optional[str] = Field(default=None, alias="ETSY_API_SECRET")
    etsy_access_token: Optional[str] = Field(default=None, alias="ETSY_ACCESS_TOKEN")
    etsy_shop_id: Optional[str] = Field(default=None, alias="ETSY_SHOP_ID")

    # Shopify
    shopify_domain: Optional[str] = Field(default=None, alias="SHOPIFY_DOMAIN")
    shopify_storefront_access_token: Optional[str] = Field(
        default=None, alias="SHOPIFY_STOREFRONT_ACCESS_TOKEN"
    )
    shopify_admin_access_token: Optional[str] = Field(default=None, alias="SHOPIFY_ADMIN_ACCESS_TOKEN")
    shopify_api_version: str = Field(default="2024-10", alias="SHOPIFY_API_VERSION")
    shop_name: Optional[str] = Field(default=None, alias="SHOP_NAME")

    # Legacy Ravelry store
    ravelry_api_key: Optional[str] = Field(default=None, alias="API_KEY")
    ravelry_api_password: Optional[str] = Field(default=None, alias="API_PASSWORD")
    ravelry_store_id: Optional[str] = Field(default=None, alias="STORE_ID")
    ravelry_designer_id: Optional[str] = Field(default=None, alias="DESIGNER_ID")
    designer_name: Optional[str] = Field(default=None, alias="DESIGNER_NAME")

    # Server, logging, HTTP
    port: int = Field(default=3000, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_file: Optional[Path] = Field(default=None, alias="LOG_FILE")
    http_timeout_seconds: float = Field(default=30.0, alias="HTTP_TIMEOUT_SECONDS")

    # Review fetching
    reviews_batch_size: int = Field(default=5, alias="REVIEWS_BATCH_SIZE")
    reviews_batch_delay_seconds: float = Field(default=1.0, alias="REVIEWS_BATCH_DELAY_SECONDS")

    class Config:
        populate_by_name = True

    @field_validator("cache_ttl_jitter_seconds")
    @classmethod
    def _jitter_within_ttl(cls, value: int, info) -> int:
        ttl = info.data.get("cache_ttl_seconds")
        if value < 0 or (ttl is not None and value > ttl):
            raise ValueError("must be between 0 and CACHE_TTL_SECONDS")
        return value


def _load_dotenv():
    if os.path.exists('.dev.env'):
        load_dotenv('.dev.env')
    load_dotenv()


def load_settings() -> Settings:
    """
    Build settings from the current environment.

    Raises:
        ConfigurationError: If a variable has an invalid value
    """
    _load_dotenv()
    try:
        return Settings(**os.environ)
    except ValidationError as exc:
        fields = [str(e["loc"][0]) for e in exc.errors()]
        raise ConfigurationError(f"Invalid environment variables: {', '.join(fields)}") from exc


@lru_cache()
def get_settings() -> Settings:
    """Memoized ``load_settings`` for the running process."""
    return load_settings()


def require(value: Optional[str], env_name: str) -> str:
    """
    Return a credential or fail before any I/O happens.

    Raises:
        ConfigurationError: If the value is missing or empty
    """
    if not value:
        raise ConfigurationError(f"{env_name} environment variable is required")
    return value
