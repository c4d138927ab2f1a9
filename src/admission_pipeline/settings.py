"""
admission_pipeline.settings

Process configuration, loaded from ``ADMISSION_*`` environment variables and
an optional ``.env`` file.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal
from urllib.parse import urlsplit

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ADMISSION_",
        env_file=".env",
        extra="ignore",
    )

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)
    log_level: str = Field(default="INFO")

    allowed_origins: list[str] = Field(
        default_factory=lambda: [
            "http://localhost:1337",
            "http://localhost:3031",
            "https://pabbly.com",
        ]
    )

    session_cookie_name: str = Field(default="sid")
    session_ttl_seconds: int = Field(default=86400, gt=0)
    # None means "Secure only when the request arrived over TLS".
    session_cookie_secure: bool | None = Field(default=None)
    session_cookie_samesite: Literal["lax", "strict", "none"] = Field(default="lax")
    session_retry_after: int | None = Field(default=5)

    max_body_bytes: int = Field(default=100 * 1024, gt=0)
    urlencoded_depth: int = Field(default=5, ge=0)
    urlencoded_parameter_limit: int = Field(default=1000, gt=0)

    cache_control_default: str = Field(default="no-store")
    cache_control_rules: dict[str, str] = Field(default_factory=dict)
    hsts_max_age: int = Field(default=31536000, ge=0)
    security_headers: dict[str, str] = Field(default_factory=dict)

    gzip_minimum_size: int = Field(default=1024, ge=0)
    store_connect_timeout: float = Field(default=10.0, gt=0)

    @field_validator("allowed_origins")
    @classmethod
    def _check_origins(cls, value: list[str]) -> list[str]:
        for origin in value:
            parts = urlsplit(origin)
            if (
                parts.scheme not in ("http", "https")
                or not parts.netloc
                or parts.path
                or parts.query
                or parts.fragment
            ):
                raise ValueError(
                    f"Allowed origin must be scheme://host[:port] with no path: {origin!r}"
                )
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()
