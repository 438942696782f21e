"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (or a .env file in dev).
The version tag, tier prefix and asset manifests live here and are passed
explicitly into the components that need them - nothing reads them from a
module-level global at request time.
"""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    DEV = "dev"
    PROD = "prod"
    TEST = "test"


class CacheBackendKind(StrEnum):
    MEMORY = "memory"
    REDIS = "redis"


_DEFAULT_STATIC_ASSETS = [
    "./",
    "./index.html",
    "./manifest.json",
    "./shared-config.js",
    "./icons/icon-72x72.png",
    "./icons/icon-96x96.png",
    "./icons/icon-128x128.png",
    "./icons/icon-144x144.png",
    "./icons/icon-152x152.png",
    "./icons/icon-192x192.png",
    "./icons/icon-384x384.png",
    "./icons/icon-512x512.png",
]

_DEFAULT_EXTERNAL_ASSETS = [
    "https://cdnjs.cloudflare.com/ajax/libs/font-awesome/6.4.0/css/all.min.css",
    "https://www.gstatic.com/firebasejs/9.22.0/firebase-app-compat.js",
    "https://www.gstatic.com/firebasejs/9.22.0/firebase-database-compat.js",
]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ------------------------------------------------------------------ #
    # Application
    # ------------------------------------------------------------------ #
    environment: Environment = Environment.DEV
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)
    reload: bool = False
    version_tag: str = Field(
        default="3.0",
        description="Identifies the running build; changes on every deploy",
    )
    app_origin: str = Field(
        default="http://localhost:8000",
        description="Origin of the application whose requests are intercepted",
    )

    # ------------------------------------------------------------------ #
    # Cache tiers
    # ------------------------------------------------------------------ #
    cache_prefix: str = Field(
        default="offline-app",
        description="Prefix of every tier name: <prefix>-<role>-v<version>",
    )
    cache_backend: CacheBackendKind = CacheBackendKind.MEMORY
    redis_url: str = Field(
        default="",
        description="Redis connection URL, required when cache_backend=redis",
    )
    redis_namespace: str = Field(
        default="offline-gateway",
        description="Key namespace for tier hashes and the tier index set",
    )

    # ------------------------------------------------------------------ #
    # Manifests
    # ------------------------------------------------------------------ #
    static_assets: list[str] = Field(
        default_factory=lambda: list(_DEFAULT_STATIC_ASSETS),
        description="Bundled app assets, relative to app_origin",
    )
    external_assets: list[str] = Field(
        default_factory=lambda: list(_DEFAULT_EXTERNAL_ASSETS),
        description="Third-party assets preloaded into the dynamic tier",
    )
    app_shell_path: str = Field(
        default="./index.html",
        description="Document served when a page request fails offline",
    )

    # ------------------------------------------------------------------ #
    # Classification
    # ------------------------------------------------------------------ #
    realtime_host_markers: list[str] = Field(
        default_factory=lambda: ["firebase", "firebaseio"],
        description="Substrings identifying realtime-backend hostnames",
    )
    accelerator_hosts: list[str] = Field(
        default_factory=lambda: ["cdnjs.cloudflare.com", "gstatic.com"],
        description="CDN hostnames (subdomains included) served stale-while-revalidate",
    )

    # ------------------------------------------------------------------ #
    # Network / lifecycle
    # ------------------------------------------------------------------ #
    fetch_timeout_seconds: float = Field(default=30.0, gt=0)
    skip_waiting_on_install: bool = Field(
        default=True,
        description="Activate straight after install instead of waiting for SKIP_WAITING",
    )
    background_drain_timeout_seconds: float = Field(default=10.0, gt=0)
    sync_tag: str = Field(
        default="background-sync",
        description="Sync tag whose trigger notifies connected clients",
    )

    # ------------------------------------------------------------------ #
    # Messages
    # ------------------------------------------------------------------ #
    offline_json_message: str = "The application is working offline"
    offline_text_message: str = "Unavailable offline"
    background_sync_message: str = "Connection restored - syncing data..."
    periodic_sync_message: str = "Data refreshed in the background"
    push_title: str = "Offline App"
    push_default_body: str = "New notification"
    push_icon: str = "./icons/icon-192x192.png"
    push_badge: str = "./icons/icon-72x72.png"
    push_tag: str = "offline-app-notification"

    @field_validator("version_tag", "cache_prefix")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()

    @field_validator("app_origin")
    @classmethod
    def _http_origin(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("app_origin must be an http(s) origin")
        return value.rstrip("/")

    @model_validator(mode="after")
    def _set_debug_from_env(self) -> Settings:
        if self.environment == Environment.DEV:
            self.debug = True
        return self

    @property
    def is_dev(self) -> bool:
        return self.environment in (Environment.DEV, Environment.TEST)

    @property
    def is_prod(self) -> bool:
        return self.environment == Environment.PROD


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings singleton.

    Use FastAPI dependency injection via Depends(get_settings) in endpoints,
    or call directly in non-request contexts (startup, scripts).
    """
    return Settings()
