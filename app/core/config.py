from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
import re

_STORE_TOKEN = re.compile(r"^[A-Za-z0-9._-]+$")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True)

    # App Settings
    APP_NAME: str = "MindfulReplay Offline Gateway"
    APP_URL: str = "http://localhost:8000"
    PROJECT_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ALLOWED_ORIGINS: str = "*"  # Comma-separated string or "*"

    # Upstream MindfulReplay app that the gateway fronts
    ORIGIN_URL: str = "http://localhost:3000"

    # Cache stores
    CACHE_PREFIX: str = "mindfulreplay"
    CACHE_VERSION: str = "v1"
    CACHE_TYPE: str = "inmemory"  # inmemory, redis, or database
    REDIS_URL: str | None = None
    DATABASE_URL: str = "sqlite+aiosqlite:///./offline_cache.db"

    # Routing
    PRECACHE_URLS: str = "/,/memos,/tasks,/offline,/manifest.json"
    API_PREFIXES: str = "/api/"
    STATIC_ASSET_PREFIX: str = "/_next/static/"
    MEDIA_HOSTS: str = "youtube.com,ytimg.com"
    MEDIA_STRATEGY: str = "cache-first"  # cache-first or stale-while-revalidate
    # Stores are shared by every browser behind the gateway, so responses to
    # requests carrying Cookie or Authorization are not stored by default.
    CACHE_CREDENTIALED_REQUESTS: bool = False
    SHELL_PATH: str = "/"
    OFFLINE_PATH: str = "/offline"

    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    @field_validator("CACHE_PREFIX", "CACHE_VERSION")
    @classmethod
    def validate_store_token(cls, value: str) -> str:
        if not _STORE_TOKEN.match(value):
            raise ValueError(
                f"{value!r} may only contain letters, digits, '.', '_' and '-'"
            )
        return value

    @field_validator("CACHE_TYPE")
    @classmethod
    def validate_cache_type(cls, value: str) -> str:
        value = value.lower()
        if value not in ("inmemory", "redis", "database"):
            raise ValueError("CACHE_TYPE must be one of inmemory, redis, database")
        return value

    @field_validator("MEDIA_STRATEGY")
    @classmethod
    def validate_media_strategy(cls, value: str) -> str:
        if value not in ("cache-first", "stale-while-revalidate"):
            raise ValueError(
                "MEDIA_STRATEGY must be cache-first or stale-while-revalidate"
            )
        return value

    # Parse ALLOWED_ORIGINS
    @property
    def allowed_origins_list(self) -> List[str]:
        if self.ALLOWED_ORIGINS == "*":
            return ["*"]
        return _split(self.ALLOWED_ORIGINS)

    @property
    def precache_urls_list(self) -> List[str]:
        return _split(self.PRECACHE_URLS)

    @property
    def api_prefixes_list(self) -> List[str]:
        return _split(self.API_PREFIXES)

    @property
    def media_hosts_list(self) -> List[str]:
        return [h.lower() for h in _split(self.MEDIA_HOSTS)]


def _split(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


settings = Settings()
