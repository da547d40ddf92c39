from pydantic import AnyUrl
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Literal

# Upper bound on a captured webhook body (5 MiB)
DEFAULT_MAX_PAYLOAD_BYTES = 5 * 1024 * 1024


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    LOG_JSON: bool = True
    LOG_LEVEL: str = "INFO"
    # Storage backend selection: "memory", "sqlite" or "redis"
    STORE_BACKEND: Literal["memory", "sqlite", "redis"] = "sqlite"
    DB_PATH: str = "data.db"
    # Flat file for the memory backend; None keeps events in process only
    JSON_STORE_PATH: str | None = None
    REDIS_URL: AnyUrl | None = None
    REDIS_KEY_PREFIX: str = "webhook_inbox"
    MAX_PAYLOAD_BYTES: int = DEFAULT_MAX_PAYLOAD_BYTES


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
