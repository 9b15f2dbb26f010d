"""
Settings for the tailor ops service, read from the environment and ``.env``.
"""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    # Read .env by default (repo root). Exported TAILOR_OPS_* variables win.
    model_config = SettingsConfigDict(
        env_prefix="TAILOR_OPS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    DATABASE_URL: str = ""
    ACTIVITY_LIMIT: int = 10
    AUTO_COMPLETE_ORDERS: bool = True
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 8000


@lru_cache()
def get_settings() -> Settings:
    return Settings()
