from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Processing
    workers: int = Field(default=1, ge=1)
    history_scope: Literal["client", "global"] = "client"

    # Logging
    log_level: str = "WARNING"

    model_config = SettingsConfigDict(
        env_prefix="PAYMENTS_",
        env_file=".env",
        extra="ignore",
    )


def get_settings() -> Settings:
    return Settings()
