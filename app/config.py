# app/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    database_url: str = Field("sqlite:///./intake.db", validation_alias="DATABASE_URL")

    agent_base_url: str = Field("http://localhost:3000", validation_alias="AGENT_BASE_URL")
    auth_base_url: str = Field("http://localhost:3000", validation_alias="AUTH_BASE_URL")
    agent_id: str = Field(
        "01c95267-dd29-02bc-a9ad-d243b05a8d51", validation_alias="AGENT_ID"
    )
    room_id: str = Field(
        "45b0dcf5-802e-074e-9e67-84991c38b62e", validation_alias="ROOM_ID"
    )
    request_timeout_seconds: float = Field(30.0, validation_alias="REQUEST_TIMEOUT_SECONDS")

    # How long a "new stage" notification stays visible
    notification_display_seconds: float = Field(
        4.0, validation_alias="NOTIFICATION_DISPLAY_SECONDS"
    )
    # Give the backend a moment to record the exchange before refetching
    refetch_delay_seconds: float = Field(1.0, validation_alias="REFETCH_DELAY_SECONDS")

    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
