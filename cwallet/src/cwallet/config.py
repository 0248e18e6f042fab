"""
Configuration management using pydantic-settings.
"""

from __future__ import annotations

from pathlib import Path

from cwcore.constants import ACTIVE_ADDRESS_MARGIN, ADDRESS_BLOCK_SIZE, REFRESH_INTERVAL
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SessionConfig(BaseModel):
    """Engine settings for one wallet session."""

    refresh_interval: float = Field(default=REFRESH_INTERVAL, gt=0)
    address_block_size: int = Field(default=ADDRESS_BLOCK_SIZE, ge=1)
    # Pagination continues while active addresses in a block > block size - margin
    active_address_margin: int = Field(default=ACTIVE_ADDRESS_MARGIN, ge=0)
    reusable_addresses: bool = False

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_margin(self) -> SessionConfig:
        if self.active_address_margin >= self.address_block_size:
            raise ValueError(
                f"active_address_margin ({self.active_address_margin}) must be smaller "
                f"than address_block_size ({self.address_block_size})"
            )
        return self


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    api_endpoint: str = "http://127.0.0.1:8080"
    request_timeout: float = 30.0

    data_dir: Path = Path.home() / ".cw"

    refresh_interval: float = REFRESH_INTERVAL
    address_block_size: int = ADDRESS_BLOCK_SIZE
    active_address_margin: int = ACTIVE_ADDRESS_MARGIN
    reusable_addresses: bool = False

    log_level: str = "INFO"

    def session_config(self) -> SessionConfig:
        return SessionConfig(
            refresh_interval=self.refresh_interval,
            address_block_size=self.address_block_size,
            active_address_margin=self.active_address_margin,
            reusable_addresses=self.reusable_addresses,
        )


def get_settings() -> Settings:
    return Settings()
