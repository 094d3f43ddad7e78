"""Runtime configuration sourced from environment variables."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Union

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .booking import COMPANIES


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ROOM_RESERVATION_",
        env_file=(".env",),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    data_dir: Path = Path("data")
    admin_password: Optional[SecretStr] = None
    secret_key: Optional[SecretStr] = None
    session_hours: int = Field(8, gt=0)
    companies: Union[List[str], str] = Field(default_factory=lambda: list(COMPANIES))
    holiday_country: Optional[str] = None
    cookie_secure: bool = False

    @field_validator("companies", mode="before")
    @classmethod
    def split_companies(cls, value: List[str] | str) -> List[str]:
        """Allow both comma-separated strings and list inputs."""
        if isinstance(value, str):
            return [company.strip() for company in value.split(",") if company.strip()]
        return value

    @property
    def company_names(self) -> List[str]:
        return list(self.companies)


@lru_cache
def get_settings() -> Settings:
    return Settings()
