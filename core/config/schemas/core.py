"""Core/system schemas: company timezone and HTTP API settings."""
from __future__ import annotations

from typing import List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SystemConfig(BaseModel):
    # export timestamps and export filenames use this zone
    timezone: str = "Asia/Taipei"

    model_config = ConfigDict(extra="forbid")

    @field_validator("timezone")
    @classmethod
    def _known_zone(cls, v: str) -> str:  # noqa: D401
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone '{v}'") from e
        return v


class ApiConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
    )

    model_config = ConfigDict(extra="forbid")
