"""Arena server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from arena.logic.settings import GameSettings
from shared.validators import StringListEnvSettingsSource, parse_origins

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class ArenaServerSettings(BaseSettings):
    model_config = {"env_prefix": "ARENA_"}

    base_url: str = Field(default="http://localhost:3001", min_length=1)
    cors_origins: list[str] = ["http://localhost:3001"]
    log_dir: str | None = "backend/logs/arena"
    max_rooms: int = Field(default=1000, ge=1)
    room_ttl_seconds: int = Field(default=3600, ge=60)  # idle waiting rooms
    room_sweep_interval_seconds: float = Field(default=300, gt=0)
    countdown_interval_seconds: float = Field(default=1.0, gt=0)
    tick_rate: int = Field(default=60, ge=1, le=240)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_origins(v)

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    def game_settings(self) -> GameSettings:
        return GameSettings(
            tick_rate=self.tick_rate,
            countdown_interval_seconds=self.countdown_interval_seconds,
        )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, StringListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings
