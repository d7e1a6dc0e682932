"""Game server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING, Self

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.validators import RawListEnvSettingsSource, parse_origin_list
from whack.session.settings import SessionSettings

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class GameServerSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="WHACK_", populate_by_name=True)

    host: str = Field(default="0.0.0.0", min_length=1)  # noqa: S104
    # Hosting platforms commonly inject a bare PORT.
    port: int = Field(default=3001, ge=1, le=65535, validation_alias=AliasChoices("WHACK_PORT", "PORT"))
    cors_origins: list[str] = ["http://localhost:5173"]
    log_dir: str | None = None

    max_sessions: int = Field(default=1000, ge=1)
    empty_session_grace_seconds: float = Field(default=30.0, gt=0)

    rate_limit_rate: float = Field(default=20.0, gt=0)
    rate_limit_burst: int = Field(default=40, ge=1)

    cube_spawn_delay_min: float = Field(default=3.0, gt=0)
    cube_spawn_delay_max: float = Field(default=5.0, gt=0)
    cube_stay_duration: float = Field(default=2.0, gt=0)
    min_players: int = Field(default=2, ge=1)
    max_players: int = Field(default=8, ge=1)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_origin_list(v)

    @model_validator(mode="after")
    def _check_ranges(self) -> Self:
        if self.cube_spawn_delay_min > self.cube_spawn_delay_max:
            raise ValueError("cube_spawn_delay_min must not exceed cube_spawn_delay_max")
        if self.min_players > self.max_players:
            raise ValueError("min_players must not exceed max_players")
        return self

    def session_settings(self) -> SessionSettings:
        """Per-session tunables derived from the server configuration."""
        return SessionSettings(
            cube_spawn_delay_min=self.cube_spawn_delay_min,
            cube_spawn_delay_max=self.cube_spawn_delay_max,
            cube_stay_duration=self.cube_stay_duration,
            min_players=self.min_players,
            max_players=self.max_players,
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
        return init_settings, RawListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings
