"""Per-session gameplay settings."""

from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SessionSettings(BaseModel):
    """
    Gameplay configuration fixed for the lifetime of one session.

    Durations are in seconds.
    """

    model_config = ConfigDict(frozen=True)

    # --- Spawn loop ---
    cube_spawn_delay_min: float = Field(default=3.0, gt=0)
    cube_spawn_delay_max: float = Field(default=5.0, gt=0)
    cube_stay_duration: float = Field(default=2.0, gt=0)
    hazard_probability: float = Field(default=0.3, ge=0, le=1)
    spawn_radius: float = Field(default=0.8, gt=0)

    # --- Players ---
    starting_lives: int = Field(default=3, ge=1)
    min_players: int = Field(default=2, ge=1)
    max_players: int = Field(default=8, ge=1)

    @model_validator(mode="after")
    def _validate_ranges(self) -> Self:
        if self.cube_spawn_delay_min > self.cube_spawn_delay_max:
            raise ValueError("cube_spawn_delay_min must not exceed cube_spawn_delay_max")
        if self.min_players > self.max_players:
            raise ValueError("min_players must not exceed max_players")
        return self
