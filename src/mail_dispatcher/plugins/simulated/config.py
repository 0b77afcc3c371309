"""Simulated provider configuration schema."""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


class SimulatedConfig(BaseModel):
    """Pydantic schema for the simulated provider options."""

    model_config = ConfigDict(extra="forbid")

    failure_rate: Annotated[
        float,
        Field(
            ge=0.0,
            le=1.0,
            description="Probability that a delivery attempt fails",
        ),
    ] = 0.3
    seed: Annotated[
        int | None,
        Field(
            description="Seed for the random generator; unset draws from system entropy",
        ),
    ] = None
    latency_seconds: Annotated[
        float,
        Field(
            ge=0.0,
            description="Artificial delay before each attempt completes",
        ),
    ] = 0.0
    outcomes: Annotated[
        list[bool] | None,
        Field(
            min_length=1,
            description="Scripted attempt outcomes (true = success), replayed cyclically instead of random draws",
        ),
    ] = None
