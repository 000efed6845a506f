"""Shared pydantic base for harness configuration and results."""

from pydantic import BaseModel, ConfigDict


class Model(BaseModel):
    """Immutable model; aliased fields also accept their Python name."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)
