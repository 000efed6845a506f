"""Configuration for the stdio transport."""

from collections.abc import Sequence

from pydantic import BaseModel, Field


class StdioServerConfig(BaseModel):
    """Configuration for a server spawned as a subprocess speaking over stdio."""

    command: str
    args: Sequence[str] = Field(default_factory=list)
    working_dir: str | None = None
    env: dict[str, str] = Field(default_factory=dict)
    request_timeout: float = Field(default=30.0, gt=0)
    shutdown_timeout: float = Field(default=5.0, gt=0)
