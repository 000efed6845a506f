"""Configuration for the streamable HTTP transport."""

from pydantic import BaseModel, Field, SecretStr


class HttpServerConfig(BaseModel):
    """Configuration for a server reachable over HTTP."""

    base_url: str
    endpoint: str = "/mcp"
    token: SecretStr | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    timeout: float = Field(default=30.0, gt=0)
