"""
Pydantic model for node configuration.
Provides robust validation for all settings.
"""

from pydantic import BaseModel, Field, field_validator

from extraction_node.models.media import Persona

DEFAULT_COORDINATOR_URL = "https://convertsmedia-api.keith-275.workers.dev"
RESIDENTIAL_NODE_TYPE = "residential"

# Residential IPs are rarely blocked for the web client; datacenter IPs are.
PERSONA_ORDER = {
    RESIDENTIAL_NODE_TYPE: (Persona.WEB, Persona.ANDROID, Persona.TV_EMBEDDED),
    "default": (Persona.ANDROID, Persona.TV_EMBEDDED, Persona.WEB),
}


def get_default_personas(node_type: str) -> tuple[Persona, ...]:
    """Gets the persona fallback order for a given node type."""
    return PERSONA_ORDER.get(node_type, PERSONA_ORDER["default"])


class NodeConfig(BaseModel):
    """A validated configuration model for the extraction node."""

    # Server
    host: str = "0.0.0.0"
    port: int = 8080

    # Coordinator
    coordinator_url: str = DEFAULT_COORDINATOR_URL
    node_name: str
    node_type: str = RESIDENTIAL_NODE_TYPE
    region: str = ""
    bandwidth_limit_gb: int = 0
    base_url: str | None = None
    heartbeat_interval: float = 30.0

    # Internal fields not loaded from the environment
    is_fly: bool = Field(default=False, repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Ensures the port is a usable TCP port."""
        if v < 1 or v > 65535:
            raise ValueError("Port must be between 1 and 65535.")
        return v

    @field_validator("node_name", "node_type")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("Node name and type cannot be empty.")
        return v

    @field_validator("coordinator_url", "base_url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validates coordinator and public URLs."""
        if not v:
            return None
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"URL must start with http:// or https://, got: {v}")
        return v.rstrip("/")

    @field_validator("bandwidth_limit_gb")
    @classmethod
    def validate_bandwidth(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Bandwidth limit cannot be negative.")
        return v

    @field_validator("heartbeat_interval")
    @classmethod
    def validate_heartbeat(cls, v: float) -> float:
        if v < 1:
            raise ValueError("Heartbeat interval must be at least 1 second.")
        return v

    @property
    def default_personas(self) -> tuple[Persona, ...]:
        return get_default_personas(self.node_type)
