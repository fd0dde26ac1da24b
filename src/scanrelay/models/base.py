"""Base Pydantic model configuration for relay envelopes.

All outbound envelopes inherit from RelayBaseModel to ensure consistent behavior:
- Immutability (frozen=True) so an envelope cannot change between build and send
- Strict validation (extra="forbid") to catch typos in field names
- Flexible field naming (populate_by_name=True) for camelCase wire aliases
"""

from pydantic import BaseModel, ConfigDict


class RelayBaseModel(BaseModel):
    """Base model for every envelope the relay emits.

    Example:
        >>> class Ping(RelayBaseModel):
        ...     type: str = "ping"
        >>> Ping().to_frame()
        '{"type":"ping"}'
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        validate_default=True,
    )

    def to_frame(self) -> str:
        """Serialize to the JSON text sent on the wire (aliases, no null fields)."""
        return self.model_dump_json(by_alias=True, exclude_none=True)
