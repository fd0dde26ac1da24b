"""Message Envelope models.

Every frame exchanged over a relay connection is a UTF-8 JSON object with a
``type`` tag. Outbound envelopes (the ones the relay itself writes) are
modelled as frozen Pydantic classes joined in a discriminated union. Inbound
frames are only decoded far enough to read the tag: the original text is kept
on :class:`InboundFrame` so forwarded messages reach the peer byte-for-byte.

Example:
    >>> frame = decode_frame('{"type":"barcode","code":"7501234567890"}')
    >>> frame.message_type
    <MessageType.BARCODE: 'barcode'>
    >>> frame.text
    '{"type":"barcode","code":"7501234567890"}'
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Union

from pydantic import Field, TypeAdapter

from scanrelay.errors import MalformedFrameError
from scanrelay.models.base import RelayBaseModel
from scanrelay.models.enums import MessageType, PeerStatus, Role

# Longest slice of an unknown payload that ends up in a log line
PREVIEW_LIMIT = 200


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ConnectionEnvelope(RelayBaseModel):
    """Sent to a connection once its registration has settled."""

    type: Literal["connection"] = "connection"
    status: Literal["connected"] = "connected"
    session_id: str = Field(alias="sessionId")
    timestamp: datetime = Field(default_factory=utc_now)


class PeerStatusEnvelope(RelayBaseModel):
    """Presence change of the counterpart (``scanner_status`` / ``pos_status``).

    ``code`` and ``reason`` are only filled on disconnect and describe how the
    peer's socket was closed.
    """

    type: Literal["scanner_status", "pos_status"]
    status: PeerStatus
    timestamp: datetime = Field(default_factory=utc_now)
    code: int | None = None
    reason: str | None = None

    @classmethod
    def for_role(
        cls,
        role: Role,
        status: PeerStatus,
        code: int | None = None,
        reason: str | None = None,
    ) -> "PeerStatusEnvelope":
        """Build the status envelope announcing ``role`` to its counterpart."""
        return cls(type=role.status_type, status=status, code=code, reason=reason)


class BarcodeReceivedEnvelope(RelayBaseModel):
    """Acknowledges to the scanner that a barcode reached the POS."""

    type: Literal["barcode_received"] = "barcode_received"
    code: Any = None
    timestamp: datetime = Field(default_factory=utc_now)


class HeartbeatEnvelope(RelayBaseModel):
    type: Literal["heartbeat"] = "heartbeat"
    timestamp: datetime = Field(default_factory=utc_now)


class ErrorEnvelope(RelayBaseModel):
    """Non-fatal failure reported back to the connection that caused it."""

    type: Literal["error"] = "error"
    message: str
    details: str | None = None
    timestamp: datetime = Field(default_factory=utc_now)


class ServerShutdownEnvelope(RelayBaseModel):
    type: Literal["server_shutdown"] = "server_shutdown"
    message: str
    timestamp: datetime = Field(default_factory=utc_now)


OutboundEnvelope = Annotated[
    Union[
        ConnectionEnvelope,
        PeerStatusEnvelope,
        BarcodeReceivedEnvelope,
        HeartbeatEnvelope,
        ErrorEnvelope,
        ServerShutdownEnvelope,
    ],
    Field(discriminator="type"),
]

_outbound_adapter: TypeAdapter[OutboundEnvelope] = TypeAdapter(OutboundEnvelope)


def parse_envelope(text: str | bytes) -> OutboundEnvelope:
    """Parse a frame written by the relay back into its envelope model.

    Raises:
        pydantic.ValidationError: If the text is not one of the outbound variants.
    """
    return _outbound_adapter.validate_json(text)


def outbound_json_schema() -> dict[str, Any]:
    """JSON Schema of the outbound envelope union (by wire alias)."""
    return _outbound_adapter.json_schema(by_alias=True)


@dataclass(frozen=True)
class InboundFrame:
    """A decoded client frame.

    Attributes:
        text: The frame exactly as received (binary frames decoded as UTF-8).
        data: The parsed JSON object.
    """

    text: str
    data: dict[str, Any]

    @property
    def type_tag(self) -> Any:
        return self.data.get("type")

    @property
    def message_type(self) -> MessageType | None:
        return MessageType.parse(self.type_tag)

    def preview(self) -> str:
        """Truncated text suitable for a log line."""
        if len(self.text) <= PREVIEW_LIMIT:
            return self.text
        return self.text[:PREVIEW_LIMIT] + "..."


def decode_frame(raw: str | bytes) -> InboundFrame:
    """Decode a raw WebSocket payload into an :class:`InboundFrame`.

    Args:
        raw: Text frame, or binary frame holding UTF-8 JSON.

    Raises:
        MalformedFrameError: If bytes are not UTF-8, the text is not JSON, or
            the JSON value is not an object.
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            text = bytes(raw).decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedFrameError("binary frame is not valid UTF-8", {"error": str(e)}) from e
    else:
        text = raw
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedFrameError(f"invalid JSON: {e}", {"error": str(e)}) from e
    if not isinstance(data, dict):
        raise MalformedFrameError(
            f"expected a JSON object, got {type(data).__name__}",
            {"json_type": type(data).__name__},
        )
    return InboundFrame(text=text, data=data)
