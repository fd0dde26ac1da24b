"""Wire models for the scanner relay.

Example:
    >>> from scanrelay.models import ErrorEnvelope
    >>> ErrorEnvelope(message="boom").type
    'error'
"""

from scanrelay.models.base import RelayBaseModel
from scanrelay.models.envelope import (
    BarcodeReceivedEnvelope,
    ConnectionEnvelope,
    ErrorEnvelope,
    HeartbeatEnvelope,
    InboundFrame,
    OutboundEnvelope,
    PeerStatusEnvelope,
    ServerShutdownEnvelope,
    decode_frame,
    outbound_json_schema,
    parse_envelope,
)
from scanrelay.models.enums import MessageType, PeerStatus, Role

__all__ = [
    "BarcodeReceivedEnvelope",
    "ConnectionEnvelope",
    "ErrorEnvelope",
    "HeartbeatEnvelope",
    "InboundFrame",
    "MessageType",
    "OutboundEnvelope",
    "PeerStatus",
    "PeerStatusEnvelope",
    "RelayBaseModel",
    "Role",
    "ServerShutdownEnvelope",
    "decode_frame",
    "outbound_json_schema",
    "parse_envelope",
]
