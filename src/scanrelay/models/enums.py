"""Enumerations for the scanner relay.

This module defines the closed sets of values used on the wire so that
roles, statuses and message tags never travel as magic strings.
"""

from enum import Enum


class Role(str, Enum):
    """Which side of a session a connection plays.

    Example:
        >>> Role.SCANNER.counterpart
        <Role.POS: 'pos'>
        >>> Role.POS.status_type
        'pos_status'
    """

    SCANNER = "scanner"
    POS = "pos"

    @property
    def counterpart(self) -> "Role":
        """Return the role this one pairs with."""
        return Role.POS if self is Role.SCANNER else Role.SCANNER

    @property
    def status_type(self) -> str:
        """Envelope tag used to announce this role's presence to its peer."""
        return f"{self.value}_status"


class PeerStatus(str, Enum):
    """Presence of the counterpart connection."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class MessageType(str, Enum):
    """Envelope type tags understood by the relay.

    Tags outside this set are still valid envelopes; see ``parse``.
    """

    BARCODE = "barcode"
    BARCODE_RECEIVED = "barcode_received"
    COMMAND = "command"
    CONNECTION = "connection"
    SCANNER_STATUS = "scanner_status"
    POS_STATUS = "pos_status"
    HEARTBEAT = "heartbeat"
    PING = "ping"
    HEARTBEAT_RESPONSE = "heartbeat_response"
    CONNECTION_CONFIRMED = "connection_confirmed"
    BARCODE_SENT_CONFIRMATION = "barcode_sent_confirmation"
    ERROR = "error"
    SERVER_SHUTDOWN = "server_shutdown"

    @classmethod
    def parse(cls, tag: object) -> "MessageType | None":
        """Return the matching member, or None for unknown or non-string tags.

        Example:
            >>> MessageType.parse("barcode")
            <MessageType.BARCODE: 'barcode'>
            >>> MessageType.parse("something_else") is None
            True
        """
        if not isinstance(tag, str):
            return None
        try:
            return cls(tag)
        except ValueError:
            return None
