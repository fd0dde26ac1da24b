"""Message routing for relay connections.

Every inbound frame is dispatched on its ``type`` tag:

- ``barcode`` (scanner → pos): forwarded verbatim to the session's POS and
  acknowledged to the scanner with ``barcode_received``; without an open POS
  the scanner gets an ``error`` envelope instead.
- ``command`` (pos → scanner): forwarded verbatim to the session's scanner;
  dropped without a reply when no scanner is open.
- ``ping`` / ``heartbeat_response``: answered with a ``heartbeat``.
- ``connection_confirmed`` / ``barcode_sent_confirmation``: logged only.
- anything else: logged only, not an error.

Failures never escape :meth:`MessageRouter.route`; they are logged and,
where there is an originator to tell, reported back as ``error`` envelopes.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from scanrelay.errors import MalformedFrameError
from scanrelay.models.envelope import (
    BarcodeReceivedEnvelope,
    ErrorEnvelope,
    HeartbeatEnvelope,
    InboundFrame,
    decode_frame,
)
from scanrelay.models.enums import MessageType, Role
from scanrelay.observability import get_logger, get_metrics
from scanrelay.transport.registry import SEND_ERRORS, ConnectionHandle, SessionRegistry

logger = get_logger(__name__)

# Client-visible error texts, kept identical to what deployed clients match on
ERROR_NO_POS = "No hay un POS conectado para recibir el código"
ERROR_POS_UNAVAILABLE = "POS no disponible para recibir códigos"
ERROR_FORWARD_BARCODE = "Error al enviar código al POS"
ERROR_FORWARD_COMMAND = "Error al reenviar comando al escáner"
ERROR_MALFORMED = "Error al procesar mensaje"

FrameHandler = Callable[[ConnectionHandle, InboundFrame], Awaitable[None]]


class MessageRouter:
    """Interprets inbound frames and performs the matching action.

    Example:
        >>> router = MessageRouter(SessionRegistry())
        >>> MessageType.BARCODE in router.handled_types()
        True
    """

    def __init__(self, registry: SessionRegistry) -> None:
        self._registry = registry
        self._handlers: dict[MessageType, FrameHandler] = {
            MessageType.BARCODE: self._handle_barcode,
            MessageType.COMMAND: self._handle_command,
            MessageType.PING: self._handle_ping,
            MessageType.HEARTBEAT_RESPONSE: self._handle_ping,
            MessageType.CONNECTION_CONFIRMED: self._handle_connection_confirmed,
            MessageType.BARCODE_SENT_CONFIRMATION: self._handle_sent_confirmation,
        }

    def handled_types(self) -> list[MessageType]:
        return list(self._handlers)

    async def route(self, handle: ConnectionHandle, raw: str | bytes) -> None:
        """Process one inbound frame from ``handle``.

        Any traffic counts as liveness, including frames that fail to decode.
        """
        handle.mark_alive()
        try:
            frame = decode_frame(raw)
        except MalformedFrameError as e:
            get_metrics().increment_counter(
                "scanrelay_malformed_frames_total", {"role": handle.role.value}
            )
            logger.warning(
                "scanrelay.router.malformed_frame",
                role=handle.role.value,
                session_id=handle.session_id,
                binary=isinstance(raw, (bytes, bytearray)),
                error=e.reason,
            )
            await handle.try_send(ErrorEnvelope(message=ERROR_MALFORMED, details=e.reason))
            return

        message_type = frame.message_type
        handler = self._handlers.get(message_type) if message_type is not None else None
        if handler is None:
            get_metrics().increment_counter(
                "scanrelay_unknown_messages_total", {"role": handle.role.value}
            )
            logger.info(
                "scanrelay.router.unhandled_type",
                role=handle.role.value,
                session_id=handle.session_id,
                type=frame.type_tag,
                preview=frame.preview(),
            )
            return
        await handler(handle, frame)

    async def _handle_barcode(self, handle: ConnectionHandle, frame: InboundFrame) -> None:
        if handle.role is not Role.SCANNER:
            logger.info(
                "scanrelay.router.unexpected_origin",
                type=MessageType.BARCODE.value,
                role=handle.role.value,
                session_id=handle.session_id,
            )
            return

        code = frame.data.get("code")
        pos = self._registry.lookup(Role.POS, handle.session_id)
        if pos is None or not pos.is_open:
            get_metrics().increment_counter("scanrelay_missing_peer_total")
            logger.info(
                "scanrelay.router.no_pos",
                session_id=handle.session_id,
                registered=pos is not None,
            )
            message = ERROR_NO_POS if pos is None else ERROR_POS_UNAVAILABLE
            await handle.try_send(ErrorEnvelope(message=message))
            return

        try:
            await pos.send_text(frame.text)
        except SEND_ERRORS as e:
            get_metrics().increment_counter(
                "scanrelay_forward_errors_total", {"type": MessageType.BARCODE.value}
            )
            logger.warning(
                "scanrelay.router.forward_failed",
                type=MessageType.BARCODE.value,
                session_id=handle.session_id,
                error=str(e),
            )
            await handle.try_send(ErrorEnvelope(message=ERROR_FORWARD_BARCODE, details=str(e)))
            return

        get_metrics().increment_counter("scanrelay_barcodes_forwarded_total")
        logger.info("scanrelay.router.barcode_forwarded", session_id=handle.session_id, code=code)
        await handle.try_send(BarcodeReceivedEnvelope(code=code))

    async def _handle_command(self, handle: ConnectionHandle, frame: InboundFrame) -> None:
        if handle.role is not Role.POS:
            logger.info(
                "scanrelay.router.unexpected_origin",
                type=MessageType.COMMAND.value,
                role=handle.role.value,
                session_id=handle.session_id,
            )
            return

        scanner = self._registry.lookup(Role.SCANNER, handle.session_id)
        if scanner is None or not scanner.is_open:
            # No acknowledgment contract exists for this direction
            get_metrics().increment_counter("scanrelay_commands_dropped_total")
            logger.info("scanrelay.router.command_dropped", session_id=handle.session_id)
            return

        try:
            await scanner.send_text(frame.text)
        except SEND_ERRORS as e:
            get_metrics().increment_counter(
                "scanrelay_forward_errors_total", {"type": MessageType.COMMAND.value}
            )
            logger.warning(
                "scanrelay.router.forward_failed",
                type=MessageType.COMMAND.value,
                session_id=handle.session_id,
                error=str(e),
            )
            await handle.try_send(ErrorEnvelope(message=ERROR_FORWARD_COMMAND, details=str(e)))
            return

        get_metrics().increment_counter("scanrelay_commands_forwarded_total")
        logger.info(
            "scanrelay.router.command_forwarded",
            session_id=handle.session_id,
            command=frame.data.get("command"),
        )

    async def _handle_ping(self, handle: ConnectionHandle, frame: InboundFrame) -> None:
        await handle.try_send(HeartbeatEnvelope())

    async def _handle_connection_confirmed(
        self, handle: ConnectionHandle, frame: InboundFrame
    ) -> None:
        logger.info(
            "scanrelay.router.connection_confirmed",
            role=handle.role.value,
            session_id=handle.session_id,
            device_info=frame.data.get("deviceInfo"),
        )

    async def _handle_sent_confirmation(
        self, handle: ConnectionHandle, frame: InboundFrame
    ) -> None:
        logger.debug(
            "scanrelay.router.barcode_sent_confirmation",
            role=handle.role.value,
            session_id=handle.session_id,
        )
