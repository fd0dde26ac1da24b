"""Pairing notifications.

When a connection settles, it is told its own registration succeeded and,
if the other role is already present in the same session, both sides learn
about each other. When a current connection goes away its peer is told, with
the close code and reason.
"""

from __future__ import annotations

from scanrelay.models.envelope import ConnectionEnvelope, PeerStatusEnvelope
from scanrelay.models.enums import PeerStatus
from scanrelay.observability import get_logger
from scanrelay.transport.registry import ConnectionHandle, SessionRegistry

logger = get_logger(__name__)

DEFAULT_DISCONNECT_REASON = "Desconexión sin razón específica"


class PairingNotifier:
    """Announces peer presence and absence to both sides of a session."""

    def __init__(self, registry: SessionRegistry) -> None:
        self._registry = registry

    async def announce(self, handle: ConnectionHandle) -> bool:
        """Confirm registration to ``handle`` and pair it with an open peer.

        Runs after the settle delay, so the connection may already be gone;
        every send is guarded by an open check.

        Returns:
            True if a peer was found and both sides were notified.
        """
        if not handle.is_open:
            logger.debug(
                "scanrelay.pairing.skipped_closed",
                role=handle.role.value,
                session_id=handle.session_id,
            )
            return False
        await handle.try_send(ConnectionEnvelope(session_id=handle.session_id))

        peer = self._registry.counterpart(handle)
        if peer is None or not peer.is_open:
            return False

        await handle.try_send(PeerStatusEnvelope.for_role(peer.role, PeerStatus.CONNECTED))
        await peer.try_send(PeerStatusEnvelope.for_role(handle.role, PeerStatus.CONNECTED))
        logger.info(
            "scanrelay.pairing.paired",
            session_id=handle.session_id,
            announced_by=handle.role.value,
        )
        return True

    async def notify_disconnect(
        self,
        handle: ConnectionHandle,
        code: int | None,
        reason: str | None,
    ) -> bool:
        """Tell the open peer of ``handle`` that it disconnected.

        Returns:
            True if a peer received the notice.
        """
        peer = self._registry.counterpart(handle)
        if peer is None or not peer.is_open:
            return False
        envelope = PeerStatusEnvelope.for_role(
            handle.role,
            PeerStatus.DISCONNECTED,
            code=code,
            reason=reason or DEFAULT_DISCONNECT_REASON,
        )
        delivered = await peer.try_send(envelope)
        if delivered:
            logger.info(
                "scanrelay.pairing.peer_disconnected",
                session_id=handle.session_id,
                role=handle.role.value,
                code=code,
            )
        return delivered
