"""Outbound notifications from the matching core.

MatchingService never touches the transport directly. It reports what
happened through a Notifier, and the host process decides how that reaches
the client. SocketIONotifier is the production implementation.
"""

from __future__ import annotations

import logging
from typing import Any

import flask_socketio

from pairlink.configurations.configuration_constants import OutboundEvents
from pairlink.utils.typing import ConnectionID, Generation

logger = logging.getLogger(__name__)


class Notifier:
    """Base notifier interface. Every method is fire-and-forget."""

    def matched(
        self,
        connection_id: ConnectionID,
        partner_id: ConnectionID,
        is_initiator: bool,
        generation: Generation,
    ) -> None:
        pass

    def signal(
        self,
        connection_id: ConnectionID,
        source_id: ConnectionID,
        payload: Any,
    ) -> None:
        pass

    def partner_left(
        self,
        connection_id: ConnectionID,
        partner_id: ConnectionID,
    ) -> None:
        pass

    def online_count(self, count: int) -> None:
        pass


class SocketIONotifier(Notifier):
    """Delivers notifications as Socket.IO events.

    Each connection id is a Socket.IO sid, and every sid is in a room of the
    same name, so per-connection events are emitted with room=connection_id.
    """

    def __init__(self, socketio: flask_socketio.SocketIO, namespace: str = "/"):
        self.socketio = socketio
        self.namespace = namespace

    def matched(self, connection_id, partner_id, is_initiator, generation):
        self.socketio.emit(
            OutboundEvents.Matched,
            {
                "partner_id": partner_id,
                "is_initiator": is_initiator,
                "generation": generation,
            },
            room=connection_id,
            namespace=self.namespace,
        )

    def signal(self, connection_id, source_id, payload):
        self.socketio.emit(
            OutboundEvents.Signal,
            {"from": source_id, "signal": payload},
            room=connection_id,
            namespace=self.namespace,
        )

    def partner_left(self, connection_id, partner_id):
        self.socketio.emit(
            OutboundEvents.PartnerLeft,
            {"partner_id": partner_id},
            room=connection_id,
            namespace=self.namespace,
        )

    def online_count(self, count):
        self.socketio.emit(
            OutboundEvents.OnlineCount,
            count,
            namespace=self.namespace,
        )
        logger.debug(f"[Notifier] Online count: {count}")
