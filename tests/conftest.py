"""
Shared pytest fixtures for pairlink tests.

Provides:
- RecordingNotifier: Notifier that stores every outbound event in order
- notifier / service: Function-scoped MatchingService wired to a recorder
- socketio_app: The Flask-SocketIO host module with a fresh MatchingService
"""

from __future__ import annotations

import os
import tempfile

# The host module opens its log file at import time.
os.environ.setdefault(
    "PAIRLINK_LOG_FILE", os.path.join(tempfile.gettempdir(), "pairlink-test.log")
)

import pytest

from pairlink.server.matching_service import MatchingService
from pairlink.server.notifier import Notifier


class RecordingNotifier(Notifier):
    """Collects notifications as (event, recipient, payload) tuples."""

    def __init__(self):
        self.events: list[tuple[str, str | None, dict]] = []

    def matched(self, connection_id, partner_id, is_initiator, generation):
        self.events.append(
            (
                "matched",
                connection_id,
                {
                    "partner_id": partner_id,
                    "is_initiator": is_initiator,
                    "generation": generation,
                },
            )
        )

    def signal(self, connection_id, source_id, payload):
        self.events.append(("signal", connection_id, {"from": source_id, "signal": payload}))

    def partner_left(self, connection_id, partner_id):
        self.events.append(("partner_left", connection_id, {"partner_id": partner_id}))

    def online_count(self, count):
        self.events.append(("online_count", None, {"count": count}))

    def of(self, event: str, recipient: str | None = None) -> list[dict]:
        """Payloads of `event`, optionally only those sent to `recipient`."""
        return [
            payload
            for name, to, payload in self.events
            if name == event and (recipient is None or to == recipient)
        ]

    def clear(self) -> None:
        self.events.clear()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(notifier):
    return MatchingService(notifier=notifier)


@pytest.fixture
def connected(service):
    """Register connections by id and return the service."""

    def _connect(*connection_ids):
        for connection_id in connection_ids:
            service.connect(connection_id)
        return service

    return _connect


@pytest.fixture
def socketio_app():
    """The host module with a clean MatchingService for each test."""
    from pairlink.server import app as app_module
    from pairlink.server.notifier import SocketIONotifier

    original = app_module.SERVICE
    app_module.SERVICE = MatchingService(notifier=SocketIONotifier(app_module.socketio))
    try:
        yield app_module
    finally:
        app_module.SERVICE = original
