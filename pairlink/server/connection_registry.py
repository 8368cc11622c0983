"""Connection lifecycle state tracking.

The registry owns one Connection record per live Socket.IO session. Queue and
session membership live in RoleQueues and SessionTable; the state stored here
mirrors them so the MatchingService can validate every transition it makes.

ConnectionState (this file): UNASSIGNED -> QUEUED -> PAIRED -> QUEUED | gone
"""

from __future__ import annotations

import dataclasses
import logging
import time
from enum import Enum, auto

from pairlink.utils.typing import ConnectionID

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """The two participant categories. A learner is only matched to a teacher."""

    LEARNER = "learner"
    TEACHER = "teacher"

    @classmethod
    def parse(cls, value) -> Role | None:
        """Map a client-supplied role string to a Role, or None if unknown.

        The short forms "learn" and "teach" are what older clients send.
        """
        if isinstance(value, Role):
            return value
        if not isinstance(value, str):
            return None
        return ROLE_ALIASES.get(value.strip().lower())


ROLE_ALIASES = {
    "learner": Role.LEARNER,
    "learn": Role.LEARNER,
    "teacher": Role.TEACHER,
    "teach": Role.TEACHER,
}


class ConnectionState(Enum):
    """Connection lifecycle states.

    - UNASSIGNED: connected, no role chosen (or role chosen but not waiting)
    - QUEUED: waiting in exactly one role queue
    - PAIRED: member of exactly one session
    """
    UNASSIGNED = auto()
    QUEUED = auto()
    PAIRED = auto()


# Valid connection state transitions
VALID_TRANSITIONS = {
    ConnectionState.UNASSIGNED: {ConnectionState.QUEUED},  # join
    ConnectionState.QUEUED: {
        ConnectionState.PAIRED,      # matched
        ConnectionState.QUEUED,      # re-join or next while waiting
        ConnectionState.UNASSIGNED,  # removed from queue without a role
    },
    ConnectionState.PAIRED: {
        ConnectionState.QUEUED,      # next, or partner left
        ConnectionState.UNASSIGNED,  # session closed, no role to re-enter
    },
}


@dataclasses.dataclass
class Connection:
    """One live participant handle."""

    connection_id: ConnectionID
    role: Role | None = None
    is_live: bool = True
    state: ConnectionState = ConnectionState.UNASSIGNED
    connected_at: float = dataclasses.field(default_factory=time.time)


class ConnectionRegistry:
    """Tracks every live connection, its role and its lifecycle state.

    Not thread-safe on its own; the owning MatchingService serializes access.
    """

    def __init__(self):
        self._connections: dict[ConnectionID, Connection] = {}

    def __contains__(self, connection_id: ConnectionID) -> bool:
        return connection_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)

    def register(self, connection_id: ConnectionID) -> Connection:
        """Create an unassigned, live connection. Re-registering is a no-op."""
        existing = self._connections.get(connection_id)
        if existing is not None:
            logger.debug(f"[Registry] {connection_id} already registered")
            return existing

        connection = Connection(connection_id=connection_id)
        self._connections[connection_id] = connection
        logger.info(f"[Registry] Registered {connection_id}")
        return connection

    def get(self, connection_id: ConnectionID) -> Connection | None:
        return self._connections.get(connection_id)

    def is_live(self, connection_id: ConnectionID) -> bool:
        connection = self._connections.get(connection_id)
        return connection is not None and connection.is_live

    def assign_role(self, connection_id: ConnectionID, role: Role) -> bool:
        """Set the role of a connection.

        Refused while the connection is paired: the caller must tear the
        session down first, otherwise the connection could end up queued and
        paired at once.

        Returns:
            True if the role was set, False otherwise
        """
        connection = self._connections.get(connection_id)
        if connection is None or not connection.is_live:
            logger.warning(f"[Registry] Cannot assign role to unknown or dead connection {connection_id}")
            return False

        if connection.state == ConnectionState.PAIRED:
            logger.error(
                f"[Registry] Refusing role {role.value} for {connection_id}: "
                f"connection is still paired"
            )
            return False

        connection.role = role
        logger.info(f"[Registry] {connection_id} assigned role {role.value}")
        return True

    def transition_to(self, connection_id: ConnectionID, new_state: ConnectionState) -> bool:
        """Validate and apply a state transition.

        Returns:
            True if transition successful, False if invalid
        """
        connection = self._connections.get(connection_id)
        if connection is None:
            logger.error(f"[Registry] Transition to {new_state.name} for unknown connection {connection_id}")
            return False

        current_state = connection.state
        valid_targets = VALID_TRANSITIONS.get(current_state, set())

        if new_state not in valid_targets:
            logger.error(
                f"[Registry] Invalid transition for {connection_id}: "
                f"{current_state.name} -> {new_state.name}. "
                f"Valid transitions: {[s.name for s in valid_targets]}"
            )
            return False

        connection.state = new_state
        logger.debug(f"[Registry] {connection_id}: {current_state.name} -> {new_state.name}")
        return True

    def mark_disconnected(self, connection_id: ConnectionID) -> Connection | None:
        """Flip liveness to False. The record stays until unregister()."""
        connection = self._connections.get(connection_id)
        if connection is None:
            return None
        connection.is_live = False
        logger.info(f"[Registry] {connection_id} marked disconnected")
        return connection

    def unregister(self, connection_id: ConnectionID) -> None:
        if self._connections.pop(connection_id, None) is not None:
            logger.info(f"[Registry] Unregistered {connection_id}")

    def online_count(self) -> int:
        return sum(1 for c in self._connections.values() if c.is_live)

    def connections(self) -> list[Connection]:
        return list(self._connections.values())
