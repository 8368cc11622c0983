"""Symmetric pairing table.

The SessionTable is the single source of truth for who is paired with whom.
Every session carries a generation number drawn from a table-wide monotonic
counter, so an event that names an older generation can be told apart from
one addressed to the current pairing even when the same two connections are
paired again.
"""

from __future__ import annotations

import dataclasses
import itertools
import logging
import time

from pairlink.utils.typing import ConnectionID, Generation

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class Session:
    """A pairing of exactly two connections.

    Attributes:
        a: First member (the learner when opened by the matching pass)
        b: Second member
        initiator: The member that starts the handshake
        generation: Monotonic id of this pairing
        opened_at: Wall-clock time the session was opened
    """

    a: ConnectionID
    b: ConnectionID
    initiator: ConnectionID
    generation: Generation
    opened_at: float = dataclasses.field(default_factory=time.time)

    def partner_of(self, connection_id: ConnectionID) -> ConnectionID:
        return self.b if connection_id == self.a else self.a

    def is_initiator(self, connection_id: ConnectionID) -> bool:
        return connection_id == self.initiator


class SessionTable:
    """Maps each paired connection to its Session.

    Both members point at the same Session object, so the two entries can
    never disagree about the pairing. Both entries are written and removed
    together under the owning MatchingService lock.
    """

    def __init__(self):
        self._sessions: dict[ConnectionID, Session] = {}
        self._generations = itertools.count(1)

    def __len__(self) -> int:
        return len(self._sessions) // 2

    def open(self, a: ConnectionID, b: ConnectionID, initiator_is_a: bool) -> Session:
        if a == b:
            raise ValueError(f"Cannot pair connection {a} with itself")
        for connection_id in (a, b):
            if connection_id in self._sessions:
                raise ValueError(f"Connection {connection_id} is already paired")

        session = Session(
            a=a,
            b=b,
            initiator=a if initiator_is_a else b,
            generation=next(self._generations),
        )
        self._sessions.update({a: session, b: session})
        logger.info(
            f"[Sessions] Opened generation {session.generation}: "
            f"{a} <-> {b} (initiator {session.initiator})"
        )
        return session

    def session_of(self, connection_id: ConnectionID) -> Session | None:
        return self._sessions.get(connection_id)

    def partner_of(self, connection_id: ConnectionID) -> ConnectionID | None:
        session = self._sessions.get(connection_id)
        if session is None:
            return None
        return session.partner_of(connection_id)

    def generation_of(self, connection_id: ConnectionID) -> Generation | None:
        session = self._sessions.get(connection_id)
        return session.generation if session else None

    def close(self, connection_id: ConnectionID) -> ConnectionID | None:
        """Remove both directions of the pairing `connection_id` belongs to.

        Returns:
            The former partner, or None if the connection was not paired
        """
        session = self._sessions.pop(connection_id, None)
        if session is None:
            return None

        partner_id = session.partner_of(connection_id)
        self._sessions.pop(partner_id, None)
        logger.info(
            f"[Sessions] Closed generation {session.generation}: "
            f"{connection_id} <-> {partner_id}"
        )
        return partner_id

    def sessions(self) -> list[Session]:
        """Every open session, once each, oldest first."""
        unique = {session.generation: session for session in self._sessions.values()}
        return [unique[g] for g in sorted(unique)]

    def pairs(self) -> list[dict]:
        return [
            {
                "a": s.a,
                "b": s.b,
                "initiator": s.initiator,
                "generation": s.generation,
            }
            for s in self.sessions()
        ]
