"""Matching engine, signal relay and lifecycle coordination.

MatchingService owns the ConnectionRegistry, the RoleQueues and the
SessionTable and is the only thing allowed to mutate them. Every public
method runs under one lock, so no operation can observe another one half
applied, and notifications are sent while the lock is still held: a relay
checks the partner at the moment it forwards, and clients receive events in
the order the state changed.

Key responsibilities:
1. Queue connections by role and drain the queues pairwise (try_match)
2. Pick exactly one initiator per pair through the configured Matchmaker
3. Forward handshake payloads only between current partners (relay)
4. Tear sessions down on next/disconnect and re-queue whoever is left
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from pairlink.server.connection_registry import (ConnectionRegistry,
                                                 ConnectionState, Role)
from pairlink.server.exceptions import InvariantViolation
from pairlink.server.matchmaker import (LexicographicMatchmaker,
                                        MatchCandidate, Matchmaker)
from pairlink.server.notifier import Notifier
from pairlink.server.role_queues import RoleQueues
from pairlink.server.session_table import Session, SessionTable
from pairlink.utils.typing import ConnectionID

logger = logging.getLogger(__name__)


class MatchingService:
    """
    Pairs learners with teachers and relays signaling between partners.

    All inbound transport events map onto one method each: connect, join,
    relay (signal), skip (next), disconnect and online_count.
    """

    def __init__(
        self,
        notifier: Notifier | None = None,
        matchmaker: Matchmaker | None = None,
    ):
        self.notifier = notifier or Notifier()
        self.matchmaker = matchmaker or LexicographicMatchmaker()

        self.registry = ConnectionRegistry()
        self.queues = RoleQueues()
        self.sessions = SessionTable()
        self.lock = threading.Lock()

        # Statistics
        self.total_matches = 0
        self.total_relayed = 0
        self.total_dropped_signals = 0
        self.total_stale_discards = 0

        logger.info(
            f"MatchingService initialized with {type(self.matchmaker).__name__}"
        )

    ######################
    # Inbound operations #
    ######################

    def connect(self, connection_id: ConnectionID) -> None:
        """Register a freshly connected transport session."""
        with self.lock:
            self.registry.register(connection_id)
            self._emit_online_count()

    def join(self, connection_id: ConnectionID, role: Role | str) -> bool:
        """Enter the queue for `role` and attempt to match.

        Joining while paired is treated as an implicit next: the current
        session is torn down (the partner is told and re-queued) before the
        new role is applied.

        Returns:
            True if the connection was queued (and possibly matched)
        """
        parsed_role = Role.parse(role)
        if parsed_role is None:
            logger.warning(f"[Lifecycle] {connection_id} tried to join with unknown role {role!r}")
            return False

        with self.lock:
            if not self.registry.is_live(connection_id):
                logger.warning(f"[Lifecycle] Join from unregistered connection {connection_id}")
                return False

            if self.sessions.session_of(connection_id) is not None:
                logger.info(
                    f"[Lifecycle] {connection_id} re-joined while paired, "
                    f"treating as next"
                )
                self._teardown_session(connection_id)

            if not self.registry.assign_role(connection_id, parsed_role):
                return False

            self._enqueue(connection_id, parsed_role)
            self._try_match()
        return True

    def relay(
        self,
        from_id: ConnectionID,
        to_id: ConnectionID,
        payload: Any,
        generation: int | None = None,
    ) -> bool:
        """Forward an opaque payload to the sender's current partner.

        The payload is dropped when `to_id` is not the sender's partner right
        now, when the partner is gone, or when the sender names a generation
        other than the live session's.

        Returns:
            True if the payload was forwarded
        """
        with self.lock:
            session = self.sessions.session_of(from_id)
            if session is None or session.partner_of(from_id) != to_id:
                self.total_dropped_signals += 1
                logger.debug(f"[Relay] Dropped signal {from_id} -> {to_id}: not partners")
                return False

            if generation is not None and generation != session.generation:
                self.total_dropped_signals += 1
                logger.debug(
                    f"[Relay] Dropped signal {from_id} -> {to_id}: stale generation "
                    f"{generation!r} (current {session.generation})"
                )
                return False

            if not self.registry.is_live(to_id):
                self.total_dropped_signals += 1
                logger.debug(f"[Relay] Dropped signal {from_id} -> {to_id}: partner gone")
                return False

            self.notifier.signal(to_id, from_id, payload)
            self.total_relayed += 1
            logger.debug(f"[Relay] {from_id} -> {to_id} (generation {session.generation})")
            return True

    def skip(self, connection_id: ConnectionID, generation: int | None = None) -> bool:
        """Leave the current partner (if any) and wait for a new one.

        A `generation` that does not name the connection's current session
        means the request was sent for a pairing that no longer exists; it is
        ignored so it cannot end the newer one.

        Returns:
            True if the request was applied
        """
        with self.lock:
            connection = self.registry.get(connection_id)
            if connection is None or not connection.is_live:
                logger.debug(f"[Lifecycle] Next from unknown connection {connection_id}")
                return False

            if generation is not None and generation != self.sessions.generation_of(connection_id):
                logger.info(
                    f"[Lifecycle] Ignoring stale next from {connection_id} "
                    f"(generation {generation!r})"
                )
                return False

            logger.info(
                f"[Lifecycle] {connection_id} requested next, "
                f"role: {connection.role.value if connection.role else None}"
            )
            self._teardown_session(connection_id)
            if self.queues.remove(connection_id) is not None:
                self.registry.transition_to(connection_id, ConnectionState.UNASSIGNED)

            if connection.role is None:
                logger.warning(f"[Lifecycle] {connection_id} requested next but has no role set")
                return True

            self._enqueue(connection_id, connection.role)
            self._try_match()
        return True

    def disconnect(self, connection_id: ConnectionID) -> None:
        """Tear down everything the connection is part of and forget it."""
        with self.lock:
            if self.registry.mark_disconnected(connection_id) is None:
                logger.debug(f"[Lifecycle] Disconnect for unknown connection {connection_id}")
                return

            self._teardown_session(connection_id)
            self.queues.remove(connection_id)
            self.registry.unregister(connection_id)
            logger.info(f"[Lifecycle] {connection_id} disconnected")

            self._try_match()

    def try_match(self) -> list[Session]:
        """Run one matching pass. Normally triggered by join/next/disconnect."""
        with self.lock:
            return self._try_match()

    def online_count(self) -> int:
        with self.lock:
            return self.registry.online_count()

    #####################
    # Read-only queries #
    #####################

    def partner_of(self, connection_id: ConnectionID) -> ConnectionID | None:
        with self.lock:
            return self.sessions.partner_of(connection_id)

    def state_of(self, connection_id: ConnectionID) -> ConnectionState | None:
        with self.lock:
            connection = self.registry.get(connection_id)
            return connection.state if connection else None

    def get_stats(self) -> dict:
        """Get service statistics for monitoring/debugging."""
        with self.lock:
            return self._stats()

    def _stats(self) -> dict:
        return {
            "active_sessions": len(self.sessions),
            "total_matches": self.total_matches,
            "total_relayed": self.total_relayed,
            "total_dropped_signals": self.total_dropped_signals,
            "total_stale_discards": self.total_stale_discards,
        }

    def snapshot(self) -> dict:
        """Diagnostic view of queues and pairings."""
        with self.lock:
            queued = self.queues.snapshot()
            return {
                "learners": len(queued[Role.LEARNER.value]),
                "teachers": len(queued[Role.TEACHER.value]),
                "total_connected": self.registry.online_count(),
                "learner_ids": queued[Role.LEARNER.value],
                "teacher_ids": queued[Role.TEACHER.value],
                "pairs": self.sessions.pairs(),
                "stats": self._stats(),
            }

    def check_invariants(self) -> None:
        """Verify every connection is exactly one of unassigned, queued or paired.

        Raises:
            InvariantViolation: describing the first inconsistency found
        """
        with self.lock:
            queued = self.queues.snapshot()
            all_queued = [cid for ids in queued.values() for cid in ids]
            if len(all_queued) != len(set(all_queued)):
                raise InvariantViolation(f"Duplicate queue membership: {queued}")

            for cid in all_queued:
                if cid not in self.registry:
                    raise InvariantViolation(f"Queued id {cid} is not registered")

            for session in self.sessions.sessions():
                for member in (session.a, session.b):
                    if member not in self.registry:
                        raise InvariantViolation(f"Paired id {member} is not registered")
                    if self.sessions.partner_of(session.partner_of(member)) != member:
                        raise InvariantViolation(f"One-sided pairing for {member}")

            for connection in self.registry.connections():
                cid = connection.connection_id
                queue_role = self.queues.role_of(cid)
                is_paired = self.sessions.session_of(cid) is not None

                if queue_role is not None and is_paired:
                    raise InvariantViolation(f"{cid} is both queued and paired")
                if queue_role is not None and queue_role != connection.role:
                    raise InvariantViolation(
                        f"{cid} has role {connection.role} but waits in the {queue_role.value} queue"
                    )

                if is_paired:
                    expected = ConnectionState.PAIRED
                elif queue_role is not None:
                    expected = ConnectionState.QUEUED
                else:
                    expected = ConnectionState.UNASSIGNED
                if connection.state != expected:
                    raise InvariantViolation(
                        f"{cid} is recorded as {connection.state.name} but is {expected.name}"
                    )

    #############################
    # Internals (lock is held) #
    #############################

    def _enqueue(self, connection_id: ConnectionID, role: Role) -> None:
        self.queues.enqueue(connection_id, role)
        self.registry.transition_to(connection_id, ConnectionState.QUEUED)

    def _teardown_session(self, connection_id: ConnectionID) -> ConnectionID | None:
        """Close the connection's session and hand the partner back to its queue.

        The caller's own connection ends up UNASSIGNED; re-queueing it is the
        caller's decision.

        Returns:
            The abandoned partner, or None if there was no session
        """
        partner_id = self.sessions.close(connection_id)
        if partner_id is None:
            return None

        self.registry.transition_to(connection_id, ConnectionState.UNASSIGNED)

        partner = self.registry.get(partner_id)
        if partner is None:
            return partner_id

        self.registry.transition_to(partner_id, ConnectionState.UNASSIGNED)
        if not partner.is_live:
            return partner_id

        logger.info(f"[Lifecycle] Notifying {partner_id} that {connection_id} left")
        self.notifier.partner_left(partner_id, connection_id)

        if partner.role is not None:
            self._enqueue(partner_id, partner.role)
        return partner_id

    def _try_match(self) -> list[Session]:
        logger.info(f"[Matching] Queues before matching: {self.queues.sizes()}")

        opened = []
        while not (self.queues.is_empty(Role.LEARNER) or self.queues.is_empty(Role.TEACHER)):
            learner_id = self.queues.dequeue_oldest(Role.LEARNER)
            teacher_id = self.queues.dequeue_oldest(Role.TEACHER)

            learner_live = self.registry.is_live(learner_id)
            teacher_live = self.registry.is_live(teacher_id)
            if learner_live and teacher_live:
                opened.append(self._open_session(learner_id, teacher_id))
                continue

            # A live head keeps its turn when its counterpart went stale.
            if learner_live:
                self.queues.requeue_front(learner_id, Role.LEARNER)
            else:
                self._discard_stale(learner_id, Role.LEARNER)
            if teacher_live:
                self.queues.requeue_front(teacher_id, Role.TEACHER)
            else:
                self._discard_stale(teacher_id, Role.TEACHER)

        logger.info(f"[Matching] Queues after matching: {self.queues.sizes()}")
        self._emit_online_count()
        return opened

    def _discard_stale(self, connection_id: ConnectionID, role: Role) -> None:
        """Forget a dequeued id whose connection went away before it was matched."""
        logger.warning(f"[Matching] Discarding stale {role.value} {connection_id}")
        self.total_stale_discards += 1
        if connection_id in self.registry:
            self.registry.transition_to(connection_id, ConnectionState.UNASSIGNED)

    def _open_session(self, learner_id: ConnectionID, teacher_id: ConnectionID) -> Session:
        initiator = self.matchmaker.pick_initiator(
            MatchCandidate(connection_id=learner_id, role=Role.LEARNER.value),
            MatchCandidate(connection_id=teacher_id, role=Role.TEACHER.value),
        )
        if initiator not in (learner_id, teacher_id):
            self.queues.requeue_front(learner_id, Role.LEARNER)
            self.queues.requeue_front(teacher_id, Role.TEACHER)
            raise ValueError(
                f"{type(self.matchmaker).__name__} picked {initiator!r}, "
                f"which is neither {learner_id} nor {teacher_id}"
            )

        session = self.sessions.open(learner_id, teacher_id, initiator_is_a=initiator == learner_id)
        self.registry.transition_to(learner_id, ConnectionState.PAIRED)
        self.registry.transition_to(teacher_id, ConnectionState.PAIRED)
        self.total_matches += 1

        logger.info(
            f"[Matching] Matched learner {learner_id} with teacher {teacher_id} "
            f"(generation {session.generation}, initiator {initiator})"
        )

        for member in (learner_id, teacher_id):
            self.notifier.matched(
                member,
                session.partner_of(member),
                session.is_initiator(member),
                session.generation,
            )
        return session

    def _emit_online_count(self) -> None:
        self.notifier.online_count(self.registry.online_count())
