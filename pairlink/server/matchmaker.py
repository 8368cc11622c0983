"""Initiator selection for newly matched pairs.

When the matching pass pairs a learner with a teacher, exactly one of them has
to start the handshake. The Matchmaker decides which one. Any rule works as
long as it is:

    - deterministic given the two connection ids, and
    - symmetric: both ends can compute the same answer on their own, without
      further negotiation.

The default LexicographicMatchmaker picks the id that sorts lower by Unicode
code point (plain ``min``). This is not the same order as a locale-aware
comparison such as JavaScript's ``localeCompare``, so clients should take
their role from ``is_initiator`` in the ``matched`` event rather than
recompute it. HashedMatchmaker is an alternative for transports whose ids
share a common prefix, where lexicographic order would always favour the same
kind of connection.

The matching pass itself (queue draining and liveness checks) lives in
MatchingService.try_match(); it calls pick_initiator() for every live pair.
"""

from __future__ import annotations

import hashlib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from pairlink.utils.typing import ConnectionID

logger = logging.getLogger(__name__)


@dataclass
class MatchCandidate:
    """A connection taken off the head of its role queue.

    Attributes:
        connection_id: Transport-assigned id of the connection
        role: Role value of the queue it came from ("learner" or "teacher")
    """

    connection_id: ConnectionID
    role: str


class Matchmaker(ABC):
    """Abstract base class for initiator tie-break rules.

    Thread safety: pick_initiator() is called under the MatchingService lock.
    Implementations should be pure functions of their arguments.
    """

    @abstractmethod
    def pick_initiator(
        self,
        learner: MatchCandidate,
        teacher: MatchCandidate,
    ) -> ConnectionID:
        """Return the connection id of the member that starts the handshake.

        Args:
            learner: The dequeued learner
            teacher: The dequeued teacher

        Returns:
            Either learner.connection_id or teacher.connection_id. The same
            two ids must always produce the same answer, whatever their
            roles.
        """
        ...


class LexicographicMatchmaker(Matchmaker):
    """The id that sorts lower is the initiator.

    Example:
        learner "Ab3", teacher "Zq9" -> "Ab3" initiates
        learner "x1", teacher "b7"   -> "b7" initiates
    """

    def pick_initiator(
        self,
        learner: MatchCandidate,
        teacher: MatchCandidate,
    ) -> ConnectionID:
        initiator = min(learner.connection_id, teacher.connection_id)
        logger.debug(
            f"[LexicographicMatchmaker] {learner.connection_id} vs "
            f"{teacher.connection_id}: initiator={initiator}"
        )
        return initiator


class HashedMatchmaker(Matchmaker):
    """The initiator is chosen from a SHA-256 digest of the sorted pair.

    Clients compute sha256("<low>:<high>") over the two ids in sorted order;
    an even first byte makes the lower id the initiator, an odd one the
    higher id.
    """

    def pick_initiator(
        self,
        learner: MatchCandidate,
        teacher: MatchCandidate,
    ) -> ConnectionID:
        low, high = sorted((learner.connection_id, teacher.connection_id))
        digest = hashlib.sha256(f"{low}:{high}".encode("utf-8")).digest()
        initiator = low if digest[0] % 2 == 0 else high
        logger.debug(
            f"[HashedMatchmaker] {learner.connection_id} vs "
            f"{teacher.connection_id}: initiator={initiator}"
        )
        return initiator
