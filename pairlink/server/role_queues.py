"""Per-role waiting lists.

Each role has one insertion-ordered queue. An id is held by at most one queue
at a time: enqueue() always removes it from both queues before appending.
"""

from __future__ import annotations

import collections
import logging

from pairlink.server.connection_registry import Role
from pairlink.utils.typing import ConnectionID

logger = logging.getLogger(__name__)


class RoleQueues:
    def __init__(self):
        self._queues: dict[Role, collections.deque[ConnectionID]] = {
            role: collections.deque() for role in Role
        }

    def enqueue(self, connection_id: ConnectionID, role: Role) -> None:
        """Append to the back of `role`'s queue, dropping any earlier entry."""
        self.remove(connection_id)
        self._queues[role].append(connection_id)
        logger.info(
            f"[Queues] Added {role.value} {connection_id}. "
            f"Queue size: {len(self._queues[role])}"
        )

    def requeue_front(self, connection_id: ConnectionID, role: Role) -> None:
        """Put an id back at the head of its queue.

        Used by the matching pass when the id was dequeued but its counterpart
        turned out to be stale, so it keeps its turn.
        """
        self.remove(connection_id)
        self._queues[role].appendleft(connection_id)

    def dequeue_oldest(self, role: Role) -> ConnectionID | None:
        queue = self._queues[role]
        if not queue:
            return None
        return queue.popleft()

    def remove(self, connection_id: ConnectionID) -> Role | None:
        """Delete the id from whichever queue holds it.

        Returns:
            The role whose queue held the id, or None if it was not queued
        """
        for role, queue in self._queues.items():
            if connection_id in queue:
                queue.remove(connection_id)
                return role
        return None

    def role_of(self, connection_id: ConnectionID) -> Role | None:
        for role, queue in self._queues.items():
            if connection_id in queue:
                return role
        return None

    def is_empty(self, role: Role) -> bool:
        return not self._queues[role]

    def sizes(self) -> dict[str, int]:
        return {role.value: len(queue) for role, queue in self._queues.items()}

    def snapshot(self) -> dict[str, list[ConnectionID]]:
        return {role.value: list(queue) for role, queue in self._queues.items()}
