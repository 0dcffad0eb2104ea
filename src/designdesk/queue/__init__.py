"""Request assignment and queue ranking."""

from designdesk.queue.assignment import AssignmentResult, UnassignedReason, try_assign
from designdesk.queue.manager import QueueManager
from designdesk.queue.ranking import get_queue_entry, rank_queue, scoped_queue, user_queue

__all__ = [
    "AssignmentResult",
    "QueueManager",
    "UnassignedReason",
    "get_queue_entry",
    "rank_queue",
    "scoped_queue",
    "try_assign",
    "user_queue",
]
