"""Exceptions raised by Designdesk."""


class DesignDeskError(Exception):
    """Base class for all Designdesk errors."""


class QueueInputError(DesignDeskError):
    """A required request or roster input was missing."""


class InvalidExecutorError(DesignDeskError):
    """An executor record cannot take part in assignment (e.g. capacity <= 0)."""


class AssignmentError(DesignDeskError):
    """A request cannot be assigned in its current state."""


class InvalidTransitionError(DesignDeskError):
    """A status change is not allowed from the request's current status."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move request from '{current}' to '{target}'")


class RequestNotFoundError(DesignDeskError):
    """No request exists with the given ID."""


class ExecutorNotFoundError(DesignDeskError):
    """No executor exists with the given ID."""
