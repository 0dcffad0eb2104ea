"""API route modules."""

from designdesk.api.routes import executors, queue, requests

__all__ = ["executors", "queue", "requests"]
