"""Designdesk - design request admission, assignment and queue ranking."""

__version__ = "0.1.0"
