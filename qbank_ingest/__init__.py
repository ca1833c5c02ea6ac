"""Bulk question import service for the question bank."""

__version__ = "1.0.0"
