"""Router package exports."""

from . import health, review, schedule

__all__ = [
    "health",
    "review",
    "schedule",
]
