"""ORM models for database persistence."""

from .base import Base, utc_now
from .entry import Entry
from .mention import Mention

__all__ = [
    "Base",
    "Entry",
    "Mention",
    "utc_now",
]
