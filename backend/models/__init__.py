"""Database models."""

from database import Base

from models.channel import Platform, TrackedChannel
from models.stats_snapshot import StatsSnapshot

__all__ = [
    "Base",
    "Platform",
    "TrackedChannel",
    "StatsSnapshot",
]
