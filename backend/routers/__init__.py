"""Routers package."""

from .channels import router as channels_router
from .collection import router as collection_router
from .stats import router as stats_router

__all__ = [
    "channels_router",
    "collection_router",
    "stats_router",
]
