# Domain Review Package
from .models import (
    CardDirection,
    ContentItem,
    DrillItem,
    DrillKind,
    DrillStats,
    MemoryState,
    Rating,
    ReviewHistoryEntry,
    ReviewRecord,
    SeedTier,
)
from .ports import Clock, ContentSource, FixedClock, ReviewRepository, SystemClock

__all__ = [
    "CardDirection",
    "ContentItem",
    "DrillItem",
    "DrillKind",
    "DrillStats",
    "MemoryState",
    "Rating",
    "ReviewHistoryEntry",
    "ReviewRecord",
    "SeedTier",
    "Clock",
    "ContentSource",
    "FixedClock",
    "ReviewRepository",
    "SystemClock",
]
