"""
Ports (interfaces) for content and review persistence.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

import random
from abc import ABC, abstractmethod
from collections.abc import Callable, Collection
from datetime import UTC, datetime

from .models import ContentItem, ReviewRecord


class ContentSource(ABC):
    """
    Port for reading learnable content of one drill kind.

    Implementations:
        - InMemoryContentSource: Items held in a dict (tests, embedding).
        - YamlContentSource: Items loaded from a YAML deck file.
    """

    @abstractmethod
    async def get(self, content_id: str) -> ContentItem | None:
        """Fetch one item by id, or None if it does not exist."""
        pass

    @abstractmethod
    async def list_all(self) -> list[ContentItem]:
        """Fetch every item, in a stable order."""
        pass

    async def sample_unseen(
        self,
        exclude: Collection[str],
        predicate: Callable[[ContentItem], bool],
        rng: random.Random | None = None,
    ) -> ContentItem | None:
        """
        Pick one random item that is eligible and not in `exclude`.

        Args:
            exclude: Content ids that already have a review record.
            predicate: Drill-specific eligibility check.
            rng: Optional random source for reproducible sampling.

        Returns:
            A ContentItem, or None when nothing qualifies.
        """
        excluded = set(exclude)
        candidates = [
            item
            for item in await self.list_all()
            if item.content_id not in excluded and predicate(item)
        ]
        if not candidates:
            return None
        return (rng or random).choice(candidates)


class ReviewRepository(ABC):
    """
    Port for loading and saving review records of one (owner, drill kind).

    Implementations:
        - InMemoryReviewRepository: Dict-backed.
        - JsonReviewRepository: One JSON document per owner and kind.
    """

    @abstractmethod
    async def get(self, content_id: str) -> ReviewRecord | None:
        """Fetch the record for a content item, or None if it was never provisioned."""
        pass

    @abstractmethod
    async def put(self, record: ReviewRecord) -> None:
        """Insert or replace the record for `record.content_id`."""
        pass

    @abstractmethod
    async def list_by_owner(self) -> list[ReviewRecord]:
        """Fetch every record of this owner and kind."""
        pass


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current time, timezone-aware."""
        pass


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(UTC)


class FixedClock(Clock):
    """A clock that only moves when told to."""

    def __init__(self, current: datetime):
        self.current = current

    def now(self) -> datetime:
        return self.current

    def set(self, current: datetime) -> None:
        self.current = current
