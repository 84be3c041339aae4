"""
In-memory adapters. Used by tests and by the `memory` backend.
"""

from collections.abc import Iterable

from cadence.domain.review.models import ContentItem, ReviewRecord
from cadence.domain.review.ports import ContentSource, ReviewRepository


class InMemoryContentSource(ContentSource):
    def __init__(self, items: Iterable[ContentItem] = ()):
        self._items: dict[str, ContentItem] = {item.content_id: item for item in items}

    def add(self, item: ContentItem) -> None:
        self._items[item.content_id] = item

    async def get(self, content_id: str) -> ContentItem | None:
        return self._items.get(content_id)

    async def list_all(self) -> list[ContentItem]:
        return list(self._items.values())


class InMemoryReviewRepository(ReviewRepository):
    def __init__(self, records: Iterable[ReviewRecord] = ()):
        self._records: dict[str, ReviewRecord] = {r.content_id: r for r in records}

    async def get(self, content_id: str) -> ReviewRecord | None:
        return self._records.get(content_id)

    async def put(self, record: ReviewRecord) -> None:
        self._records[record.content_id] = record

    async def list_by_owner(self) -> list[ReviewRecord]:
        return list(self._records.values())
