"""
Drill Service: Application layer orchestrator.

One generic service per drill kind. It joins the content source with the
review records and exposes the operations the CLI and HTTP layers call.
"""

import logging
import random
from collections.abc import Mapping
from datetime import tzinfo

from cadence.application.classifiers import is_difficult_today, is_due
from cadence.application.provisioner import CardProvisioner
from cadence.application.scheduler import FsrsScheduler
from cadence.domain.exceptions import NotFoundError
from cadence.domain.review.models import (
    CardDirection,
    ContentItem,
    DrillItem,
    DrillKind,
    DrillStats,
    Rating,
    ReviewRecord,
    SeedTier,
)
from cadence.domain.review.ports import Clock, ContentSource, ReviewRepository, SystemClock

logger = logging.getLogger(__name__)


class DrillService:
    """
    Application service for one (owner, drill kind).

    Args:
        kind: Which drill this service runs.
        records: Review record repository (port).
        content: Content source (port).
        scheduler: FSRS scheduler; its timezone is the civil day boundary.
        clock: Time source; defaults to the system clock.
        owner_id: Owner recorded on provisioned records.
        rng: Random source for Learn sampling.
        write_retries: Extra attempts for a failed record write.
    """

    def __init__(
        self,
        kind: DrillKind,
        records: ReviewRepository,
        content: ContentSource,
        scheduler: FsrsScheduler | None = None,
        clock: Clock | None = None,
        owner_id: str = "default",
        rng: random.Random | None = None,
        write_retries: int = 2,
    ):
        self.kind = kind
        self._records = records
        self._content = content
        self._scheduler = scheduler or FsrsScheduler()
        self._clock = clock or SystemClock()
        self._rng = rng
        self.provisioner = CardProvisioner(
            owner_id=owner_id,
            kind=kind,
            records=records,
            content=content,
            scheduler=self._scheduler,
            clock=self._clock,
            write_retries=write_retries,
        )

    @property
    def tz(self) -> tzinfo:
        return self._scheduler.tz

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_all(self) -> list[DrillItem]:
        """Every content item with its record (None if never provisioned)."""
        items = await self._content.list_all()
        by_content = await self._records_by_content()
        return [DrillItem(content=item, record=by_content.get(item.content_id)) for item in items]

    async def get_item(self, content_id: str) -> DrillItem:
        """One content item with its record (None if never provisioned)."""
        content = await self._require_content(content_id)
        return DrillItem(content=content, record=await self._records.get(content_id))

    async def list_due(self) -> list[DrillItem]:
        now = self._clock.now()
        return [
            item
            for item in await self.list_all()
            if item.record is not None and is_due(item.record, now, self.tz)
        ]

    async def list_difficult(self) -> list[DrillItem]:
        now = self._clock.now()
        return [
            item
            for item in await self.list_all()
            if item.record is not None and is_difficult_today(item.record, now, self.tz)
        ]

    async def list_starred(self) -> list[DrillItem]:
        return [item for item in await self.list_all() if item.record and item.record.is_starred]

    async def get_stats(self) -> DrillStats:
        """
        Counts for the drill dashboard.

        Records whose content item disappeared are ignored.
        """
        items = await self.list_all()
        now = self._clock.now()
        reviewed = [item.record for item in items if item.record is not None]
        return DrillStats(
            total=len(items),
            with_review=len(reviewed),
            without_review=len(items) - len(reviewed),
            due_today=sum(1 for r in reviewed if is_due(r, now, self.tz)),
            starred_count=sum(1 for r in reviewed if r.is_starred),
            difficult_count=sum(1 for r in reviewed if is_difficult_today(r, now, self.tz)),
        )

    async def get_learn_candidate(self) -> ContentItem:
        """
        Sample one eligible item that has no review record yet.

        Raises:
            NotFoundError: If every eligible item is already being reviewed.
        """
        seen = {record.content_id for record in await self._records.list_by_owner()}
        candidate = await self._content.sample_unseen(seen, self.kind.is_eligible, self._rng)
        if candidate is None:
            raise NotFoundError(f"No new {self.kind.value} items available")
        return candidate

    async def preview(self, content_id: str) -> dict[Rating, float]:
        """Interval each rating would schedule for `content_id`, without saving."""
        record = await self._records.get(content_id)
        if record is None:
            if await self._content.get(content_id) is None:
                raise NotFoundError(f"{self.kind.value} item {content_id!r} not found")
            state = self._scheduler.create_initial_state(now=self._clock.now())
        else:
            state = record.state
        return self._scheduler.preview(state, self._clock.now())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def collect(self, content_id: str, seed_tier: SeedTier | str | None = None) -> DrillItem:
        """Start tracking an item, optionally seeded from a declared difficulty tier."""
        record = await self.provisioner.get_or_create(content_id, seed_tier)
        return DrillItem(content=await self._require_content(content_id), record=record)

    async def submit_rating(
        self,
        content_id: str,
        rating: Rating | int,
        extra: Mapping[str, str] | None = None,
    ) -> DrillItem:
        """
        Rate an item, provisioning its record on the first rating.

        Raises:
            ValidationError: Rating outside 1-4.
            NotFoundError: Content item does not exist.
        """
        record = await self.provisioner.rate(content_id, rating, extra)
        return DrillItem(content=await self._require_content(content_id), record=record)

    async def toggle_star(self, content_id: str) -> ReviewRecord:
        return await self.provisioner.toggle_star(content_id)

    async def set_card_direction(
        self, content_id: str, direction: CardDirection | str
    ) -> ReviewRecord:
        """Remember the card direction (kr-vn or vn-kr) on an existing record."""
        return await self.provisioner.set_card_direction(content_id, direction)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _records_by_content(self) -> dict[str, ReviewRecord]:
        return {record.content_id: record for record in await self._records.list_by_owner()}

    async def _require_content(self, content_id: str) -> ContentItem:
        item = await self._content.get(content_id)
        if item is None:
            raise NotFoundError(f"{self.kind.value} item {content_id!r} not found")
        return item
