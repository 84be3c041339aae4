"""
Card provisioner: lazily creates review records and applies ratings.

Every rating is one read-modify-write on a single record, serialised per
content item. A computed state is persisted or discarded, never recomputed.
"""

import asyncio
import logging
from collections import defaultdict
from collections.abc import Mapping
from dataclasses import replace

from ulid import ULID

from cadence.application.scheduler import FsrsScheduler, check_state
from cadence.domain.constants import DEFAULT_WRITE_RETRIES, META_CARD_DIRECTION
from cadence.domain.exceptions import NotFoundError
from cadence.domain.review.models import (
    CardDirection,
    DrillKind,
    Rating,
    ReviewRecord,
    SeedTier,
)
from cadence.domain.review.ports import Clock, ContentSource, ReviewRepository, SystemClock

logger = logging.getLogger(__name__)


def generate_record_id() -> str:
    """Generate a stable record ID using ULID."""
    return f"rev_{ULID()}"


class CardProvisioner:
    """
    Owns the lifecycle of review records for one owner and drill kind.

    Follows Dependency Inversion: depends on the ReviewRepository and
    ContentSource ports, not concrete adapters.
    """

    def __init__(
        self,
        owner_id: str,
        kind: DrillKind,
        records: ReviewRepository,
        content: ContentSource,
        scheduler: FsrsScheduler | None = None,
        clock: Clock | None = None,
        write_retries: int = DEFAULT_WRITE_RETRIES,
    ):
        self.owner_id = owner_id
        self.kind = kind
        self._records = records
        self._content = content
        self._scheduler = scheduler or FsrsScheduler()
        self._clock = clock or SystemClock()
        self._write_retries = max(0, write_retries)
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def get_or_create(
        self, content_id: str, seed_tier: SeedTier | str | None = None
    ) -> ReviewRecord:
        """
        Return the record for `content_id`, provisioning it on first use.

        Args:
            content_id: The content item the record tracks.
            seed_tier: Optional declared difficulty for a brand-new record.
                Ignored when a record already exists.

        Raises:
            NotFoundError: If the content item does not exist.
            ValidationError: If the tier is unknown, even for an existing record.
        """
        if seed_tier is not None:
            seed_tier = SeedTier.parse(seed_tier)
        async with self._locks[content_id]:
            return await self._get_or_create(content_id, seed_tier)

    async def apply_rating(
        self,
        record: ReviewRecord,
        rating: Rating | int,
        extra: Mapping[str, str] | None = None,
    ) -> ReviewRecord:
        """
        Advance a record by one rating and persist it.

        The record is re-read under the content lock so a stale copy from the
        caller cannot roll back a concurrent rating.

        Raises:
            ValidationError: If the rating is not 1-4. Nothing is written.
        """
        rating = Rating.parse(rating)
        async with self._locks[record.content_id]:
            current = await self._records.get(record.content_id) or record
            now = self._clock.now()
            state = self._scheduler.advance(current.state, rating, now)
            updated = current.with_state(state, now)
            if extra:
                updated = replace(updated, meta={**updated.meta, **extra})
            await self._persist(updated)

        logger.info(
            f"[{self.kind.value}] {record.content_id} rated {rating.name}; "
            f"next review {state.next_review_date.isoformat()} "
            f"({state.current_interval_days:.2f}d, lapses={state.lapses})"
        )
        return updated

    async def rate(
        self,
        content_id: str,
        rating: Rating | int,
        extra: Mapping[str, str] | None = None,
    ) -> ReviewRecord:
        """Provision if needed, then rate. Validates the rating before touching storage."""
        rating = Rating.parse(rating)
        record = await self.get_or_create(content_id)
        return await self.apply_rating(record, rating, extra)

    async def toggle_star(self, content_id: str) -> ReviewRecord:
        """
        Flip the star flag. Starring an unrated item provisions it first; this
        never counts as a rating.
        """
        async with self._locks[content_id]:
            record = await self._get_or_create(content_id, None)
            updated = replace(record, is_starred=not record.is_starred, updated_at=self._clock.now())
            await self._persist(updated)

        logger.info(f"[{self.kind.value}] {content_id} starred={updated.is_starred}")
        return updated

    async def set_card_direction(
        self, content_id: str, direction: CardDirection | str
    ) -> ReviewRecord:
        """
        Store which side of the card is shown first. History is left untouched.

        Raises:
            ValidationError: If the direction is not kr-vn or vn-kr.
            NotFoundError: If the item has no review record yet.
        """
        direction = CardDirection.parse(direction)
        async with self._locks[content_id]:
            record = await self._records.get(content_id)
            if record is None:
                raise NotFoundError(f"No review record for {self.kind.value} item {content_id!r}")
            updated = replace(
                record,
                meta={**record.meta, META_CARD_DIRECTION: direction.value},
                updated_at=self._clock.now(),
            )
            await self._persist(updated)

        logger.info(f"[{self.kind.value}] {content_id} direction={direction.value}")
        return updated

    async def _get_or_create(
        self, content_id: str, seed_tier: SeedTier | str | None
    ) -> ReviewRecord:
        existing = await self._records.get(content_id)
        if existing is not None:
            return existing

        if await self._content.get(content_id) is None:
            raise NotFoundError(f"{self.kind.value} item {content_id!r} not found")

        now = self._clock.now()
        record = ReviewRecord(
            record_id=generate_record_id(),
            owner_id=self.owner_id,
            kind=self.kind,
            content_id=content_id,
            state=self._scheduler.create_initial_state(seed_tier, now),
            created_at=now,
            updated_at=now,
        )
        await self._persist(record)
        logger.debug(
            f"[{self.kind.value}] Provisioned {content_id} "
            f"(tier={seed_tier.value if isinstance(seed_tier, SeedTier) else seed_tier})"
        )
        return record

    async def _persist(self, record: ReviewRecord) -> None:
        """Write the already computed record, retrying the same value on I/O errors."""
        check_state(record.state)
        attempt = 0
        while True:
            try:
                await self._records.put(record)
                return
            except OSError as e:
                if attempt >= self._write_retries:
                    raise
                attempt += 1
                logger.warning(
                    f"Write of {record.content_id} failed ({e}); retry {attempt}/{self._write_retries}"
                )
