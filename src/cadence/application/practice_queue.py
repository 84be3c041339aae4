"""
Practice queues for one study session.

Two tiers:

1. Due and Learn ratings go through the scheduler and are persisted.
2. Difficult and Starred queues are local re-drill loops. Their actions only
   reorder the session queue and never touch a review record.

Queues are per session and never authoritative: after any resync, the review
records decide what is due, difficult or starred.
"""

import logging
from collections.abc import Iterable, Iterator, Mapping
from enum import Enum
from typing import Any

from cadence.application.drill_service import DrillService
from cadence.domain.exceptions import NotFoundError, ValidationError
from cadence.domain.review.models import ContentItem, DrillItem, Rating

logger = logging.getLogger(__name__)


class PracticeMode(str, Enum):
    DUE = "due"
    DIFFICULT = "difficult"
    STARRED = "starred"
    LEARN = "learn"

    @classmethod
    def parse(cls, value: Any) -> "PracticeMode":
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            raise ValidationError(f"Unknown mode {value!r}; expected one of {allowed}") from None


class LocalAction(str, Enum):
    """Session-only verdicts for Difficult/Starred drills."""

    EASY = "easy"  # Drop from this loop
    HARD = "hard"  # Send to the back of the loop

    @classmethod
    def parse(cls, value: Any) -> "LocalAction":
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(f"Local review must be easy or hard, got {value!r}") from None


def _unique(ids: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(ids))


class DueQueue:
    """Due items for this session; rated items are removed optimistically."""

    def __init__(self, ids: Iterable[str] = ()):
        self.ids: list[str] = _unique(ids)

    def __len__(self) -> int:
        return len(self.ids)

    def __iter__(self) -> Iterator[str]:
        return iter(self.ids)

    @property
    def head(self) -> str | None:
        return self.ids[0] if self.ids else None

    @property
    def needs_resync(self) -> bool:
        return not self.ids

    def rebuild(self, due_ids: Iterable[str]) -> None:
        self.ids = _unique(due_ids)

    def sync(self, due_ids: Iterable[str]) -> None:
        """Keep the session order for ids that are still due; rebuild when empty."""
        due = _unique(due_ids)
        if not self.ids:
            self.ids = due
            return
        still_due = set(due)
        self.ids = [content_id for content_id in self.ids if content_id in still_due]

    def remove(self, content_id: str) -> bool:
        if content_id not in self.ids:
            return False
        self.ids.remove(content_id)
        return True


class LocalDrillQueue:
    """Starred or Difficult loop. Reordered locally, never scheduler-scored."""

    def __init__(self, ids: Iterable[str] = ()):
        self.ids: list[str] = _unique(ids)

    def __len__(self) -> int:
        return len(self.ids)

    def __iter__(self) -> Iterator[str]:
        return iter(self.ids)

    @property
    def head(self) -> str | None:
        return self.ids[0] if self.ids else None

    def sync(self, qualifying: Iterable[str]) -> None:
        """
        Stable merge: existing order is kept, disqualified ids are dropped and
        new qualifiers are appended in the order given.
        """
        incoming = _unique(qualifying)
        allowed = set(incoming)
        kept = [content_id for content_id in self.ids if content_id in allowed]
        kept_set = set(kept)
        self.ids = kept + [content_id for content_id in incoming if content_id not in kept_set]

    def reset(self, qualifying: Iterable[str]) -> None:
        """Start the loop over with the full qualifying set."""
        self.ids = _unique(qualifying)

    def local_review(self, action: LocalAction | str, content_id: str | None = None) -> str | None:
        """
        Apply a local verdict to `content_id` (default: the head).

        Returns:
            The id acted on, or None if the queue does not contain it.
        """
        action = LocalAction.parse(action)
        target = content_id if content_id is not None else self.head
        if target is None or target not in self.ids:
            return None

        self.ids.remove(target)
        if action is LocalAction.HARD:
            self.ids.append(target)
        return target


class LearnQueue:
    """Holds the single unseen candidate currently offered."""

    def __init__(self):
        self.candidate: ContentItem | None = None

    @property
    def head(self) -> str | None:
        return self.candidate.content_id if self.candidate else None

    def clear(self) -> None:
        self.candidate = None


class PracticeQueueManager:
    """
    Sequences items for the four browsing modes of one drill kind.

    Usage:
        manager = PracticeQueueManager(service)
        await manager.enter(PracticeMode.DUE)
        await manager.rate(Rating.GOOD)
    """

    def __init__(self, service: DrillService):
        self.service = service
        self.mode = PracticeMode.DUE
        self.due = DueQueue()
        self.difficult = LocalDrillQueue()
        self.starred = LocalDrillQueue()
        self.learn = LearnQueue()

    async def enter(self, mode: PracticeMode | str) -> str | None:
        """
        Switch mode and rebuild its queue from the review records.

        Returns:
            The content id now at the head of the queue, if any.
        """
        self.mode = PracticeMode.parse(mode)
        if self.mode is PracticeMode.DUE:
            self.due.rebuild(await self._due_ids())
        elif self.mode is PracticeMode.DIFFICULT:
            self.difficult.sync(await self._difficult_ids())
        elif self.mode is PracticeMode.STARRED:
            self.starred.sync(await self._starred_ids())
        else:
            await self._load_learn_candidate()

        logger.debug(
            f"[{self.service.kind.value}] Entered {self.mode.value} mode, head={self.current()}"
        )
        return self.current()

    async def refresh(self) -> None:
        """Resync every queue with the authoritative records."""
        self.due.sync(await self._due_ids())
        self.difficult.sync(await self._difficult_ids())
        self.starred.sync(await self._starred_ids())
        if self.learn.candidate is None and self.mode is PracticeMode.LEARN:
            await self._load_learn_candidate()

    def current(self) -> str | None:
        return self.active_queue.head

    @property
    def active_queue(self) -> DueQueue | LocalDrillQueue | LearnQueue:
        return {
            PracticeMode.DUE: self.due,
            PracticeMode.DIFFICULT: self.difficult,
            PracticeMode.STARRED: self.starred,
            PracticeMode.LEARN: self.learn,
        }[self.mode]

    async def rate(
        self,
        rating: Rating | int,
        content_id: str | None = None,
        extra: Mapping[str, str] | None = None,
    ) -> DrillItem:
        """
        Submit a scheduler-backed rating in Due or Learn mode.

        Args:
            rating: 1-4.
            content_id: Item to rate (default: the current head).
            extra: Metadata stored on the record alongside the rating.

        Raises:
            ValidationError: Bad rating, or the mode only allows local review.
            NotFoundError: Nothing to rate.
        """
        rating = Rating.parse(rating)

        if self.mode is PracticeMode.DUE:
            target = content_id or self.due.head
            if target is None:
                raise NotFoundError("Nothing is due")
            result = await self.service.submit_rating(target, rating, extra)
            self.due.remove(target)
            if self.due.needs_resync:
                logger.info(f"[{self.service.kind.value}] Due queue exhausted, resyncing")
                self.due.rebuild(await self._due_ids())
            return result

        if self.mode is PracticeMode.LEARN:
            target = content_id or self.learn.head
            if target is None:
                raise NotFoundError(f"No new {self.service.kind.value} items available")
            result = await self.service.submit_rating(target, rating, extra)
            self.learn.clear()
            await self._load_learn_candidate()
            return result

        raise ValidationError(f"{self.mode.value} mode uses local review, not ratings")

    def local_review(self, action: LocalAction | str, content_id: str | None = None) -> str | None:
        """
        Reorder the Difficult/Starred loop. Review records are not touched.

        Raises:
            ValidationError: If the current mode is scheduler-backed.
        """
        if self.mode is PracticeMode.DIFFICULT:
            return self.difficult.local_review(action, content_id)
        if self.mode is PracticeMode.STARRED:
            return self.starred.local_review(action, content_id)
        raise ValidationError(f"{self.mode.value} mode requires a rating")

    async def reset(self) -> None:
        """Loop the current Difficult/Starred queue again from the full qualifying set."""
        if self.mode is PracticeMode.DIFFICULT:
            self.difficult.reset(await self._difficult_ids())
        elif self.mode is PracticeMode.STARRED:
            self.starred.reset(await self._starred_ids())

    async def _load_learn_candidate(self) -> None:
        try:
            self.learn.candidate = await self.service.get_learn_candidate()
        except NotFoundError:
            self.learn.candidate = None

    async def _due_ids(self) -> list[str]:
        return [item.content.content_id for item in await self.service.list_due()]

    async def _difficult_ids(self) -> list[str]:
        return [item.content.content_id for item in await self.service.list_difficult()]

    async def _starred_ids(self) -> list[str]:
        return [item.content.content_id for item in await self.service.list_starred()]
