"""
Domain models for review scheduling.

These are pure data structures with no I/O or external dependencies.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any

from cadence.domain.constants import SEED_TIERS
from cadence.domain.exceptions import ValidationError


class Rating(IntEnum):
    """Self-rating given after a review."""

    AGAIN = 1  # Forgotten
    HARD = 2
    GOOD = 3
    EASY = 4

    @classmethod
    def parse(cls, value: Any) -> "Rating":
        """
        Coerce user input into a Rating.

        Accepts ints, integral floats and numeric strings. Bools are rejected
        even though they are ints.

        Raises:
            ValidationError: If the value is not one of 1, 2, 3, 4.
        """
        if isinstance(value, Rating):
            return value
        if isinstance(value, bool) or value is None:
            raise ValidationError(f"Rating must be 1-4, got {value!r}")

        number: Any = value
        if isinstance(value, str):
            try:
                number = int(value.strip())
            except ValueError:
                raise ValidationError(f"Rating must be 1-4, got {value!r}") from None
        elif isinstance(value, float):
            if not value.is_integer():
                raise ValidationError(f"Rating must be 1-4, got {value!r}")
            number = int(value)

        try:
            return cls(number)
        except ValueError:
            raise ValidationError(f"Rating must be 1-4, got {value!r}") from None

    @property
    def is_lapse(self) -> bool:
        return self is Rating.AGAIN


class SeedTier(str, Enum):
    """Difficulty a learner declares when collecting an item."""

    VERY_EASY = "very_easy"
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @classmethod
    def parse(cls, value: Any) -> "SeedTier":
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(t.value for t in cls)
            raise ValidationError(f"Unknown tier {value!r}; expected one of {allowed}") from None

    @property
    def interval_days(self) -> float:
        return SEED_TIERS[self.value][0]

    @property
    def difficulty(self) -> float:
        return SEED_TIERS[self.value][1]


class CardDirection(str, Enum):
    """Which side of a card is shown first."""

    KR_VN = "kr-vn"
    VN_KR = "vn-kr"

    @classmethod
    def parse(cls, value: Any) -> "CardDirection":
        try:
            return cls(value)
        except ValueError:
            allowed = " or ".join(f"'{d.value}'" for d in cls)
            raise ValidationError(f"Direction must be {allowed}, got {value!r}") from None


def _has(value: str | None) -> bool:
    return bool(value and value.strip())


class DrillKind(str, Enum):
    """The four drill types sharing the scheduling contract."""

    VOCABULARY = "vocabulary"
    TRANSLATION = "translation"
    LISTENING = "listening"
    SHADOWING = "shadowing"

    @classmethod
    def parse(cls, value: Any) -> "DrillKind":
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(k.value for k in cls)
            raise ValidationError(
                f"Unknown drill kind {value!r}; expected one of {allowed}"
            ) from None

    @property
    def is_eligible(self) -> Callable[["ContentItem"], bool]:
        """Predicate deciding whether an unseen item can be offered in Learn mode."""
        return _ELIGIBILITY[self]


@dataclass(frozen=True)
class ContentItem:
    """
    A learning unit: a word pair, a sentence with its translation, or an
    audio-bearing sentence. Opaque to the scheduler.

    `kind` is set by sources that know which drill the item was loaded for.
    """

    content_id: str
    kind: DrillKind | None = None
    text: str = ""
    translation: str | None = None
    audio: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)


_ELIGIBILITY: dict[DrillKind, Callable[[ContentItem], bool]] = {
    DrillKind.VOCABULARY: lambda item: _has(item.text) and _has(item.translation),
    DrillKind.TRANSLATION: lambda item: _has(item.text) and _has(item.translation),
    DrillKind.LISTENING: lambda item: (
        _has(item.text) and _has(item.translation) and _has(item.audio)
    ),
    DrillKind.SHADOWING: lambda item: _has(item.text) and _has(item.audio),
}


@dataclass(frozen=True)
class ReviewHistoryEntry:
    """
    One line of the append-only review log.

    Attributes:
        reviewed_at: When the rating was given (timezone-aware).
        rating: Button pressed.
        stability_before / stability_after: Stability around the rating.
        difficulty_before / difficulty_after: Difficulty around the rating.
        retrievability: Recall probability at the moment of rating.
        interval_days: Interval scheduled by this rating.
    """

    reviewed_at: datetime
    rating: Rating
    stability_before: float
    stability_after: float
    difficulty_before: float
    difficulty_after: float
    retrievability: float
    interval_days: float


@dataclass(frozen=True)
class MemoryState:
    """
    The scheduler's working variables for one card.

    Attributes:
        stability: Days until recall probability drops to 90%.
        difficulty: Card difficulty on a 1-10 scale.
        lapses: Number of Again ratings.
        current_interval_days: Interval set by the latest rating (fractional days).
        next_review_date: When the card is scheduled next.
        last_review_date: Latest rating (or seeding) time; None for fresh cards.
        review_history: Append-only log, oldest first.
    """

    stability: float
    difficulty: float
    lapses: int
    current_interval_days: float
    next_review_date: datetime
    last_review_date: datetime | None = None
    review_history: tuple[ReviewHistoryEntry, ...] = ()

    @property
    def reps(self) -> int:
        return len(self.review_history)

    @property
    def is_new(self) -> bool:
        """True until the first rating or tier seeding."""
        return self.last_review_date is None


@dataclass(frozen=True)
class ReviewRecord:
    """
    Durable per-(owner, content item) scheduling state.

    Records are immutable; every change produces a new record through
    `dataclasses.replace`.
    """

    record_id: str
    owner_id: str
    kind: DrillKind
    content_id: str
    state: MemoryState
    is_starred: bool = False
    meta: Mapping[str, str] = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    # Flattened accessors
    @property
    def stability(self) -> float:
        return self.state.stability

    @property
    def difficulty(self) -> float:
        return self.state.difficulty

    @property
    def lapses(self) -> int:
        return self.state.lapses

    @property
    def current_interval_days(self) -> float:
        return self.state.current_interval_days

    @property
    def next_review_date(self) -> datetime:
        return self.state.next_review_date

    @property
    def last_review_date(self) -> datetime | None:
        return self.state.last_review_date

    @property
    def review_history(self) -> tuple[ReviewHistoryEntry, ...]:
        return self.state.review_history

    def with_state(self, state: MemoryState, now: datetime) -> "ReviewRecord":
        return replace(self, state=state, updated_at=now)


@dataclass(frozen=True)
class DrillItem:
    """A content item paired with its review record (None when never rated)."""

    content: ContentItem
    record: ReviewRecord | None = None


@dataclass(frozen=True)
class DrillStats:
    total: int
    with_review: int
    without_review: int
    due_today: int
    starred_count: int
    difficult_count: int
