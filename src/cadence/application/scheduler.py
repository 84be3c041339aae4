"""
FSRS scheduler: maps (memory state, rating) to the next memory state.

This is a pure computation module with no I/O. Callers own persistence.

Core formulas:
- Retrievability R(t, S) = (1 + FACTOR * t / S) ^ DECAY
- Interval I(S, r) = S / FACTOR * (r ^ (1 / DECAY) - 1)
- Stability grows on success (less for hard cards, more when R was low)
  and resets sharply on a lapse, to at most half its previous value.
"""

import logging
import math
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta, tzinfo

from cadence.domain.calendar import as_aware, day_key, load_timezone, start_of_next_day
from cadence.domain.constants import (
    DECAY,
    DEFAULT_DESIRED_RETENTION,
    DEFAULT_INITIAL_DIFFICULTY,
    DEFAULT_INITIAL_STABILITY,
    DEFAULT_MAXIMUM_INTERVAL_DAYS,
    DEFAULT_TIMEZONE,
    DEFAULT_WEIGHTS,
    FACTOR,
    LAPSE_STABILITY_CAP,
    MAX_DESIRED_RETENTION,
    MAX_DIFFICULTY,
    MIN_DESIRED_RETENTION,
    MIN_DIFFICULTY,
    MIN_INTERVAL_DAYS,
    MIN_STABILITY,
)
from cadence.domain.exceptions import InvariantViolation
from cadence.domain.review.models import MemoryState, Rating, ReviewHistoryEntry, SeedTier

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400.0


@dataclass(frozen=True)
class FsrsParameters:
    """
    Tunable scheduler parameters.

    Attributes:
        weights: The 17 FSRS-4.5 weights.
        desired_retention: Target recall probability at the next review.
        maximum_interval_days: Upper bound for any interval.
    """

    weights: tuple[float, ...] = DEFAULT_WEIGHTS
    desired_retention: float = DEFAULT_DESIRED_RETENTION
    maximum_interval_days: float = DEFAULT_MAXIMUM_INTERVAL_DAYS

    def __post_init__(self):
        if len(self.weights) != len(DEFAULT_WEIGHTS):
            raise ValueError(f"Expected {len(DEFAULT_WEIGHTS)} weights, got {len(self.weights)}")
        clamped = max(MIN_DESIRED_RETENTION, min(MAX_DESIRED_RETENTION, self.desired_retention))
        object.__setattr__(self, "desired_retention", clamped)


class FsrsScheduler:
    """
    Stateless FSRS scheduler.

    The timezone only decides where a civil day ends: an item rated today is
    never scheduled back onto today.
    """

    def __init__(self, params: FsrsParameters | None = None, tz: tzinfo | str = DEFAULT_TIMEZONE):
        self.params = params or FsrsParameters()
        self.w = self.params.weights
        self.tz = load_timezone(tz) if isinstance(tz, str) else tz

    # ------------------------------------------------------------------
    # Curve primitives
    # ------------------------------------------------------------------

    def retrievability(self, elapsed_days: float, stability: float) -> float:
        """
        Probability of recall after `elapsed_days` with the given stability.

        Returns:
            Retrievability between 0 and 1.
        """
        if stability <= 0:
            return 0.0
        return math.pow(1 + FACTOR * max(0.0, elapsed_days) / stability, DECAY)

    def next_interval(self, stability: float) -> float:
        """Fractional days until retrievability falls to the desired retention."""
        r = self.params.desired_retention
        interval = stability / FACTOR * (math.pow(r, 1 / DECAY) - 1)
        return max(MIN_INTERVAL_DAYS, min(self.params.maximum_interval_days, interval))

    def stability_for_interval(self, interval_days: float) -> float:
        """Inverse of `next_interval` (ignoring clamping)."""
        r = self.params.desired_retention
        return max(MIN_STABILITY, interval_days * FACTOR / (math.pow(r, 1 / DECAY) - 1))

    def init_stability(self, rating: Rating) -> float:
        return max(MIN_STABILITY, self.w[rating.value - 1])

    def init_difficulty(self, rating: Rating) -> float:
        return _clamp_difficulty(self.w[4] - (rating.value - 3) * self.w[5])

    def next_difficulty(self, difficulty: float, rating: Rating) -> float:
        """
        Again/Hard push difficulty up, Good/Easy pull it down, then a small
        mean reversion towards the Easy starting difficulty.
        """
        shifted = difficulty - self.w[6] * (rating.value - 2.5)
        anchor = self.init_difficulty(Rating.EASY)
        reverted = self.w[7] * anchor + (1 - self.w[7]) * shifted
        return _clamp_difficulty(reverted)

    def next_recall_stability(
        self, stability: float, difficulty: float, retrievability: float, rating: Rating
    ) -> float:
        hard_penalty = self.w[15] if rating is Rating.HARD else 1.0
        easy_bonus = self.w[16] if rating is Rating.EASY else 1.0
        growth = (
            math.exp(self.w[8])
            * (11 - difficulty)
            * math.pow(stability, -self.w[9])
            * (math.exp((1 - retrievability) * self.w[10]) - 1)
            * hard_penalty
            * easy_bonus
        )
        return stability * (1 + max(0.0, growth))

    def next_forget_stability(
        self, stability: float, difficulty: float, retrievability: float
    ) -> float:
        forgotten = (
            self.w[11]
            * math.pow(difficulty, -self.w[12])
            * (math.pow(stability + 1, self.w[13]) - 1)
            * math.exp((1 - retrievability) * self.w[14])
        )
        # No floor: every lapse must strictly lower a positive stability.
        return min(forgotten, stability * LAPSE_STABILITY_CAP)

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def create_initial_state(
        self, seed_tier: SeedTier | str | None = None, now: datetime | None = None
    ) -> MemoryState:
        """
        Build the state of a card that has never been rated.

        Without a tier the card is due immediately. With a tier the card starts
        on the tier's fixed interval (very_easy 14d, easy 7d, medium 3d, hard 1d)
        and a stability matching that interval.
        """
        now = as_aware(now or datetime.now(UTC))

        if seed_tier is None:
            return MemoryState(
                stability=DEFAULT_INITIAL_STABILITY,
                difficulty=DEFAULT_INITIAL_DIFFICULTY,
                lapses=0,
                current_interval_days=0.0,
                next_review_date=now,
                last_review_date=None,
            )

        tier = SeedTier.parse(seed_tier)
        interval = tier.interval_days
        return MemoryState(
            stability=self.stability_for_interval(interval),
            difficulty=tier.difficulty,
            lapses=0,
            current_interval_days=interval,
            next_review_date=now + timedelta(days=interval),
            last_review_date=now,
        )

    def advance(
        self, state: MemoryState, rating: Rating | int, now: datetime | None = None
    ) -> MemoryState:
        """
        Apply one rating to a memory state.

        Args:
            state: Current state (not modified).
            rating: User rating, 1-4.
            now: Time of the rating (default: current UTC time).

        Returns:
            The new state with one extra history entry.

        Raises:
            ValidationError: If the rating is not 1-4.
        """
        rating = Rating.parse(rating)
        now = as_aware(now or datetime.now(UTC))

        if state.is_new:
            retrievability = 1.0
            if rating.is_lapse:
                stability = self.next_forget_stability(
                    state.stability, state.difficulty, retrievability
                )
                stability = min(stability, self.init_stability(rating))
            else:
                stability = max(state.stability, self.init_stability(rating))
            difficulty = self.init_difficulty(rating)
        else:
            elapsed = (now - as_aware(state.last_review_date)).total_seconds() / SECONDS_PER_DAY
            retrievability = self.retrievability(elapsed, state.stability)
            # Stability is computed from the pre-review difficulty.
            if rating.is_lapse:
                stability = self.next_forget_stability(
                    state.stability, state.difficulty, retrievability
                )
            else:
                stability = self.next_recall_stability(
                    state.stability, state.difficulty, retrievability, rating
                )
            difficulty = self.next_difficulty(state.difficulty, rating)

        interval = self._interval_past_today(self.next_interval(stability), now)
        entry = ReviewHistoryEntry(
            reviewed_at=now,
            rating=rating,
            stability_before=state.stability,
            stability_after=stability,
            difficulty_before=state.difficulty,
            difficulty_after=difficulty,
            retrievability=retrievability,
            interval_days=interval,
        )

        new_state = MemoryState(
            stability=stability,
            difficulty=difficulty,
            lapses=state.lapses + (1 if rating.is_lapse else 0),
            current_interval_days=interval,
            next_review_date=now + timedelta(days=interval),
            last_review_date=now,
            review_history=state.review_history + (entry,),
        )
        check_state(new_state)

        logger.debug(
            f"Rated {rating.name}: S {state.stability:.3f}->{stability:.3f} "
            f"D {state.difficulty:.2f}->{difficulty:.2f} R={retrievability:.3f} "
            f"I={interval:.3f}d"
        )
        return new_state

    def preview(self, state: MemoryState, now: datetime | None = None) -> dict[Rating, float]:
        """
        Interval (days) each rating would produce, without changing anything.

        Useful for showing "Good: 3 days" labels on rating buttons.
        """
        now = as_aware(now or datetime.now(UTC))
        return {
            rating: self.advance(state, rating, now).current_interval_days for rating in Rating
        }

    def _interval_past_today(self, interval: float, now: datetime) -> float:
        """Stretch an interval that would land on today to the next civil midnight."""
        due = now + timedelta(days=interval)
        if day_key(due, self.tz) > day_key(now, self.tz):
            return interval
        midnight = start_of_next_day(now, self.tz)
        return (midnight - now).total_seconds() / SECONDS_PER_DAY


def _clamp_difficulty(value: float) -> float:
    return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, value))


def check_state(state: MemoryState) -> None:
    """
    Raise InvariantViolation if a state must not be persisted.
    """
    if not math.isfinite(state.stability) or state.stability <= 0:
        raise InvariantViolation(f"Stability must be finite and > 0, got {state.stability}")
    if not math.isfinite(state.current_interval_days) or state.current_interval_days < 0:
        raise InvariantViolation(
            f"Interval must be finite and >= 0, got {state.current_interval_days}"
        )
    if not MIN_DIFFICULTY <= state.difficulty <= MAX_DIFFICULTY:
        raise InvariantViolation(f"Difficulty out of bounds: {state.difficulty}")
    if state.lapses < 0:
        raise InvariantViolation(f"Lapses must be >= 0, got {state.lapses}")
    if state.last_review_date is not None and state.next_review_date < state.last_review_date:
        raise InvariantViolation("next_review_date precedes last_review_date")
