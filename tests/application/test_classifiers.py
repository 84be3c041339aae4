from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

from cadence.application.classifiers import is_difficult_today, is_due
from cadence.domain.review.models import (
    DrillKind,
    MemoryState,
    Rating,
    ReviewHistoryEntry,
    ReviewRecord,
)


def make_record(next_review, history=()):
    state = MemoryState(
        stability=2.0,
        difficulty=5.0,
        lapses=0,
        current_interval_days=2.0,
        next_review_date=next_review,
        last_review_date=next_review - timedelta(days=2),
        review_history=tuple(history),
    )
    return ReviewRecord(
        record_id="rev_1",
        owner_id="default",
        kind=DrillKind.VOCABULARY,
        content_id="apple",
        state=state,
    )


def entry(at, rating):
    return ReviewHistoryEntry(
        reviewed_at=at,
        rating=rating,
        stability_before=1.0,
        stability_after=1.0,
        difficulty_before=5.0,
        difficulty_after=5.0,
        retrievability=0.9,
        interval_days=1.0,
    )


# --- is_due ---


def test_due_later_the_same_day(tz, local):
    # Scheduled for 22:00, asked at 08:00 the same civil day
    record = make_record(local(2024, 3, 4, 22))
    assert is_due(record, local(2024, 3, 4, 8), tz)


def test_not_due_before_the_day(tz, local):
    record = make_record(local(2024, 3, 5, 0, 30))
    assert not is_due(record, local(2024, 3, 4, 23, 59), tz)


def test_overdue(tz, local):
    record = make_record(local(2024, 2, 1))
    assert is_due(record, local(2024, 3, 4), tz)


def test_due_uses_configured_timezone():
    # 18:00 UTC is 01:00 the next day in Ho Chi Minh City
    record = make_record(datetime(2024, 3, 4, 18, 0, tzinfo=UTC))
    as_of = datetime(2024, 3, 4, 12, 0, tzinfo=UTC)

    assert not is_due(record, as_of, ZoneInfo("Asia/Ho_Chi_Minh"))
    assert is_due(record, as_of, ZoneInfo("UTC"))


def test_due_answer_stable_through_the_day(tz, local):
    record = make_record(local(2024, 3, 4, 23))
    answers = {is_due(record, local(2024, 3, 4, hour), tz) for hour in range(24)}
    assert answers == {True}


# --- is_difficult_today ---


def test_difficult_after_again_today(tz, local):
    record = make_record(local(2024, 3, 5), [entry(local(2024, 3, 4, 9), Rating.AGAIN)])
    assert is_difficult_today(record, local(2024, 3, 4, 21), tz)


def test_difficult_after_hard_today(tz, local):
    record = make_record(local(2024, 3, 5), [entry(local(2024, 3, 4, 9), Rating.HARD)])
    assert is_difficult_today(record, local(2024, 3, 4, 9, 1), tz)


def test_good_today_is_not_difficult(tz, local):
    record = make_record(local(2024, 3, 5), [entry(local(2024, 3, 4, 9), Rating.GOOD)])
    assert not is_difficult_today(record, local(2024, 3, 4, 10), tz)


def test_difficulty_expires_at_next_civil_day(tz, local):
    record = make_record(local(2024, 3, 6), [entry(local(2024, 3, 4, 23, 30), Rating.AGAIN)])

    assert is_difficult_today(record, local(2024, 3, 4, 23, 59), tz)
    assert not is_difficult_today(record, local(2024, 3, 5, 0, 1), tz)


def test_any_difficult_entry_today_counts(tz, local):
    history = [
        entry(local(2024, 3, 4, 8), Rating.AGAIN),
        entry(local(2024, 3, 4, 9), Rating.GOOD),
    ]
    record = make_record(local(2024, 3, 5), history)
    assert is_difficult_today(record, local(2024, 3, 4, 12), tz)


def test_empty_history_is_not_difficult(tz, local):
    assert not is_difficult_today(make_record(local(2024, 3, 4)), local(2024, 3, 4), tz)


def test_malformed_entries_are_skipped(tz, local):
    broken = entry(None, Rating.AGAIN)
    history = [broken, entry(local(2024, 3, 4, 9), Rating.HARD)]
    record = make_record(local(2024, 3, 5), history)

    assert is_difficult_today(record, local(2024, 3, 4, 10), tz)
    assert not is_difficult_today(make_record(local(2024, 3, 5), [broken]), local(2024, 3, 4), tz)
