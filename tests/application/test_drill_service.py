"""
Tests for DrillService: listing, stats, Learn sampling and the end-to-end
rating flows.
"""

import random
from datetime import timedelta

import pytest

from cadence.application.drill_service import DrillService
from cadence.domain.exceptions import NotFoundError, ValidationError
from cadence.domain.review.models import ContentItem, DrillKind, Rating
from cadence.infrastructure.adapters.memory import InMemoryContentSource


@pytest.mark.asyncio
async def test_list_all_joins_records(service):
    await service.submit_rating("apple", Rating.GOOD)

    items = await service.list_all()

    assert [i.content.content_id for i in items] == ["apple", "water", "book", "blank"]
    by_id = {i.content.content_id: i for i in items}
    assert by_id["apple"].record is not None
    assert by_id["water"].record is None


@pytest.mark.asyncio
async def test_fresh_again_not_due_today_but_due_tomorrow(service, clock, local):
    clock.set(local(2024, 3, 4, 10))
    item = await service.submit_rating("apple", Rating.AGAIN)

    assert item.record.lapses == 1
    assert item.record.current_interval_days < 1
    assert await service.list_due() == []

    clock.set(local(2024, 3, 5, 0, 5))
    assert [i.content.content_id for i in await service.list_due()] == ["apple"]


@pytest.mark.asyncio
async def test_easy_tier_due_after_a_week(service, clock, local):
    clock.set(local(2024, 3, 4, 9))
    item = await service.collect("apple", "easy")
    assert item.record.review_history == ()

    clock.set(local(2024, 3, 4, 15))
    rated = await service.submit_rating("apple", Rating.GOOD)
    assert rated.record.next_review_date >= local(2024, 3, 11, 0, 0)

    clock.set(local(2024, 3, 9))
    assert await service.list_due() == []

    clock.set(local(2024, 3, 12))
    assert [i.content.content_id for i in await service.list_due()] == ["apple"]


@pytest.mark.asyncio
async def test_collect_untiered_is_due_now(service):
    item = await service.collect("water")
    assert item.record.state.is_new
    assert [i.content.content_id for i in await service.list_due()] == ["water"]


@pytest.mark.asyncio
async def test_submit_rating_rejects_invalid_rating(service, records):
    for bad in (0, 5, "abc", None):
        with pytest.raises(ValidationError):
            await service.submit_rating("apple", bad)
    assert await records.list_by_owner() == []


@pytest.mark.asyncio
async def test_submit_rating_unknown_content(service):
    with pytest.raises(NotFoundError):
        await service.submit_rating("durian", Rating.GOOD)


@pytest.mark.asyncio
async def test_difficult_list_tracks_today(service, clock, local):
    await service.submit_rating("apple", Rating.AGAIN)
    await service.submit_rating("water", Rating.HARD)
    await service.submit_rating("book", Rating.GOOD)

    assert [i.content.content_id for i in await service.list_difficult()] == ["apple", "water"]

    clock.set(local(2024, 3, 5, 0, 1))
    assert await service.list_difficult() == []


@pytest.mark.asyncio
async def test_double_again_same_day(service, clock, local):
    clock.set(local(2024, 3, 4, 9))
    await service.submit_rating("water", Rating.AGAIN)
    clock.set(local(2024, 3, 4, 18))
    item = await service.submit_rating("water", Rating.AGAIN)

    assert item.record.lapses == 2
    assert len(item.record.review_history) == 2
    assert [i.content.content_id for i in await service.list_difficult()] == ["water"]

    clock.set(local(2024, 3, 5, 9))
    assert await service.list_difficult() == []
    assert (await service.get_stats()).difficult_count == 0


@pytest.mark.asyncio
async def test_starred_list(service):
    await service.toggle_star("book")
    await service.toggle_star("water")
    await service.toggle_star("water")

    assert [i.content.content_id for i in await service.list_starred()] == ["book"]


@pytest.mark.asyncio
async def test_stats(service, records, clock):
    await service.submit_rating("apple", Rating.AGAIN)
    await service.collect("water")
    await service.toggle_star("water")

    stats = await service.get_stats()

    assert stats.total == 4
    assert stats.with_review == 2
    assert stats.without_review == 2
    assert stats.due_today == 1
    assert stats.starred_count == 1
    assert stats.difficult_count == 1


@pytest.mark.asyncio
async def test_stats_ignore_orphan_records(records, scheduler, clock, vocab_items):
    content = InMemoryContentSource(vocab_items)
    service = DrillService(DrillKind.VOCABULARY, records, content, scheduler, clock)
    await service.submit_rating("apple", Rating.GOOD)

    orphaned = DrillService(
        DrillKind.VOCABULARY, records, InMemoryContentSource(vocab_items[1:]), scheduler, clock
    )
    stats = await orphaned.get_stats()

    assert stats.total == 3
    assert stats.with_review == 0


@pytest.mark.asyncio
async def test_learn_candidate_skips_seen_and_ineligible(service):
    await service.submit_rating("apple", Rating.GOOD)
    await service.collect("water")

    candidate = await service.get_learn_candidate()

    # "blank" has no text and "apple"/"water" already have records
    assert candidate.content_id == "book"


@pytest.mark.asyncio
async def test_learn_candidate_exhausted(service):
    for content_id in ("apple", "water", "book"):
        await service.collect(content_id)

    with pytest.raises(NotFoundError, match="No new vocabulary items"):
        await service.get_learn_candidate()


@pytest.mark.asyncio
async def test_learn_candidate_is_random_but_reproducible(records, scheduler, clock):
    items = [ContentItem(content_id=f"w{i}", text=f"t{i}", translation=f"v{i}") for i in range(20)]

    def build(seed):
        return DrillService(
            DrillKind.VOCABULARY,
            records,
            InMemoryContentSource(items),
            scheduler,
            clock,
            rng=random.Random(seed),
        )

    first = await build(3).get_learn_candidate()
    second = await build(3).get_learn_candidate()
    assert first == second


@pytest.mark.asyncio
async def test_listening_requires_audio(records, scheduler, clock):
    content = InMemoryContentSource(
        [
            ContentItem(content_id="s1", text="안녕", translation="xin chào"),
            ContentItem(content_id="s2", text="감사", translation="cảm ơn", audio="s2.mp3"),
        ]
    )
    service = DrillService(DrillKind.LISTENING, records, content, scheduler, clock)

    assert (await service.get_learn_candidate()).content_id == "s2"


@pytest.mark.asyncio
async def test_preview_without_record(service, records):
    intervals = await service.preview("apple")

    assert set(intervals) == set(Rating)
    assert await records.get("apple") is None


@pytest.mark.asyncio
async def test_preview_matches_next_rating(service, clock):
    await service.submit_rating("apple", Rating.GOOD)
    clock.set(clock.now() + timedelta(days=3))

    intervals = await service.preview("apple")
    rated = await service.submit_rating("apple", Rating.EASY)

    assert rated.record.current_interval_days == pytest.approx(intervals[Rating.EASY])


@pytest.mark.asyncio
async def test_preview_unknown_content(service):
    with pytest.raises(NotFoundError):
        await service.preview("durian")


@pytest.mark.asyncio
async def test_get_item_with_and_without_record(service):
    unrated = await service.get_item("water")
    assert unrated.content.translation == "nước"
    assert unrated.record is None

    await service.submit_rating("water", Rating.GOOD)
    rated = await service.get_item("water")
    assert rated.record is not None
    assert [e.rating for e in rated.record.review_history] == [Rating.GOOD]


@pytest.mark.asyncio
async def test_get_item_unknown_content(service):
    with pytest.raises(NotFoundError):
        await service.get_item("durian")


@pytest.mark.asyncio
async def test_card_direction_stored_on_meta(service):
    rated = await service.submit_rating("apple", Rating.HARD)

    record = await service.set_card_direction("apple", "vn-kr")

    assert record.meta["card_direction"] == "vn-kr"
    assert record.review_history == rated.record.review_history
    assert (await service.get_item("apple")).record.meta["card_direction"] == "vn-kr"

    record = await service.set_card_direction("apple", "kr-vn")
    assert record.meta["card_direction"] == "kr-vn"


@pytest.mark.asyncio
async def test_card_direction_rejects_unknown_value(service):
    await service.collect("apple")
    with pytest.raises(ValidationError, match="kr-vn"):
        await service.set_card_direction("apple", "sideways")


@pytest.mark.asyncio
async def test_card_direction_needs_a_record(service):
    with pytest.raises(NotFoundError):
        await service.set_card_direction("book", "kr-vn")


@pytest.mark.asyncio
async def test_collect_rejects_unknown_tier_for_tracked_item(service):
    await service.collect("apple")
    with pytest.raises(ValidationError):
        await service.collect("apple", "bogus")
