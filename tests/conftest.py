import os
import random
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from cadence.application.drill_service import DrillService
from cadence.application.scheduler import FsrsScheduler
from cadence.domain.review.models import ContentItem, DrillKind
from cadence.domain.review.ports import FixedClock
from cadence.infrastructure.adapters.memory import (
    InMemoryContentSource,
    InMemoryReviewRepository,
)

TZ_NAME = "Asia/Ho_Chi_Minh"
TZ = ZoneInfo(TZ_NAME)


def local(year, month, day, hour=10, minute=0) -> datetime:
    """A moment in the scheduling timezone."""
    return datetime(year, month, day, hour, minute, tzinfo=TZ)


@pytest.fixture
def tz():
    return TZ


@pytest.fixture
def scheduler():
    return FsrsScheduler(tz=TZ_NAME)


@pytest.fixture
def clock():
    return FixedClock(local(2024, 3, 4))


@pytest.fixture
def vocab_items():
    return [
        ContentItem(content_id="apple", text="사과", translation="táo"),
        ContentItem(content_id="water", text="물", translation="nước"),
        ContentItem(content_id="book", text="책", translation="sách"),
        ContentItem(content_id="blank", text="", translation="trống"),
    ]


@pytest.fixture
def content(vocab_items):
    return InMemoryContentSource(vocab_items)


@pytest.fixture
def records():
    return InMemoryReviewRepository()


@pytest.fixture
def service(records, content, scheduler, clock):
    return DrillService(
        kind=DrillKind.VOCABULARY,
        records=records,
        content=content,
        scheduler=scheduler,
        clock=clock,
        rng=random.Random(7),
    )


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config files
    monkeypatch.setenv("HOME", str(home))
    for name in [k for k in os.environ if k.startswith("CADENCE_")]:
        monkeypatch.delenv(name, raising=False)
    return home


@pytest.fixture(name="local")
def local_fixture():
    return local
