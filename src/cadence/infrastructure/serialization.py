"""
Plain-dict encoding of review records for file-backed repositories.

History is stored as a typed list of entries. Older documents that kept it as
a JSON string are still read. An unreadable history recovers as empty so one
bad log never fails the whole record.
"""

import json
import logging
from datetime import datetime
from typing import Any

from cadence.domain.calendar import as_aware
from cadence.domain.review.models import (
    DrillKind,
    MemoryState,
    Rating,
    ReviewHistoryEntry,
    ReviewRecord,
)

logger = logging.getLogger(__name__)


def _dt(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_dt(value: Any) -> datetime | None:
    if not value:
        return None
    return as_aware(datetime.fromisoformat(str(value)))


def entry_to_dict(entry: ReviewHistoryEntry) -> dict[str, Any]:
    return {
        "date": entry.reviewed_at.isoformat(),
        "rating": int(entry.rating),
        "stability_before": entry.stability_before,
        "stability_after": entry.stability_after,
        "difficulty_before": entry.difficulty_before,
        "difficulty_after": entry.difficulty_after,
        "retrievability": entry.retrievability,
        "interval_days": entry.interval_days,
    }


def entry_from_dict(data: dict[str, Any]) -> ReviewHistoryEntry:
    reviewed_at = _parse_dt(data["date"])
    if reviewed_at is None:
        raise ValueError("history entry has no date")
    return ReviewHistoryEntry(
        reviewed_at=reviewed_at,
        rating=Rating(int(data["rating"])),
        stability_before=float(data["stability_before"]),
        stability_after=float(data["stability_after"]),
        difficulty_before=float(data["difficulty_before"]),
        difficulty_after=float(data["difficulty_after"]),
        retrievability=float(data["retrievability"]),
        interval_days=float(data.get("interval_days", 0.0)),
    )


def parse_history(raw: Any, content_id: str = "?") -> tuple[ReviewHistoryEntry, ...]:
    """
    Decode a stored history list (or legacy JSON string).

    Returns an empty history, with a warning, if any part is unreadable.
    """
    if raw is None or raw == "":
        return ()
    try:
        if isinstance(raw, str):
            raw = json.loads(raw)
        if not isinstance(raw, list):
            raise TypeError(f"expected a list, got {type(raw).__name__}")
        return tuple(entry_from_dict(item) for item in raw)
    except (TypeError, ValueError, KeyError) as e:
        logger.warning(f"Corrupt review history for {content_id}; treating as empty ({e})")
        return ()


def record_to_dict(record: ReviewRecord) -> dict[str, Any]:
    state = record.state
    return {
        "record_id": record.record_id,
        "owner_id": record.owner_id,
        "kind": record.kind.value,
        "content_id": record.content_id,
        "stability": state.stability,
        "difficulty": state.difficulty,
        "lapses": state.lapses,
        "current_interval_days": state.current_interval_days,
        "next_review_date": _dt(state.next_review_date),
        "last_review_date": _dt(state.last_review_date),
        "is_starred": record.is_starred,
        "meta": dict(record.meta),
        "created_at": _dt(record.created_at),
        "updated_at": _dt(record.updated_at),
        "review_history": [entry_to_dict(e) for e in state.review_history],
    }


def record_from_dict(data: dict[str, Any]) -> ReviewRecord:
    """
    Decode a stored record.

    Raises:
        KeyError / ValueError: If a scheduling field is missing or malformed.
    """
    content_id = str(data["content_id"])
    next_review_date = _parse_dt(data["next_review_date"])
    if next_review_date is None:
        raise ValueError(f"record {content_id} has no next_review_date")
    state = MemoryState(
        stability=float(data["stability"]),
        difficulty=float(data["difficulty"]),
        lapses=int(data.get("lapses", 0)),
        current_interval_days=float(data.get("current_interval_days", 0.0)),
        next_review_date=next_review_date,
        last_review_date=_parse_dt(data.get("last_review_date")),
        review_history=parse_history(data.get("review_history"), content_id),
    )
    return ReviewRecord(
        record_id=str(data["record_id"]),
        owner_id=str(data.get("owner_id", "default")),
        kind=DrillKind(data["kind"]),
        content_id=content_id,
        state=state,
        is_starred=bool(data.get("is_starred", False)),
        meta={str(k): str(v) for k, v in (data.get("meta") or {}).items()},
        created_at=_parse_dt(data.get("created_at")),
        updated_at=_parse_dt(data.get("updated_at")),
    )
