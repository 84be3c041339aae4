"""
JSON Review Repository: Infrastructure adapter for file-backed records.

Stores every record of one (owner, drill kind) in a single JSON document:

    <data_dir>/<owner_id>/<kind>.json

Writes go to a temporary file first and replace the document atomically.
"""

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from cadence.domain.review.models import DrillKind, ReviewRecord
from cadence.domain.review.ports import ReviewRepository
from cadence.infrastructure.serialization import record_from_dict, record_to_dict

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


class JsonReviewRepository(ReviewRepository):
    """
    Review records persisted as JSON on the local filesystem.

    Records that cannot be decoded are skipped with an error log instead of
    failing the whole document.
    """

    def __init__(self, data_dir: Path, owner_id: str, kind: DrillKind):
        self.path = Path(data_dir) / owner_id / f"{kind.value}.json"
        self.owner_id = owner_id
        self.kind = kind
        self._write_lock = asyncio.Lock()

    async def get(self, content_id: str) -> ReviewRecord | None:
        raw = self._load().get(content_id)
        if raw is None:
            return None
        return self._decode(content_id, raw)

    async def put(self, record: ReviewRecord) -> None:
        async with self._write_lock:
            document = self._load()
            document[record.content_id] = record_to_dict(record)
            self._save(document)

    async def list_by_owner(self) -> list[ReviewRecord]:
        records = []
        for content_id, raw in self._load().items():
            record = self._decode(content_id, raw)
            if record is not None:
                records.append(record)
        return records

    def _decode(self, content_id: str, raw: dict[str, Any]) -> ReviewRecord | None:
        try:
            return record_from_dict(raw)
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Skipping unreadable record {content_id} in {self.path}: {e}")
            return None

    def _load(self) -> dict[str, dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            document = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.error(f"Review store {self.path} is not valid JSON: {e}")
            raise
        records = document.get("records", {})
        if not isinstance(records, dict):
            logger.error(f"Review store {self.path} has no records mapping")
            return {}
        return records

    def _save(self, records: dict[str, dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "version": SCHEMA_VERSION,
            "owner_id": self.owner_id,
            "kind": self.kind.value,
            "records": records,
        }
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug(f"Wrote {len(records)} records to {self.path}")
