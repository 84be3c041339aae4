"""
YAML Content Source: loads drill content from a deck file.

Expected layout (one list per drill kind):

    vocabulary:
      - id: apple
        text: 사과
        translation: táo
    listening:
      - id: greet-01
        text: 안녕하세요
        translation: Xin chào
        audio: clips/greet-01.mp3
"""

import logging
from pathlib import Path
from typing import Any

import yaml  # type: ignore
import yaml.constructor

from cadence.domain.review.models import ContentItem, DrillKind
from cadence.domain.review.ports import ContentSource

logger = logging.getLogger(__name__)

_ITEM_FIELDS = {"id", "text", "translation", "audio"}


class UniqueKeyLoader(yaml.SafeLoader):
    """
    YAML loader that forbids duplicate keys.
    """

    def construct_mapping(self, node, deep=False):
        seen = set()
        for key_node, _ in node.value:
            key = self.construct_object(key_node, deep=deep)
            if key in seen:
                raise yaml.constructor.ConstructorError(
                    None, None, f"found duplicate key '{key}'", key_node.start_mark
                )
            seen.add(key)
        return super().construct_mapping(node, deep)


def load_deck(path: Path, kind: DrillKind) -> list[ContentItem]:
    """
    Read the items of one drill kind from a deck file.

    Raises:
        ValueError: If the file is malformed or repeats an item id.
    """
    try:
        data = yaml.load(path.read_text(encoding="utf-8"), Loader=UniqueKeyLoader) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid deck file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Deck file {path} must map drill kinds to item lists")

    entries = data.get(kind.value) or []
    if not isinstance(entries, list):
        raise ValueError(f"'{kind.value}' in {path} must be a list")

    items: list[ContentItem] = []
    seen: set[str] = set()
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict) or "id" not in entry:
            logger.warning(f"Skipping {kind.value}[{index}] in {path}: missing 'id'")
            continue
        content_id = str(entry["id"])
        if content_id in seen:
            raise ValueError(f"Duplicate {kind.value} id {content_id!r} in {path}")
        seen.add(content_id)
        items.append(_to_item(content_id, kind, entry))

    logger.debug(f"Loaded {len(items)} {kind.value} items from {path}")
    return items


def _to_item(content_id: str, kind: DrillKind, entry: dict[str, Any]) -> ContentItem:
    def text_or_none(key: str) -> str | None:
        value = entry.get(key)
        return str(value) if value is not None else None

    return ContentItem(
        content_id=content_id,
        kind=kind,
        text=str(entry.get("text") or ""),
        translation=text_or_none("translation"),
        audio=text_or_none("audio"),
        extra={k: v for k, v in entry.items() if k not in _ITEM_FIELDS},
    )


class YamlContentSource(ContentSource):
    """Content of one drill kind read from a YAML deck; reloaded when the file changes."""

    def __init__(self, path: Path, kind: DrillKind):
        self.path = Path(path)
        self.kind = kind
        self._items: dict[str, ContentItem] = {}
        self._mtime: float | None = None

    async def get(self, content_id: str) -> ContentItem | None:
        return self._refresh().get(content_id)

    async def list_all(self) -> list[ContentItem]:
        return list(self._refresh().values())

    def _refresh(self) -> dict[str, ContentItem]:
        if not self.path.exists():
            logger.warning(f"Deck file {self.path} does not exist")
            return {}
        mtime = self.path.stat().st_mtime
        if mtime != self._mtime:
            self._items = {item.content_id: item for item in load_deck(self.path, self.kind)}
            self._mtime = mtime
        return self._items
