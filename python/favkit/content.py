"""Lesson content item schema and adapters for historic item shapes.

Content providers hand the resolver an ordered list of ``ContentItem``.
Older content bundles used different field names; each shape is a
``ContentSchema`` variant with its own adapter, applied once when the
content is loaded.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ItemKind(str, Enum):
    """Kind of a lesson step."""

    PHRASE = "phrase"
    WORD = "word"
    CASUAL = "casual"
    DIALOG = "dialog"
    TIP = "tip"

    @classmethod
    def parse(cls, value: str | None) -> ItemKind:
        """Map a free-form kind string, defaulting to PHRASE."""
        if not value:
            return cls.PHRASE
        v = value.strip().lower()
        if v in {"lifehack", "hack", "tip"}:
            return cls.TIP
        try:
            return cls(v)
        except ValueError:
            return cls.PHRASE


@dataclass(frozen=True)
class ContentItem:
    """One item in a lesson's ordered content list.

    Attributes:
        identifier: The item's own id (stable across content builds).
        kind: Step kind. TIP items are favorited in the ``hack:`` namespace.
        primary_text: Native-language text (or the tip title).
        secondary_text: Target-language text (or the tip body).
        meta_text: Pronunciation aid, may be empty.
    """

    identifier: str
    kind: ItemKind = ItemKind.PHRASE
    primary_text: str = ""
    secondary_text: str = ""
    meta_text: str = ""

    @property
    def is_tip(self) -> bool:
        return self.kind is ItemKind.TIP


class ContentSchema(str, Enum):
    """Known content item shapes, newest first."""

    CURRENT = "current"  # identifier / kind / primary_text / secondary_text
    LEGACY_V2 = "legacy_v2"  # stepId / kind / titleRU / subtitleTH / phonetic
    LEGACY_V1 = "legacy_v1"  # id / ru / th


def detect_schema(raw: Mapping[str, Any]) -> ContentSchema:
    """Identify which historic shape a raw item dict uses.

    Raises:
        ValueError: If the dict matches no known shape.
    """
    if "identifier" in raw:
        return ContentSchema.CURRENT
    if "stepId" in raw:
        return ContentSchema.LEGACY_V2
    if "id" in raw:
        return ContentSchema.LEGACY_V1
    raise ValueError(f"Unrecognized content item shape: keys={sorted(raw)}")


def _text(raw: Mapping[str, Any], key: str) -> str:
    value = raw.get(key)
    return "" if value is None else str(value)


def _adapt_current(raw: Mapping[str, Any]) -> ContentItem:
    return ContentItem(
        identifier=_text(raw, "identifier"),
        kind=ItemKind.parse(raw.get("kind")),
        primary_text=_text(raw, "primary_text"),
        secondary_text=_text(raw, "secondary_text"),
        meta_text=_text(raw, "meta_text"),
    )


def _adapt_legacy_v2(raw: Mapping[str, Any]) -> ContentItem:
    return ContentItem(
        identifier=_text(raw, "stepId"),
        kind=ItemKind.parse(raw.get("kind")),
        primary_text=_text(raw, "titleRU"),
        secondary_text=_text(raw, "subtitleTH"),
        meta_text=_text(raw, "phonetic"),
    )


def _adapt_legacy_v1(raw: Mapping[str, Any]) -> ContentItem:
    # v1 bundles stored tips with their body under "tip"
    tip = _text(raw, "tip")
    return ContentItem(
        identifier=_text(raw, "id"),
        kind=ItemKind.TIP if tip else ItemKind.parse(raw.get("kind")),
        primary_text=_text(raw, "ru"),
        secondary_text=tip or _text(raw, "th"),
        meta_text=_text(raw, "phonetic"),
    )


_ADAPTERS: dict[ContentSchema, Callable[[Mapping[str, Any]], ContentItem]] = {
    ContentSchema.CURRENT: _adapt_current,
    ContentSchema.LEGACY_V2: _adapt_legacy_v2,
    ContentSchema.LEGACY_V1: _adapt_legacy_v1,
}


def adapt_item(raw: ContentItem | Mapping[str, Any]) -> ContentItem:
    """Convert a raw item of any known shape into a ``ContentItem``."""
    if isinstance(raw, ContentItem):
        return raw
    return _ADAPTERS[detect_schema(raw)](raw)


def adapt_items(raw_items: list[ContentItem | Mapping[str, Any]]) -> list[ContentItem]:
    return [adapt_item(r) for r in raw_items]
