"""Favorite data models: stored records and caller-side references."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

from favkit.identity import Category, category_of


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class FavoriteRecord:
    """One favorited entity.

    Records are immutable; the Migration Engine produces new records
    rather than editing existing ones.

    Attributes:
        canonical_id: Primary key, see ``favkit.identity``.
        primary_text: Native-language text, course title, or tip label.
        secondary_text: Target-language text, or the visible tip body.
        meta_text: Pronunciation aid; ``hack:<body>`` for tips.
        course_id: Normalized course token, may be empty.
        lesson_id: Normalized lesson token, empty for course records.
        lesson_title: Cached display title of the lesson.
        created_at: When the item was favorited (UTC).
    """

    canonical_id: str
    primary_text: str = ""
    secondary_text: str = ""
    meta_text: str = ""
    course_id: str = ""
    lesson_id: str = ""
    lesson_title: str | None = None
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        if self.created_at.tzinfo is None:
            object.__setattr__(self, "created_at", self.created_at.replace(tzinfo=timezone.utc))

    @property
    def category(self) -> Category | None:
        return category_of(self.canonical_id)

    def with_changes(self, **changes: object) -> FavoriteRecord:
        return replace(self, **changes)  # type: ignore[arg-type]


def order_key(record: FavoriteRecord) -> tuple[datetime, str]:
    return (record.created_at, record.canonical_id)


def sort_newest_first(records: Iterable[FavoriteRecord]) -> list[FavoriteRecord]:
    """Canonical iteration order: ``created_at`` desc, then canonical ID desc."""
    return sorted(records, key=order_key, reverse=True)


@dataclass(frozen=True)
class FavoriteRef:
    """A reference to something the caller wants to (un)favorite.

    Only ``raw_id`` is required. The remaining fields are hints that help
    the resolver when ``raw_id`` is a legacy spelling, and the display
    payload used when a new record is inserted.

    Attributes:
        raw_id: Any spelling of the item's id.
        course_id: Course context, if known.
        lesson_id: Lesson context, if known.
        primary_text: Display text; also a content-match hint.
        secondary_text: Display text (tip body for tips); also a hint.
        meta_text: Pronunciation aid. A ``hack:`` prefix marks a tip.
        category: Explicit category, overrides what the id implies.
        position: Known position of the item in the lesson content list.
    """

    raw_id: str
    course_id: str = ""
    lesson_id: str = ""
    primary_text: str = ""
    secondary_text: str = ""
    meta_text: str = ""
    category: Category | None = None
    position: int | None = None

    @classmethod
    def coerce(cls, ref: FavoriteRef | str) -> FavoriteRef:
        return ref if isinstance(ref, FavoriteRef) else cls(raw_id=ref)

    @property
    def is_tip(self) -> bool:
        if self.category is not None:
            return self.category is Category.HACK
        return (
            self.raw_id.strip().lower().startswith("hack:")
            or self.meta_text.strip().lower().startswith("hack:")
        )
