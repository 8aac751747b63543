"""Collaborator interfaces consumed by the favorites core.

The store never looks collaborators up globally; they are passed in at
construction. The in-memory implementations here back the tests and
simple embeddings.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from favkit.content import ContentItem, adapt_items
from favkit.matching import normalize

logger = logging.getLogger(__name__)


class LessonContentProvider(Protocol):
    """Read-only source of ordered lesson content."""

    def items(self, lesson_id: str) -> Sequence[ContentItem]: ...
    def lessons(self, course_id: str) -> Sequence[str]: ...


class LessonTitleProvider(Protocol):
    """Resolves a display title for a course/lesson pair."""

    def title(self, course_id: str, lesson_id: str) -> str | None: ...


class SessionAggregator(Protocol):
    """Write-only downstream consumer of categorized favorite ids."""

    def set_favorites(
        self, courses: frozenset[str], cards: frozenset[str], hacks: frozenset[str]
    ) -> None: ...


class InMemoryContentProvider:
    """Content catalog held in memory.

    Items may be given in any known ``ContentSchema`` shape; they are
    adapted once on ``add_lesson``.
    """

    def __init__(self) -> None:
        self._items: dict[str, list[ContentItem]] = {}
        self._lessons: dict[str, list[str]] = {}
        self._lock = threading.Lock()

    def add_lesson(
        self,
        course_id: str,
        lesson_id: str,
        items: Sequence[ContentItem | Mapping[str, Any]],
    ) -> None:
        """Register (or replace) a lesson's ordered content."""
        course = normalize(course_id)
        lesson = normalize(lesson_id)
        adapted = adapt_items(list(items))
        with self._lock:
            self._items[lesson] = adapted
            lessons = self._lessons.setdefault(course, [])
            if lesson not in lessons:
                lessons.append(lesson)
        logger.debug("Loaded %d items for %s/%s", len(adapted), course, lesson)

    def items(self, lesson_id: str) -> list[ContentItem]:
        with self._lock:
            return list(self._items.get(normalize(lesson_id), []))

    def lessons(self, course_id: str) -> list[str]:
        with self._lock:
            return list(self._lessons.get(normalize(course_id), []))


class DictTitleProvider:
    """Lesson titles from a ``{(course, lesson): title}`` mapping."""

    def __init__(self, titles: Mapping[tuple[str, str], str] | None = None) -> None:
        self._titles = {
            (normalize(c), normalize(l)): t for (c, l), t in (titles or {}).items()
        }

    def set_title(self, course_id: str, lesson_id: str, title: str) -> None:
        self._titles[(normalize(course_id), normalize(lesson_id))] = title

    def title(self, course_id: str, lesson_id: str) -> str | None:
        return self._titles.get((normalize(course_id), normalize(lesson_id)))


class RecordingAggregator:
    """Aggregator that keeps the last pushed sets and a call count."""

    def __init__(self) -> None:
        self.courses: frozenset[str] = frozenset()
        self.cards: frozenset[str] = frozenset()
        self.hacks: frozenset[str] = frozenset()
        self.calls = 0

    def set_favorites(
        self, courses: frozenset[str], cards: frozenset[str], hacks: frozenset[str]
    ) -> None:
        self.courses = frozenset(courses)
        self.cards = frozenset(cards)
        self.hacks = frozenset(hacks)
        self.calls += 1

    def is_favorite_id(self, fid: str) -> bool:
        """Prefix-routed membership check, as the session layer does it."""
        if fid.startswith("course:"):
            return fid in self.courses
        if fid.startswith("hack:"):
            return fid in self.hacks
        return fid in self.cards
