"""
Step Identity Resolver: maps any historic spelling of a favorite
reference onto its canonical ID.

Resolution is positional: a step's identity is its index in the lesson
content list, found by matching the reference's trailing token against
item identifiers, or (for records that only kept their text) by matching
display text. Results are memoized per lesson.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from favkit.content import ContentItem
from favkit.errors import UnresolvableIdentity
from favkit.identity import (
    COURSE_PREFIX,
    HACK_PREFIX,
    Category,
    parse_step,
    step_id,
)
from favkit.identity import course_id as make_course_id
from favkit.matching import identifiers_match, normalize, strip_namespaces
from favkit.providers import LessonContentProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContentHint:
    """Display text a legacy record carried instead of a stable id."""

    primary: str = ""
    secondary: str = ""

    def __bool__(self) -> bool:
        return bool(self.primary or self.secondary)


@dataclass(frozen=True)
class Resolution:
    """Outcome of a successful resolution.

    Attributes:
        canonical_id: The canonical ID.
        category: Category of the canonical ID.
        course_id: Normalized course token.
        lesson_id: Normalized lesson token (empty for courses).
        index: Item position, None for courses.
        item: The matched content item, when resolution went through content.
    """

    canonical_id: str
    category: Category
    course_id: str
    lesson_id: str = ""
    index: int | None = None
    item: ContentItem | None = None


@dataclass(frozen=True)
class _Located:
    course_id: str
    lesson_id: str
    index: int
    item: ContentItem | None


@dataclass(frozen=True)
class _Context:
    course_id: str
    lesson_id: str
    token: str | None


def split_context(body: str) -> _Context:
    """Split a namespace-free body into course, lesson and trailing token.

    Supports the colon shape ``course:lesson[:token]`` and the dot shape
    ``course.lesson.token``. A single token is returned as the token.
    """
    if ":" in body:
        parts = body.split(":")
        if len(parts) >= 3:
            return _Context(parts[0], parts[1], parts[-1])
        return _Context(parts[0], parts[1], None)
    parts = body.split(".")
    if len(parts) >= 3:
        return _Context(parts[0], parts[1], parts[-1])
    if len(parts) == 2:
        return _Context(parts[0], parts[1], None)
    return _Context("", "", body or None)


class StepIdentityResolver:
    """Resolves raw favorite references to canonical IDs.

    Thread-safe: the memo and item caches are guarded by a lock so that
    background prefetch can run alongside store operations. The content
    provider is only ever read.

    Args:
        content: Source of ordered lesson content.
    """

    def __init__(self, content: LessonContentProvider) -> None:
        self._content = content
        self._lock = threading.Lock()
        self._items_cache: dict[str, list[ContentItem]] = {}
        self._memo: dict[tuple[str, tuple], _Located] = {}

    # --- Public API ---

    def resolve(
        self,
        raw: str,
        course_hint: str | None = None,
        lesson_hint: str | None = None,
        content_hint: ContentHint | None = None,
        category: Category | None = None,
        position: int | None = None,
    ) -> str | None:
        """Resolve ``raw`` to a canonical ID, or None when it cannot be mapped."""
        result = self.resolve_detailed(
            raw,
            course_hint=course_hint,
            lesson_hint=lesson_hint,
            content_hint=content_hint,
            category=category,
            position=position,
        )
        return result.canonical_id if result else None

    def resolve_detailed(
        self,
        raw: str,
        course_hint: str | None = None,
        lesson_hint: str | None = None,
        content_hint: ContentHint | None = None,
        category: Category | None = None,
        position: int | None = None,
    ) -> Resolution | None:
        """Resolve ``raw`` and report how.

        Args:
            raw: Any spelling of the reference.
            course_hint: Course context supplied by the caller.
            lesson_hint: Lesson context supplied by the caller.
            content_hint: Display text to match when ids fail.
            category: Forces CARD/HACK/COURSE. Defaults to what the id implies.
            position: Known position of the item in the lesson.

        Returns:
            The resolution, or None if no canonical ID can be derived.
        """
        s = normalize(raw)
        course = normalize(course_hint or "")
        lesson = normalize(lesson_hint or "")

        positional = bool(lesson) and position is not None
        if not s and not (course and (positional or category is Category.COURSE)):
            logger.debug("Unresolvable: empty reference %r", raw)
            return None

        # Courses
        if category is Category.COURSE or s.startswith(COURSE_PREFIX):
            body = s[len(COURSE_PREFIX) :] if s.startswith(COURSE_PREFIX) else s
            body = body or course
            if not body:
                return None
            return Resolution(make_course_id(body), Category.COURSE, body)
        # A bare token with no lesson context names a course
        bare = ":" not in s and "." not in s
        if (
            category is None
            and bare
            and not lesson
            and position is None
            and course in ("", s)
        ):
            return Resolution(make_course_id(s), Category.COURSE, s)

        step_category = category or (Category.HACK if s.startswith(HACK_PREFIX) else Category.CARD)

        # Already canonical
        parsed = parse_step(s)
        if parsed is not None:
            return Resolution(
                step_id(step_category, parsed.course_id, parsed.lesson_id, parsed.index),
                step_category,
                parsed.course_id,
                parsed.lesson_id,
                parsed.index,
            )

        body = strip_namespaces(s)
        ctx = split_context(body)
        course = course or normalize(ctx.course_id)
        lesson = lesson or normalize(ctx.lesson_id)
        token = ctx.token

        hint = content_hint or ContentHint()
        memo_key = (lesson, (s, course, position, hint.primary, hint.secondary))
        with self._lock:
            located = self._memo.get(memo_key)

        if located is None:
            if lesson:
                located = self._locate_in_lesson(course, lesson, s, token, hint, position)
            elif course:
                located = self._scan_catalog(course, s, token)
            if located is not None:
                with self._lock:
                    self._memo[memo_key] = located

        if located is None or not located.course_id:
            logger.debug(
                "Unresolvable: %r (course=%r lesson=%r token=%r)", raw, course, lesson, token
            )
            return None

        return Resolution(
            step_id(step_category, located.course_id, located.lesson_id, located.index),
            step_category,
            located.course_id,
            located.lesson_id,
            located.index,
            located.item,
        )

    def require(
        self,
        raw: str,
        course_hint: str | None = None,
        lesson_hint: str | None = None,
        content_hint: ContentHint | None = None,
        category: Category | None = None,
        position: int | None = None,
    ) -> Resolution:
        """Like ``resolve_detailed`` but raises instead of returning None.

        Raises:
            UnresolvableIdentity: If no canonical ID can be derived.
        """
        result = self.resolve_detailed(
            raw,
            course_hint=course_hint,
            lesson_hint=lesson_hint,
            content_hint=content_hint,
            category=category,
            position=position,
        )
        if result is None:
            where = "/".join(p for p in (course_hint, lesson_hint) if p)
            raise UnresolvableIdentity(raw, f"no match in {where}" if where else "")
        return result

    def items(self, lesson_id: str) -> list[ContentItem]:
        """Cached ordered items of a lesson."""
        lesson = normalize(lesson_id)
        with self._lock:
            cached = self._items_cache.get(lesson)
        if cached is not None:
            return cached
        fetched = list(self._content.items(lesson))
        with self._lock:
            self._items_cache[lesson] = fetched
        return fetched

    def invalidate(self, lesson_id: str | None = None) -> None:
        """Drop cached content and resolutions.

        Args:
            lesson_id: Only drop entries for this lesson (plus catalog-scan
                entries, which may have matched it). None clears everything.
        """
        with self._lock:
            if lesson_id is None:
                self._items_cache.clear()
                self._memo.clear()
                return
            lesson = normalize(lesson_id)
            self._items_cache.pop(lesson, None)
            stale = [
                k
                for k, v in self._memo.items()
                if k[0] in (lesson, "") or v.lesson_id == lesson
            ]
            for k in stale:
                del self._memo[k]
        logger.debug("Invalidated resolver cache for lesson %s", lesson)

    def prewarm(self, pairs: Iterable[tuple[str, str]]) -> int:
        """Load item lists for known course/lesson pairs into the cache.

        Returns:
            Number of lessons loaded.
        """
        loaded = 0
        for _course, lesson in pairs:
            if lesson:
                self.items(lesson)
                loaded += 1
        if loaded:
            logger.debug("Prewarmed %d lessons", loaded)
        return loaded

    @property
    def cache_size(self) -> int:
        with self._lock:
            return len(self._memo)

    # --- Internals ---

    def _locate_in_lesson(
        self,
        course: str,
        lesson: str,
        raw: str,
        token: str | None,
        hint: ContentHint,
        position: int | None,
    ) -> _Located | None:
        items = self.items(lesson)
        if not items:
            return None

        if position is not None and 0 <= position < len(items):
            return _Located(course, lesson, position, items[position])

        idx = _find_by_identifier(items, raw, token)
        if idx is None and hint:
            idx = _find_by_content(items, hint)
        if idx is None:
            return None
        return _Located(course, lesson, idx, items[idx])

    def _scan_catalog(self, course: str, raw: str, token: str | None) -> _Located | None:
        for lesson in self._content.lessons(course):
            lesson_norm = normalize(lesson)
            items = self.items(lesson_norm)
            idx = _find_by_identifier(items, raw, token)
            if idx is not None:
                logger.debug("Catalog scan matched %r in %s/%s", raw, course, lesson_norm)
                return _Located(course, lesson_norm, idx, items[idx])
        return None


def _find_by_identifier(items: Sequence[ContentItem], raw: str, token: str | None) -> int | None:
    needles = [n for n in (token, strip_namespaces(raw)) if n]
    for i, item in enumerate(items):
        if any(identifiers_match(item.identifier, n) for n in needles):
            return i
    return None


def _find_by_content(items: Sequence[ContentItem], hint: ContentHint) -> int | None:
    for i, item in enumerate(items):
        if hint.primary and item.primary_text and item.primary_text == hint.primary:
            return i
        if hint.secondary and item.secondary_text and item.secondary_text == hint.secondary:
            return i
    return None
