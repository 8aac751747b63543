"""Canonical favorite ID grammar.

Three disjoint categories, discriminated by prefix:

    course:<courseId>
    card:step:<courseId>:<lessonId>:idx<N>
    hack:step:<courseId>:<lessonId>:idx<N>

Legacy spellings seen in stored data (``step:c:l:idxN`` for cards,
``c:l:idxN`` without any namespace) parse to the same identity.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from favkit.matching import normalize, strip_namespaces

COURSE_PREFIX = "course:"
CARD_PREFIX = "card:"
HACK_PREFIX = "hack:"
STEP_PREFIX = "step:"

_IDX_RE = re.compile(r"^idx(\d+)$")


class Category(str, Enum):
    """The three favorite categories."""

    COURSE = "course"
    CARD = "card"
    HACK = "hack"


@dataclass(frozen=True)
class CanonicalId:
    """A parsed step identity (cards and tips).

    Attributes:
        category: CARD or HACK.
        course_id: Normalized course token.
        lesson_id: Normalized lesson token.
        index: Position of the item in the lesson's content list.
    """

    category: Category
    course_id: str
    lesson_id: str
    index: int

    def __str__(self) -> str:
        return step_id(self.category, self.course_id, self.lesson_id, self.index)

    def bare(self) -> str:
        """Return ``step:<course>:<lesson>:idx<N>`` without a category prefix."""
        return f"{STEP_PREFIX}{self.course_id}:{self.lesson_id}:idx{self.index}"


def course_id(course: str) -> str:
    return COURSE_PREFIX + normalize(course)


def step_id(category: Category, course: str, lesson: str, index: int) -> str:
    if category is Category.COURSE:
        raise ValueError("Course favorites have no step identity")
    prefix = HACK_PREFIX if category is Category.HACK else CARD_PREFIX
    return f"{prefix}{STEP_PREFIX}{normalize(course)}:{normalize(lesson)}:idx{index}"


def card_id(course: str, lesson: str, index: int) -> str:
    return step_id(Category.CARD, course, lesson, index)


def hack_id(course: str, lesson: str, index: int) -> str:
    return step_id(Category.HACK, course, lesson, index)


def parse_step(raw: str) -> CanonicalId | None:
    """Parse any spelling of a step identity that carries an ``idx<N>`` token.

    Accepts ``card:step:c:l:idxN``, ``hack:step:c:l:idxN``, legacy
    ``step:c:l:idxN`` and bare ``c:l:idxN``. The category is HACK only
    when the id carries the ``hack:`` namespace.

    Returns:
        The parsed identity, or None if the id has no well-formed
        course/lesson/index tokens.
    """
    s = normalize(raw)
    category = Category.HACK if s.startswith(HACK_PREFIX) else Category.CARD
    parts = strip_namespaces(s).split(":")
    if len(parts) != 3:
        return None
    course, lesson, idx = parts
    m = _IDX_RE.match(idx)
    if not course or not lesson or m is None:
        return None
    return CanonicalId(category=category, course_id=course, lesson_id=lesson, index=int(m.group(1)))


def is_canonical(raw: str) -> bool:
    """Check whether ``raw`` is exactly a canonical ID (no normalization needed)."""
    if raw.startswith(COURSE_PREFIX):
        return len(raw) > len(COURSE_PREFIX) and normalize(raw) == raw
    parsed = parse_step(raw)
    return parsed is not None and str(parsed) == raw


def category_of(canonical: str) -> Category | None:
    """Category from the ID prefix alone. None for unrecognized ids."""
    s = normalize(canonical)
    if s.startswith(COURSE_PREFIX):
        return Category.COURSE
    if s.startswith(HACK_PREFIX):
        return Category.HACK
    if s.startswith(CARD_PREFIX) or s.startswith(STEP_PREFIX):
        return Category.CARD
    return None


def compare_key(fid: str) -> str:
    """Normalize for comparisons: legacy ``step:`` and ``card:step:`` cards are equal."""
    s = normalize(fid)
    if s.startswith(CARD_PREFIX):
        s = s[len(CARD_PREFIX) :]
    return s


def membership_key(raw: str) -> str:
    """Key used by the fast membership sets.

    Courses keep their ``course:`` id (bare tokens get one), tips keep a
    ``hack:step:`` id, and every card spelling collapses to ``step:…``.
    """
    s = normalize(raw)
    if not s:
        return ""
    if s.startswith(COURSE_PREFIX):
        return s
    if ":" not in s and "." not in s:
        return COURSE_PREFIX + s
    if s.startswith(HACK_PREFIX):
        body = s[len(HACK_PREFIX) :]
        if body.startswith(CARD_PREFIX):
            body = body[len(CARD_PREFIX) :]
        if not body.startswith(STEP_PREFIX):
            body = STEP_PREFIX + body
        return HACK_PREFIX + body
    key = compare_key(s)
    if not key.startswith(STEP_PREFIX):
        key = STEP_PREFIX + key
    return key
