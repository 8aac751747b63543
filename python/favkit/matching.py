"""Identifier normalization utilities: deterministic, pure.

Every favorite reference passes through ``normalize`` before it is
compared, resolved or stored. Historic builds wrote identifiers with
mixed case, stray whitespace and doubled separators; normalization folds
all of those spellings onto one string.
"""

from __future__ import annotations

import re

# Category namespaces, in the order they may be stacked on a raw id
NAMESPACES = ("hack:", "card:", "step:")

_WHITESPACE_RE = re.compile(r"\s+")


def normalize(raw: str) -> str:
    """Normalize a favorite identifier.

    Case-folds, trims, joins internal whitespace with ``_``, collapses
    ``::`` and ``..``, and strips stray leading/trailing separators.
    Category namespaces (``course:``, ``card:``, ``hack:``, ``step:``) are
    kept; callers decide how to interpret them.

    Examples:
        " Course A::Lesson 1 " -> "course_a:lesson_1"
        "step:CourseA..L1.greet." -> "step:coursea.l1.greet"
        "course:step:a:b:idx0" -> "step:a:b:idx0"
    """
    if not raw:
        return ""

    s = _WHITESPACE_RE.sub("_", raw.strip().casefold())
    while "::" in s:
        s = s.replace("::", ":")
    while ".." in s:
        s = s.replace("..", ".")

    # "course:step:" was written by an old course screen; the step wins
    if s.startswith("course:step:"):
        s = s[len("course:") :]

    return s.strip(":.")


def strip_namespaces(s: str) -> str:
    """Drop any stacked ``hack:``/``card:``/``step:`` prefixes."""
    for ns in NAMESPACES:
        if s.startswith(ns):
            s = s[len(ns) :]
    return s


def trailing_token(raw: str) -> str:
    """Return the rightmost token of an identifier.

    Takes the part after the last ``:`` and then after the last ``.``,
    which is the item's own id in both legacy shapes.

    Examples:
        "coursea.lesson1.greeting" -> "greeting"
        "step:coursea:lesson1:greeting" -> "greeting"
    """
    after_colon = raw.rsplit(":", 1)[-1]
    return after_colon.rsplit(".", 1)[-1]


def identifiers_match(candidate: str, needle: str) -> bool:
    """Check whether a content item identifier refers to ``needle``.

    True on exact equality, on normalized equality, or when both reduce
    to the same trailing token.
    """
    if not candidate or not needle:
        return False
    if candidate == needle:
        return True
    nc = normalize(candidate)
    nn = normalize(needle)
    if nc == nn:
        return True
    return trailing_token(nc) == trailing_token(nn)
