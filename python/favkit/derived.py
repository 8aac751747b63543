"""Derived Cache Builder: read-only projections of the record set.

``rebuild`` is a pure function of the records. The store calls it after
every mutation and swaps the result in atomically, so readers always see
a view that matches one completed mutation.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from favkit.identity import Category, category_of, membership_key
from favkit.record import FavoriteRecord, sort_newest_first


@dataclass(frozen=True)
class DerivedView:
    """Category-partitioned projections plus fast membership sets.

    Attributes:
        courses: Course records, newest first.
        cards: Card records, newest first.
        hacks: Tip records, newest first.
        liked_ids: Membership keys of every record.
        liked_courses: ``course:<id>`` keys.
        liked_step_keys: ``step:<c>:<l>:idx<N>`` keys of cards.
        liked_hack_ids: ``hack:step:…`` keys of tips.
    """

    courses: tuple[FavoriteRecord, ...] = ()
    cards: tuple[FavoriteRecord, ...] = ()
    hacks: tuple[FavoriteRecord, ...] = ()
    liked_ids: frozenset[str] = field(default_factory=frozenset)
    liked_courses: frozenset[str] = field(default_factory=frozenset)
    liked_step_keys: frozenset[str] = field(default_factory=frozenset)
    liked_hack_ids: frozenset[str] = field(default_factory=frozenset)

    @property
    def total(self) -> int:
        return len(self.courses) + len(self.cards) + len(self.hacks)

    def contains_key(self, key: str) -> bool:
        return key in self.liked_ids


def rebuild(records: Iterable[FavoriteRecord]) -> DerivedView:
    """Partition ``records`` by canonical ID prefix and build membership sets."""
    courses: list[FavoriteRecord] = []
    cards: list[FavoriteRecord] = []
    hacks: list[FavoriteRecord] = []
    course_keys: set[str] = set()
    step_keys: set[str] = set()
    hack_keys: set[str] = set()

    for record in sort_newest_first(records):
        cat = category_of(record.canonical_id)
        key = membership_key(record.canonical_id)
        if cat is Category.COURSE:
            courses.append(record)
            course_keys.add(key)
        elif cat is Category.HACK:
            hacks.append(record)
            hack_keys.add(key)
        elif cat is Category.CARD:
            cards.append(record)
            step_keys.add(key)

    return DerivedView(
        courses=tuple(courses),
        cards=tuple(cards),
        hacks=tuple(hacks),
        liked_ids=frozenset(course_keys | step_keys | hack_keys),
        liked_courses=frozenset(course_keys),
        liked_step_keys=frozenset(step_keys),
        liked_hack_ids=frozenset(hack_keys),
    )
