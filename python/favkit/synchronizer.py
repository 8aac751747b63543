"""Session Synchronizer: pushes categorized favorite ids downstream.

The Session Aggregator always receives full replacement sets, never
deltas. Change listeners get a typed ``FavoritesChanged`` payload once
per coalesced batch of mutations (the store drives the batching).
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from favkit.identity import Category, category_of
from favkit.matching import normalize
from favkit.providers import SessionAggregator
from favkit.record import FavoriteRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FavoriteSets:
    """Three disjoint sets of canonical ids."""

    courses: frozenset[str] = field(default_factory=frozenset)
    cards: frozenset[str] = field(default_factory=frozenset)
    hacks: frozenset[str] = field(default_factory=frozenset)

    @property
    def counts(self) -> tuple[int, int, int]:
        return (len(self.courses), len(self.cards), len(self.hacks))

    def all_ids(self) -> frozenset[str]:
        return self.courses | self.cards | self.hacks


@dataclass(frozen=True)
class FavoritesChanged:
    """Notification payload.

    Attributes:
        total: Number of records after the batch.
        changed_ids: Canonical ids added or removed in the batch.
    """

    total: int
    changed_ids: frozenset[str] = field(default_factory=frozenset)


_Listener = Callable[[FavoritesChanged], None]


def project(records: Iterable[FavoriteRecord]) -> FavoriteSets:
    """Bucket normalized canonical ids by their prefix category."""
    courses: set[str] = set()
    cards: set[str] = set()
    hacks: set[str] = set()
    for record in records:
        fid = normalize(record.canonical_id)
        cat = category_of(fid)
        if cat is Category.COURSE:
            courses.add(fid)
        elif cat is Category.HACK:
            hacks.add(fid)
        elif cat is Category.CARD:
            cards.add(fid)
        else:
            logger.warning("Favorite with no category namespace left out of sync: %s", fid)
    return FavoriteSets(frozenset(courses), frozenset(cards), frozenset(hacks))


class SessionSynchronizer:
    """Forwards favorite sets to the aggregator and notifies listeners.

    Args:
        aggregator: Downstream consumer. None keeps sync local (listeners only).
    """

    def __init__(self, aggregator: SessionAggregator | None = None) -> None:
        self._aggregator = aggregator
        self._listeners: list[_Listener] = []
        self._lock = threading.Lock()
        self._last_counts: tuple[int, int, int] | None = None
        self._last_sets = FavoriteSets()

    def sync(self, records: Iterable[FavoriteRecord]) -> FavoriteSets:
        """Project ``records`` and push the three sets in one call."""
        sets = project(records)
        if self._last_counts != sets.counts:
            logger.info(
                "Sync favorites: courses=%d cards=%d hacks=%d", *sets.counts
            )
        self._last_counts = sets.counts
        self._last_sets = sets
        if self._aggregator is not None:
            try:
                self._aggregator.set_favorites(sets.courses, sets.cards, sets.hacks)
            except Exception:
                logger.exception("Session aggregator rejected favorites sync")
        return sets

    @property
    def last_sets(self) -> FavoriteSets:
        return self._last_sets

    def subscribe(self, listener: _Listener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: _Listener) -> bool:
        """Remove a listener.

        Returns:
            True if the listener was found and removed, False otherwise.
        """
        with self._lock:
            for i, existing in enumerate(self._listeners):
                if existing is listener:
                    self._listeners.pop(i)
                    return True
        return False

    def notify(self, total: int, changed_ids: Iterable[str] = ()) -> FavoritesChanged:
        """Deliver one ``FavoritesChanged`` to every listener."""
        event = FavoritesChanged(total=total, changed_ids=frozenset(changed_ids))
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Error in favorites change listener")
        return event
