"""Favorite Store: the single owner of the favorites collection.

All mutations are serialized through one re-entrant lock. Callers see
the in-memory change synchronously; persistence, the aggregator sync and
the change notification run later, coalesced by a trailing-edge
``Debouncer`` so that a burst of toggles produces one write and one
notification reflecting the final state.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from datetime import datetime

from favkit.config import FavoritesConfig
from favkit.derived import DerivedView, rebuild
from favkit.errors import PersistenceFailure, UnresolvableIdentity
from favkit.identity import (
    COURSE_PREFIX,
    HACK_PREFIX,
    STEP_PREFIX,
    Category,
    category_of,
    compare_key,
    membership_key,
    parse_step,
)
from favkit.matching import normalize, strip_namespaces
from favkit.migration import (
    DEFAULT_TIP_LABEL,
    MigrationEngine,
    MigrationReport,
    coalesce_key,
    resolve_lesson_title,
    tip_body,
)
from favkit.persistence import FavoritePersistence, MemoryKeyValueStorage, SQLiteKeyValueStorage
from favkit.providers import LessonContentProvider, LessonTitleProvider, SessionAggregator
from favkit.record import FavoriteRecord, FavoriteRef, sort_newest_first, utc_now
from favkit.resolver import ContentHint, Resolution, StepIdentityResolver, split_context
from favkit.scheduler import Debouncer, Scheduler, ThreadingScheduler
from favkit.synchronizer import FavoritesChanged, SessionSynchronizer

logger = logging.getLogger(__name__)

_Ref = FavoriteRef | str


class FavoriteStore:
    """Deduplicated, persisted collection of favorites.

    Collaborators are injected; nothing is looked up globally.

    Args:
        content: Lesson content provider used for identity resolution.
        titles: Lesson title provider for display titles.
        aggregator: Downstream consumer of the categorized id sets.
        persistence: Durable storage. Defaults to an in-memory store.
        scheduler: Timer source for the debounce. Defaults to threads.
        debounce_seconds: Quiescence window before save/sync/notify.
        tip_label: Primary text stored on tip records.
        now: Clock for ``created_at``. Defaults to UTC wall time.
        autoload: Run load → migrate → initial sync in the constructor.
    """

    def __init__(
        self,
        content: LessonContentProvider,
        titles: LessonTitleProvider | None = None,
        aggregator: SessionAggregator | None = None,
        persistence: FavoritePersistence | None = None,
        scheduler: Scheduler | None = None,
        *,
        debounce_seconds: float = 0.2,
        tip_label: str = DEFAULT_TIP_LABEL,
        now: Callable[[], datetime] | None = None,
        autoload: bool = True,
    ) -> None:
        self._titles = titles
        self._tip_label = tip_label
        self._now = now or utc_now
        self._resolver = StepIdentityResolver(content)
        self._migration = MigrationEngine(self._resolver, titles, tip_label)
        self._synchronizer = SessionSynchronizer(aggregator)
        self._persistence = persistence or FavoritePersistence(MemoryKeyValueStorage())
        self._owned_storage: SQLiteKeyValueStorage | None = None

        self._lock = threading.RLock()
        self._flush_lock = threading.Lock()
        self._records: list[FavoriteRecord] = []
        self._view = DerivedView()
        self._dirty = False
        self._changed_ids: set[str] = set()
        self._debouncer = Debouncer(debounce_seconds, self._flush_pending, scheduler)
        self._prewarm_thread: threading.Thread | None = None

        if autoload:
            self.bootstrap()

    @classmethod
    def from_config(
        cls,
        config: FavoritesConfig,
        content: LessonContentProvider,
        titles: LessonTitleProvider | None = None,
        aggregator: SessionAggregator | None = None,
    ) -> FavoriteStore:
        """Build a store backed by SQLite with threaded debounce timers."""
        storage = SQLiteKeyValueStorage(config.db_path)
        persistence = FavoritePersistence(
            storage,
            records_key=config.records_key,
            order_key=config.order_key or None,
        )
        store = cls(
            content,
            titles=titles,
            aggregator=aggregator,
            persistence=persistence,
            scheduler=ThreadingScheduler(),
            debounce_seconds=config.debounce_seconds,
            tip_label=config.tip_label,
        )
        store._owned_storage = storage
        if config.prewarm_on_start:
            store.start_prewarm()
        return store

    # --- Lifecycle ---

    def bootstrap(self) -> MigrationReport:
        """Load persisted favorites, migrate them and run the initial sync."""
        loaded = self._persistence.load()
        migrated, report = self._migration.migrate_with_report(loaded)
        with self._lock:
            self._records = migrated
            self._view = rebuild(migrated)
            snapshot = list(migrated)
        if report.changed:
            self._save(snapshot)
        self._synchronizer.sync(snapshot)
        return report

    def close(self) -> None:
        """Run pending work and release storage this store opened."""
        self.flush()
        if self._prewarm_thread is not None:
            self._prewarm_thread.join(timeout=5.0)
            self._prewarm_thread = None
        with self._flush_lock:
            if self._owned_storage is not None:
                self._owned_storage.close()
                self._owned_storage = None

    # --- Mutations ---

    def toggle(self, ref: _Ref) -> bool:
        """Add the item if absent, remove it if present.

        Unresolvable references are ignored (logged, nothing changes).

        Returns:
            True if the item is favorited after the call.
        """
        ref = FavoriteRef.coerce(ref)
        try:
            resolution = self._resolver.require(ref.raw_id, **self._hints(ref))
        except UnresolvableIdentity as exc:
            logger.info("Ignoring toggle: %s", exc)
            return False

        with self._lock:
            key = _key_for(resolution.canonical_id)
            existing = [r for r in self._records if coalesce_key(r) == key]
            if existing:
                self._records = [r for r in self._records if coalesce_key(r) != key]
                self._commit(r.canonical_id for r in existing)
                logger.debug("Removed favorite %s", resolution.canonical_id)
                return False

            record = self._build_record(ref, resolution)
            self._records = sort_newest_first([*self._records, record])
            self._commit([record.canonical_id])
            logger.debug("Added favorite %s", record.canonical_id)
            return True

    def remove(self, ref: _Ref) -> int:
        """Remove every record matching ``ref`` (any spelling).

        Returns:
            Number of records removed.
        """
        ref = FavoriteRef.coerce(ref)
        resolution = self._resolve(ref)
        if resolution is not None:
            key = _key_for(resolution.canonical_id)
        else:
            # Records kept under a legacy identity can still be removed by it
            raw = normalize(ref.raw_id)
            if not raw:
                return 0
            key = _key_for(raw)

        with self._lock:
            kept = [r for r in self._records if coalesce_key(r) != key]
            removed = [r for r in self._records if coalesce_key(r) == key]
            if not removed:
                return 0
            self._records = kept
            self._commit(r.canonical_id for r in removed)
        return len(removed)

    def clear_for_course(self, course_id: str) -> int:
        """Remove every favorite belonging to a course, including the course itself."""
        key = normalize(course_id)
        if not key:
            return 0

        def belongs(r: FavoriteRecord) -> bool:
            nid = normalize(r.canonical_id)
            body = strip_namespaces(nid)
            return (
                normalize(r.course_id) == key
                or nid == COURSE_PREFIX + key
                or body.startswith(f"{key}:")
                or body.startswith(f"{key}.")
            )

        with self._lock:
            removed = [r for r in self._records if belongs(r)]
            if not removed:
                return 0
            self._records = [r for r in self._records if not belongs(r)]
            self._commit(r.canonical_id for r in removed)
        logger.info("Cleared %d favorites for course %s", len(removed), key)
        return len(removed)

    def clear_all(self) -> int:
        """Remove every favorite."""
        with self._lock:
            removed = list(self._records)
            if not removed:
                return 0
            self._records = []
            self._commit(r.canonical_id for r in removed)
        return len(removed)

    def reset_all(self) -> None:
        """Hard reset: clear memory and persisted keys, resync, notify now."""
        with self._lock:
            removed = {r.canonical_id for r in self._records}
            self._records = []
            self._view = rebuild([])
            self._changed_ids.clear()
            self._dirty = False
        self._debouncer.cancel()
        with self._flush_lock:
            try:
                self._persistence.clear()
            except PersistenceFailure:
                logger.warning("Failed to clear persisted favorites", exc_info=True)
                with self._lock:
                    self._dirty = True
            self._synchronizer.sync([])
            self._synchronizer.notify(0, removed)

    def migrate_now(self) -> MigrationReport:
        """Re-run migration over the current records and flush immediately."""
        with self._lock:
            before = {r.canonical_id for r in self._records}
            migrated, report = self._migration.migrate_with_report(self._records)
            after = {r.canonical_id for r in migrated}
            if report.changed:
                self._records = migrated
                self._commit(before ^ after)
        self.flush()
        return report

    # --- Queries ---

    def contains(self, ref: _Ref) -> bool:
        """Membership by any spelling of the reference.

        Uses the derived membership sets first and falls back to full
        resolution only when the fast path misses.
        """
        ref = FavoriteRef.coerce(ref)
        view = self._view
        raw = normalize(ref.raw_id)
        if raw:
            if ref.is_tip and not raw.startswith(HACK_PREFIX):
                raw = HACK_PREFIX + raw
            if ref.category is not Category.COURSE or raw.startswith(COURSE_PREFIX):
                if membership_key(raw) in view.liked_ids:
                    return True
            elif membership_key(COURSE_PREFIX + raw) in view.liked_ids:
                return True

        resolution = self._resolve(ref)
        if resolution is None:
            return False
        return membership_key(resolution.canonical_id) in self._view.liked_ids

    def is_liked(self, ref: _Ref) -> bool:
        return self.contains(ref)

    def is_course_liked(self, course_id: str) -> bool:
        return COURSE_PREFIX + normalize(course_id) in self._view.liked_courses

    def query(
        self, predicate: Callable[[FavoriteRecord], bool] | None = None
    ) -> list[FavoriteRecord]:
        """Records matching ``predicate``, newest first."""
        with self._lock:
            snapshot = list(self._records)
        if predicate is None:
            return snapshot
        return [r for r in snapshot if predicate(r)]

    def favorites_for_lesson(
        self, course_id: str, lesson_id: str, only_cards: bool = True
    ) -> list[FavoriteRecord]:
        """Favorites of one lesson, newest first.

        Args:
            course_id: Course of the lesson.
            lesson_id: The lesson.
            only_cards: Skip tips and courses.
        """
        course = normalize(course_id)
        lesson = normalize(lesson_id)

        def in_lesson(r: FavoriteRecord) -> bool:
            if r.category is Category.COURSE:
                return False
            rc, rl = normalize(r.course_id), normalize(r.lesson_id)
            if not rc or not rl:
                ctx = split_context(strip_namespaces(normalize(r.canonical_id)))
                rc, rl = rc or normalize(ctx.course_id), rl or normalize(ctx.lesson_id)
            if (rc, rl) != (course, lesson):
                return False
            return not only_cards or r.category is Category.CARD

        return self.query(in_lesson)

    def count_for_lesson(self, course_id: str, lesson_id: str, only_cards: bool = True) -> int:
        return len(self.favorites_for_lesson(course_id, lesson_id, only_cards))

    def speaker_step_ids(self) -> list[str]:
        """Card step ids (``step:<c>:<l>:idx<N>``) for the practice queue, newest first."""
        out: list[str] = []
        seen: set[str] = set()
        for r in self._view.cards:
            parsed = parse_step(r.canonical_id)
            key = parsed.bare() if parsed else membership_key(r.canonical_id)
            if key not in seen:
                seen.add(key)
                out.append(key)
        return out

    def speaker_hack_step_ids(self) -> list[str]:
        """Tip ids (``hack:step:<c>:<l>:idx<N>``), newest first."""
        out: list[str] = []
        seen: set[str] = set()
        for r in self._view.hacks:
            key = membership_key(r.canonical_id)
            if key not in seen:
                seen.add(key)
                out.append(key)
        return out

    @property
    def records(self) -> tuple[FavoriteRecord, ...]:
        with self._lock:
            return tuple(self._records)

    @property
    def view(self) -> DerivedView:
        """Latest derived view. Read-only; replaced wholesale on mutation."""
        return self._view

    @property
    def resolver(self) -> StepIdentityResolver:
        return self._resolver

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    # --- Notifications and background work ---

    def subscribe(self, listener: Callable[[FavoritesChanged], None]) -> None:
        self._synchronizer.subscribe(listener)

    def unsubscribe(self, listener: Callable[[FavoritesChanged], None]) -> bool:
        return self._synchronizer.unsubscribe(listener)

    def reload(self) -> FavoritesChanged:
        """Re-emit a change notification for the current state."""
        return self._synchronizer.notify(len(self))

    def flush(self) -> bool:
        """Run pending save/sync/notify now instead of waiting for the timer.

        Also retries a save that failed earlier.

        Returns:
            True if any work ran.
        """
        if self._debouncer.flush():
            return True
        with self._lock:
            dirty = self._dirty
        if dirty:
            self._flush_pending()
            return True
        return False

    def content_changed(self, lesson_id: str | None = None) -> None:
        """Tell the resolver that lesson content changed."""
        self._resolver.invalidate(lesson_id)

    def prewarm(self) -> int:
        """Warm resolver caches for every lesson referenced by a favorite."""
        return self._resolver.prewarm(self._lesson_pairs())

    def start_prewarm(self) -> threading.Thread:
        """Run ``prewarm`` on a daemon thread. Never mutates the store."""
        thread = threading.Thread(target=self._prewarm_safely, daemon=True, name="favkit-prewarm")
        self._prewarm_thread = thread
        thread.start()
        return thread

    # --- Internals ---

    def _resolve(self, ref: FavoriteRef) -> Resolution | None:
        return self._resolver.resolve_detailed(ref.raw_id, **self._hints(ref))

    def _hints(self, ref: FavoriteRef) -> dict[str, object]:
        category = ref.category
        if category is None and ref.is_tip:
            category = Category.HACK
        if category is Category.HACK:
            hint = ContentHint(
                secondary=tip_body(ref.primary_text, ref.secondary_text, ref.meta_text, self._tip_label)
            )
        else:
            hint = ContentHint(primary=ref.primary_text, secondary=ref.secondary_text)
        return {
            "course_hint": ref.course_id or None,
            "lesson_hint": ref.lesson_id or None,
            "content_hint": hint,
            "category": category,
            "position": ref.position,
        }

    def _build_record(self, ref: FavoriteRef, resolution: Resolution) -> FavoriteRecord:
        now = self._now()
        if resolution.category is Category.COURSE:
            return FavoriteRecord(
                canonical_id=resolution.canonical_id,
                primary_text=ref.primary_text,
                secondary_text=ref.secondary_text,
                meta_text=ref.meta_text,
                course_id=resolution.course_id,
                created_at=now,
            )

        item = resolution.item
        if item is None and resolution.index is not None:
            # Canonical ids resolve without a content lookup
            items = self._resolver.items(resolution.lesson_id)
            if resolution.index < len(items):
                item = items[resolution.index]
        title = resolve_lesson_title(self._titles, resolution.course_id, resolution.lesson_id)
        if resolution.category is Category.HACK:
            body = tip_body(ref.primary_text, ref.secondary_text, ref.meta_text, self._tip_label)
            if not body and item is not None:
                body = (item.secondary_text or item.primary_text).strip()
            return FavoriteRecord(
                canonical_id=resolution.canonical_id,
                primary_text=self._tip_label,
                secondary_text=body,
                meta_text=HACK_PREFIX + body,
                course_id=resolution.course_id,
                lesson_id=resolution.lesson_id,
                lesson_title=title,
                created_at=now,
            )

        return FavoriteRecord(
            canonical_id=resolution.canonical_id,
            primary_text=ref.primary_text or (item.primary_text if item else ""),
            secondary_text=ref.secondary_text or (item.secondary_text if item else ""),
            meta_text=ref.meta_text or (item.meta_text if item else ""),
            course_id=resolution.course_id,
            lesson_id=resolution.lesson_id,
            lesson_title=title,
            created_at=now,
        )

    def _commit(self, changed_ids: Iterable[str]) -> None:
        """Recompute derived state and schedule the debounced flush. Lock held."""
        self._view = rebuild(self._records)
        self._changed_ids.update(changed_ids)
        self._dirty = True
        self._debouncer.trigger()

    def _flush_pending(self) -> None:
        with self._flush_lock:
            with self._lock:
                snapshot = list(self._records)
                changed = frozenset(self._changed_ids)
                self._changed_ids.clear()
                dirty = self._dirty
                self._dirty = False
            if dirty:
                self._save(snapshot)
            self._synchronizer.sync(snapshot)
            self._synchronizer.notify(len(snapshot), changed)

    def _save(self, snapshot: list[FavoriteRecord]) -> None:
        try:
            self._persistence.save(snapshot)
        except PersistenceFailure:
            logger.warning("Saving favorites failed; will retry on next flush", exc_info=True)
            with self._lock:
                self._dirty = True

    def _lesson_pairs(self) -> set[tuple[str, str]]:
        pairs: set[tuple[str, str]] = set()
        for r in self.query():
            if r.category is Category.COURSE:
                continue
            course, lesson = normalize(r.course_id), normalize(r.lesson_id)
            if not course or not lesson:
                ctx = split_context(strip_namespaces(normalize(r.canonical_id)))
                course = course or normalize(ctx.course_id)
                lesson = lesson or normalize(ctx.lesson_id)
            if course and lesson:
                pairs.add((course, lesson))
        return pairs

    def _prewarm_safely(self) -> None:
        try:
            self.prewarm()
        except Exception:
            logger.exception("Error while prewarming favorites resolver")


def _key_for(fid: str) -> str:
    """Coalesce key of an arbitrary (possibly legacy) id."""
    nid = normalize(fid)
    if category_of(nid) is Category.CARD:
        return compare_key(nid)
    if category_of(nid) is None and (":" in nid or "." in nid):
        return compare_key(STEP_PREFIX + nid)
    return nid
