"""Migration Engine: rewrites persisted favorites into canonical form.

Runs once after load (and on demand through ``FavoriteStore.migrate_now``).
Every record is passed through the resolver, its context fields are
normalized, tip payloads are repaired, and the duplicates that rewriting
produces are coalesced by recency.

The pass is idempotent: migrating an already-migrated list returns an
equal list.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from favkit.identity import (
    CARD_PREFIX,
    COURSE_PREFIX,
    HACK_PREFIX,
    STEP_PREFIX,
    Category,
    category_of,
    compare_key,
)
from favkit.matching import normalize, strip_namespaces
from favkit.providers import LessonTitleProvider
from favkit.record import FavoriteRecord, order_key, sort_newest_first
from favkit.resolver import ContentHint, StepIdentityResolver, split_context

logger = logging.getLogger(__name__)

DEFAULT_TIP_LABEL = "Tip"


@dataclass(frozen=True)
class MigrationReport:
    """Summary of one migration pass.

    Attributes:
        total_in: Records received.
        total_out: Records returned after coalescing.
        rewritten: Records whose identity or fields changed.
        unresolved: Step records kept under their prior identity.
        merged: Records dropped as older duplicates.

    Records with an empty id are dropped too, so ``total_in`` can exceed
    ``total_out + merged``.
    """

    total_in: int
    total_out: int
    rewritten: int
    unresolved: int
    merged: int

    @property
    def changed(self) -> bool:
        return self.rewritten > 0 or self.total_out != self.total_in


def resolve_lesson_title(
    titles: LessonTitleProvider | None, course_id: str, lesson_id: str
) -> str | None:
    """Title from the provider, else the lesson id with ``_`` as spaces."""
    course = normalize(course_id)
    lesson = normalize(lesson_id)
    if titles is not None:
        title = (titles.title(course, lesson) or "").strip()
        if title:
            return title
    if not lesson:
        return None
    return lesson.replace("_", " ")


def tip_body(primary: str, secondary: str, meta: str, label: str = "") -> str:
    """Pick the visible body of a tip: secondary, else meta body, else primary.

    The primary text is skipped when it is just the category label.
    """
    body = secondary.strip()
    if body:
        return body
    meta = meta.strip()
    if meta.lower().startswith(HACK_PREFIX):
        body = meta[len(HACK_PREFIX) :].strip()
        if body:
            return body
    primary = primary.strip()
    return "" if primary == label else primary


def coalesce_key(record: FavoriteRecord) -> str:
    """Dedup key: tips and courses by full id, cards by ``compare_key``."""
    cat = category_of(record.canonical_id)
    if cat is Category.CARD:
        return compare_key(record.canonical_id)
    return normalize(record.canonical_id)


def coalesce(records: Iterable[FavoriteRecord]) -> list[FavoriteRecord]:
    """Keep the latest record per coalesce key, newest first.

    Equal timestamps are settled by canonical ID so the winner does not
    depend on input order.
    """
    latest: dict[str, FavoriteRecord] = {}
    for record in records:
        key = coalesce_key(record)
        current = latest.get(key)
        if current is None or order_key(record) >= order_key(current):
            latest[key] = record
    return sort_newest_first(latest.values())


class MigrationEngine:
    """Rewrites favorite records to canonical identities.

    Args:
        resolver: Resolver used for non-canonical step ids.
        titles: Optional title provider for filling ``lesson_title``.
        tip_label: Primary text given to tips that have none.
    """

    def __init__(
        self,
        resolver: StepIdentityResolver,
        titles: LessonTitleProvider | None = None,
        tip_label: str = DEFAULT_TIP_LABEL,
    ) -> None:
        self._resolver = resolver
        self._titles = titles
        self._tip_label = tip_label

    def migrate(self, records: Iterable[FavoriteRecord]) -> list[FavoriteRecord]:
        """Rewrite and coalesce ``records``. See ``migrate_with_report``."""
        migrated, _report = self.migrate_with_report(records)
        return migrated

    def migrate_with_report(
        self, records: Iterable[FavoriteRecord]
    ) -> tuple[list[FavoriteRecord], MigrationReport]:
        """Rewrite every record and coalesce the duplicates.

        Returns:
            (records newest first, report).
        """
        source = list(records)
        rewritten: list[FavoriteRecord] = []
        changed = 0
        unresolved = 0
        for record in source:
            if not normalize(record.canonical_id):
                logger.warning("Dropping favorite with an empty id (created %s)", record.created_at)
                continue
            fixed, resolved = self._rewrite(record)
            if not resolved:
                unresolved += 1
            if fixed != record:
                changed += 1
            rewritten.append(fixed)

        result = coalesce(rewritten)
        report = MigrationReport(
            total_in=len(source),
            total_out=len(result),
            rewritten=changed,
            unresolved=unresolved,
            merged=len(rewritten) - len(result),
        )
        if report.changed:
            logger.info(
                "Migrated favorites: %d in, %d out (%d rewritten, %d merged, %d unresolved)",
                report.total_in,
                report.total_out,
                report.rewritten,
                report.merged,
                report.unresolved,
            )
        return result, report

    def rewrite(self, record: FavoriteRecord) -> FavoriteRecord:
        """Rewrite a single record without coalescing."""
        fixed, _resolved = self._rewrite(record)
        return fixed

    def _rewrite(self, record: FavoriteRecord) -> tuple[FavoriteRecord, bool]:
        nid = normalize(record.canonical_id)
        course = normalize(record.course_id)
        lesson = normalize(record.lesson_id)
        was_hack = nid.startswith(HACK_PREFIX) or record.meta_text.strip().lower().startswith(
            HACK_PREFIX
        )

        if nid and ":" not in nid and "." not in nid:
            nid = COURSE_PREFIX + nid

        if nid.startswith(COURSE_PREFIX):
            body = nid[len(COURSE_PREFIX) :]
            fixed = record.with_changes(
                canonical_id=nid,
                course_id=course or body,
                lesson_id=lesson,
            )
            return fixed, True

        ctx = split_context(strip_namespaces(nid))
        course = course or normalize(ctx.course_id)
        lesson = lesson or normalize(ctx.lesson_id)

        category = Category.HACK if was_hack else Category.CARD
        if was_hack:
            hint = ContentHint(
                secondary=tip_body(
                    record.primary_text, record.secondary_text, record.meta_text, self._tip_label
                )
            )
        else:
            hint = ContentHint(primary=record.primary_text, secondary=record.secondary_text)

        resolution = self._resolver.resolve_detailed(
            nid,
            course_hint=course or None,
            lesson_hint=lesson or None,
            content_hint=hint,
            category=category,
        )
        resolved = resolution is not None
        if resolution is not None:
            nid = resolution.canonical_id
            course = resolution.course_id
            lesson = resolution.lesson_id
        else:
            logger.info("Keeping unresolved favorite under its prior id: %s", nid)
            nid = _ensure_namespace(nid, category)

        title = record.lesson_title
        if not title and lesson:
            title = resolve_lesson_title(self._titles, course, lesson)

        primary = record.primary_text
        secondary = record.secondary_text
        meta = record.meta_text
        if was_hack:
            body = tip_body(primary, secondary, meta, self._tip_label)
            secondary = body
            meta = HACK_PREFIX + body
            if not primary.strip():
                primary = self._tip_label

        fixed = record.with_changes(
            canonical_id=nid,
            primary_text=primary,
            secondary_text=secondary,
            meta_text=meta,
            course_id=course,
            lesson_id=lesson,
            lesson_title=title or None,
        )
        return fixed, resolved


def _ensure_namespace(nid: str, category: Category) -> str:
    """Give an unresolved id a category namespace so its prefix stays authoritative."""
    if category is Category.HACK:
        if nid.startswith(HACK_PREFIX):
            return nid
        body = nid[len(CARD_PREFIX) :] if nid.startswith(CARD_PREFIX) else nid
        if not body.startswith(STEP_PREFIX):
            body = STEP_PREFIX + body
        return HACK_PREFIX + body
    if nid.startswith(CARD_PREFIX) or nid.startswith(STEP_PREFIX):
        return nid
    return STEP_PREFIX + nid
