"""Serialization helpers for converting FavoriteRecord to and from dicts.

Used by FavoritePersistence and the CLI. The decoder also accepts the
field names written by older builds (``id``, ``ru``, ``th``, ``phonetic``,
camelCase context keys) and numeric epoch timestamps.
"""

from __future__ import annotations

from datetime import datetime, timezone

from favkit.record import FavoriteRecord

# historic key -> current key
_LEGACY_KEYS = {
    "id": "canonical_id",
    "ru": "primary_text",
    "th": "secondary_text",
    "phonetic": "meta_text",
    "courseId": "course_id",
    "lessonId": "lesson_id",
    "lessonTitle": "lesson_title",
    "createdAt": "created_at",
}


def record_to_dict(record: FavoriteRecord) -> dict:
    return {
        "canonical_id": record.canonical_id,
        "primary_text": record.primary_text,
        "secondary_text": record.secondary_text,
        "meta_text": record.meta_text,
        "course_id": record.course_id,
        "lesson_id": record.lesson_id,
        "lesson_title": record.lesson_title,
        "created_at": record.created_at.isoformat(),
    }


def parse_timestamp(value: object) -> datetime:
    """Decode an ISO 8601 string or epoch seconds into an aware datetime.

    Raises:
        ValueError: If the value is neither.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid timestamp: {value!r}")
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError) as exc:
            raise ValueError(f"Timestamp out of range: {value!r}") from exc
    if isinstance(value, str):
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return ts
    raise ValueError(f"Invalid timestamp: {value!r}")


def dict_to_record(d: dict) -> FavoriteRecord:
    """Reconstruct a FavoriteRecord from a dict.

    Raises:
        KeyError: If the id field is missing.
        ValueError: If the id is not a string, or the timestamp cannot be
            decoded.
        TypeError: If ``d`` is not a mapping.
    """
    if not isinstance(d, dict):
        raise TypeError(f"Expected an object, got {type(d).__name__}")
    data = {_LEGACY_KEYS.get(k, k): v for k, v in d.items()}
    fid = data["canonical_id"]
    if fid is None:
        fid = ""
    elif not isinstance(fid, str):
        raise ValueError(f"Invalid id: {fid!r}")
    ts = data.get("created_at")
    title = data.get("lesson_title")
    return FavoriteRecord(
        canonical_id=fid,
        primary_text=str(data.get("primary_text") or ""),
        secondary_text=str(data.get("secondary_text") or ""),
        meta_text=str(data.get("meta_text") or ""),
        course_id=str(data.get("course_id") or ""),
        lesson_id=str(data.get("lesson_id") or ""),
        lesson_title=str(title) if title else None,
        created_at=parse_timestamp(ts) if ts is not None else datetime.fromtimestamp(0, tz=timezone.utc),
    )
