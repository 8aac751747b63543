"""Async wrapper for ``FavoriteStore``.

Uses ``asyncio.to_thread()`` to offload calls that may touch content
providers or storage. Pure in-memory reads (``view``, ``records``) stay
synchronous.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from favkit.derived import DerivedView
from favkit.migration import MigrationReport
from favkit.record import FavoriteRecord, FavoriteRef
from favkit.store import FavoriteStore


class AsyncFavoriteStore:
    """Wraps a ``FavoriteStore`` with async methods.

    Example::

        store = FavoriteStore(content, aggregator=session)
        favorites = AsyncFavoriteStore(store)
        await favorites.toggle(FavoriteRef("coursea.lesson1.greeting"))
        liked = await favorites.contains("card:step:coursea:lesson1:idx0")
        await favorites.close()

    Args:
        store: The synchronous store.
    """

    def __init__(self, store: FavoriteStore) -> None:
        self._store = store

    @property
    def store(self) -> FavoriteStore:
        return self._store

    @property
    def view(self) -> DerivedView:
        return self._store.view

    @property
    def records(self) -> tuple[FavoriteRecord, ...]:
        return self._store.records

    async def toggle(self, ref: FavoriteRef | str) -> bool:
        return await asyncio.to_thread(self._store.toggle, ref)

    async def remove(self, ref: FavoriteRef | str) -> int:
        return await asyncio.to_thread(self._store.remove, ref)

    async def contains(self, ref: FavoriteRef | str) -> bool:
        return await asyncio.to_thread(self._store.contains, ref)

    async def query(
        self, predicate: Callable[[FavoriteRecord], bool] | None = None
    ) -> list[FavoriteRecord]:
        return await asyncio.to_thread(self._store.query, predicate)

    async def clear_for_course(self, course_id: str) -> int:
        return await asyncio.to_thread(self._store.clear_for_course, course_id)

    async def migrate_now(self) -> MigrationReport:
        return await asyncio.to_thread(self._store.migrate_now)

    async def prewarm(self) -> int:
        return await asyncio.to_thread(self._store.prewarm)

    async def flush(self) -> bool:
        return await asyncio.to_thread(self._store.flush)

    async def close(self) -> None:
        """Flush pending work and close the underlying store."""
        await asyncio.to_thread(self._store.close)
