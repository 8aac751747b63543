"""Error taxonomy for the favorites core.

None of these escape the public store API. The resolver and persistence
layers raise them internally; ``FavoriteStore`` logs and recovers.
"""

from __future__ import annotations


class FavoritesError(Exception):
    """Base class for favorites errors."""


class UnresolvableIdentity(FavoritesError):
    """A raw reference could not be mapped to a canonical ID."""

    def __init__(self, raw: str, reason: str = "") -> None:
        self.raw = raw
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"Cannot resolve favorite reference '{raw}'{detail}")


class PersistenceFailure(FavoritesError):
    """Writing favorites to durable storage failed."""


class CorruptPersistedState(FavoritesError):
    """Previously saved favorites could not be decoded."""
