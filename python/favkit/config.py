"""Configuration for the favorites store."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass

from favkit.migration import DEFAULT_TIP_LABEL
from favkit.persistence import DEFAULT_ORDER_KEY, DEFAULT_RECORDS_KEY


@dataclass
class FavoritesConfig:
    """Settings for ``FavoriteStore.from_config``.

    Attributes:
        db_path: SQLite file for the key-value store, or ":memory:".
        records_key: Key holding the record array.
        order_key: Key holding the legacy display order. Empty disables it.
        debounce_seconds: Quiescence window before save/sync/notify.
            Bursts of toggles inside the window produce one write.
        tip_label: Primary text given to tips that carry none.
        prewarm_on_start: Warm resolver caches on a background thread
            after the initial load.
    """

    db_path: str = ":memory:"
    records_key: str = DEFAULT_RECORDS_KEY
    order_key: str = DEFAULT_ORDER_KEY
    debounce_seconds: float = 0.2
    tip_label: str = DEFAULT_TIP_LABEL
    prewarm_on_start: bool = False

    def __post_init__(self) -> None:
        if self.debounce_seconds < 0:
            raise ValueError(f"debounce_seconds must be >= 0, got {self.debounce_seconds}")
        if not self.records_key:
            raise ValueError("records_key must not be empty")

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, data: str) -> FavoritesConfig:
        """Deserialize from JSON string."""
        return cls(**json.loads(data))
