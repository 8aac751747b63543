"""favkit: canonical favorite identities and a synchronized favorites store."""

__version__ = "0.1.0"

from favkit.async_store import AsyncFavoriteStore
from favkit.config import FavoritesConfig
from favkit.content import ContentItem, ContentSchema, ItemKind, adapt_item, adapt_items
from favkit.derived import DerivedView, rebuild
from favkit.errors import (
    CorruptPersistedState,
    FavoritesError,
    PersistenceFailure,
    UnresolvableIdentity,
)
from favkit.identity import (
    CanonicalId,
    Category,
    card_id,
    category_of,
    compare_key,
    course_id,
    hack_id,
    is_canonical,
    membership_key,
    parse_step,
)
from favkit.matching import normalize
from favkit.migration import MigrationEngine, MigrationReport
from favkit.persistence import (
    FavoritePersistence,
    KeyValueStorage,
    MemoryKeyValueStorage,
    SQLiteKeyValueStorage,
)
from favkit.providers import (
    DictTitleProvider,
    InMemoryContentProvider,
    LessonContentProvider,
    LessonTitleProvider,
    RecordingAggregator,
    SessionAggregator,
)
from favkit.record import FavoriteRecord, FavoriteRef
from favkit.resolver import ContentHint, Resolution, StepIdentityResolver
from favkit.scheduler import Debouncer, ManualScheduler, ThreadingScheduler
from favkit.store import FavoriteStore
from favkit.synchronizer import FavoriteSets, FavoritesChanged, SessionSynchronizer

__all__ = [
    "AsyncFavoriteStore",
    "CanonicalId",
    "Category",
    "ContentHint",
    "ContentItem",
    "ContentSchema",
    "CorruptPersistedState",
    "Debouncer",
    "DerivedView",
    "DictTitleProvider",
    "FavoritePersistence",
    "FavoriteRecord",
    "FavoriteRef",
    "FavoriteSets",
    "FavoriteStore",
    "FavoritesChanged",
    "FavoritesConfig",
    "FavoritesError",
    "InMemoryContentProvider",
    "ItemKind",
    "KeyValueStorage",
    "LessonContentProvider",
    "LessonTitleProvider",
    "ManualScheduler",
    "MemoryKeyValueStorage",
    "MigrationEngine",
    "MigrationReport",
    "PersistenceFailure",
    "RecordingAggregator",
    "Resolution",
    "SQLiteKeyValueStorage",
    "SessionAggregator",
    "SessionSynchronizer",
    "StepIdentityResolver",
    "ThreadingScheduler",
    "UnresolvableIdentity",
    "adapt_item",
    "adapt_items",
    "card_id",
    "category_of",
    "compare_key",
    "course_id",
    "hack_id",
    "is_canonical",
    "membership_key",
    "normalize",
    "parse_step",
    "rebuild",
]
