"""Load stored progress, upgrading older data shapes to the current one.

Stored data has gone through several shapes across app versions:

* LEGACY_KEYS: no unified blob, just a list of learned words (plus streak
  keys) stored under separate keys.
* WORDS_AS_LIST: the unified blob, but `learnedWords` is a list and there
  may be no `collections`.
* COUNTERS_SEPARATE: the unified blob missing one or more per-feature
  counters, which still live under their own legacy keys.
* CURRENT: the unified blob in its present shape.

`migrate` is a pure function from a RawStore snapshot to a MigrationResult.
`load_progress` does the I/O around it and never raises.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum

from .config import StorageKeys, XP_REWARDS
from .gamification import level_for_xp
from .interfaces import Storage
from .models import UserProgress, WordRecord

logger = logging.getLogger(__name__)


class SchemaVersion(Enum):
    EMPTY = 'empty'
    LEGACY_KEYS = 'legacy_keys'
    WORDS_AS_LIST = 'words_as_list'
    COUNTERS_SEPARATE = 'counters_separate'
    CURRENT = 'current'


@dataclass(frozen=True)
class RawStore:
    """Snapshot of every store key the migration looks at."""
    user_data: str | None = None
    legacy_words: str | None = None
    legacy_counters: dict = field(default_factory=dict)  # progress field -> raw string or None

    @classmethod
    def read(cls, storage: Storage, user_id: str = "default") -> 'RawStore':
        return cls(
            user_data=storage.get_item(StorageKeys.USER_DATA, user_id),
            legacy_words=storage.get_item(StorageKeys.LEGACY_LEARNED_WORDS, user_id),
            legacy_counters={
                name: storage.get_item(key, user_id)
                for name, key in StorageKeys.LEGACY_COUNTERS.items()
            }
        )


@dataclass(frozen=True)
class MigrationResult:
    progress: UserProgress
    schema: SchemaVersion
    stale_keys: tuple = ()  # store keys the caller should delete


def detect_schema(raw: RawStore) -> SchemaVersion:
    """Classify the snapshot by its oldest trait. Raises ValueError on unparseable JSON."""
    if raw.user_data:
        data = json.loads(raw.user_data)
        if not isinstance(data, dict):
            raise ValueError(f"Stored progress is not an object: {type(data).__name__}")
        if isinstance(data.get('learnedWords'), list):
            return SchemaVersion.WORDS_AS_LIST
        if any(name not in data for name in StorageKeys.LEGACY_COUNTERS):
            return SchemaVersion.COUNTERS_SEPARATE
        return SchemaVersion.CURRENT
    if raw.legacy_words:
        return SchemaVersion.LEGACY_KEYS
    return SchemaVersion.EMPTY


def _parse_counter(value: str | None) -> int:
    """Leading-integer parse, 0 when absent or unparseable."""
    if not value:
        return 0
    digits = ''
    for ch in value.strip():
        if ch.isdigit() or (ch in '+-' and not digits):
            digits += ch
        else:
            break
    try:
        return max(int(digits), 0)
    except ValueError:
        return 0


def _words_by_text(words: list) -> dict:
    """Key a legacy word list by word text. Later duplicates replace earlier ones."""
    return {w['word']: w for w in words if isinstance(w, dict) and w.get('word')}


def _migrate_blob(data: dict, raw: RawStore) -> tuple[dict, list]:
    stale = []
    if isinstance(data.get('learnedWords'), list):
        data['learnedWords'] = _words_by_text(data['learnedWords'])
        data.setdefault('collections', [])

    # Only counters missing from the blob are taken from their legacy keys
    for name, key in StorageKeys.LEGACY_COUNTERS.items():
        if name not in data:
            data[name] = _parse_counter(raw.legacy_counters.get(name))
            stale.append(key)

    data.setdefault('lessonsCompletedSinceAd', 0)
    merged = {**UserProgress().to_dict(), **data}
    # Level is always derived from xp, whatever an older version stored
    merged['level'] = level_for_xp(int(merged.get('xp') or 0))
    return merged, stale


def migrate(raw: RawStore) -> MigrationResult:
    """Produce current-shape progress from whatever the store held."""
    schema = detect_schema(raw)

    if schema in (SchemaVersion.CURRENT, SchemaVersion.WORDS_AS_LIST, SchemaVersion.COUNTERS_SEPARATE):
        merged, stale = _migrate_blob(json.loads(raw.user_data), raw)
        return MigrationResult(UserProgress.from_dict(merged), schema, tuple(stale))

    if schema == SchemaVersion.LEGACY_KEYS:
        words = json.loads(raw.legacy_words)
        if not isinstance(words, list):
            raise ValueError(f"Legacy word list is not a list: {type(words).__name__}")
        learned = {k: WordRecord.from_dict(w) for k, w in _words_by_text(words).items()}
        xp = len(words) * XP_REWARDS['LESSON_COMPLETE']
        progress = UserProgress(learned_words=learned, xp=xp, level=level_for_xp(xp))
        return MigrationResult(progress, schema, StorageKeys.LEGACY_WORD_KEYS)

    return MigrationResult(UserProgress(), schema)


def load_progress(storage: Storage, user_id: str = "default") -> UserProgress:
    """Read and migrate stored progress, falling back to defaults on any error."""
    try:
        result = migrate(RawStore.read(storage, user_id))
        if result.schema not in (SchemaVersion.CURRENT, SchemaVersion.EMPTY):
            # Persist before dropping the keys the result was built from
            save_progress(storage, result.progress, user_id)
            logger.info(f"Migrated progress for {user_id} from {result.schema.value}")
        for key in result.stale_keys:
            storage.remove_item(key, user_id)
        return result.progress
    except Exception as e:
        logger.error(f"Failed to load or migrate progress for {user_id}: {type(e).__name__}: {e}")
        return UserProgress()


def save_progress(storage: Storage, progress: UserProgress, user_id: str = "default") -> None:
    """Overwrite the stored blob wholesale."""
    storage.set_item(StorageKeys.USER_DATA, json.dumps(progress.to_dict()), user_id)
