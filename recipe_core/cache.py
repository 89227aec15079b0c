"""
Recipe Core - Ingredient Name Cache

Ingestion resolves every ingredient name to a row id. Hitting the
database for each of the thousands of names in a bulk load is slow, so
names are cached in memory and the cache catches up with rows inserted
by other processes by loading everything above the highest id seen so far.
"""

import logging
import threading
from typing import Callable, Dict, Iterable, Optional, Tuple

logger = logging.getLogger(__name__)

# (last_seen_id) -> rows with a greater id, as (id, name) pairs
RowLoader = Callable[[int], Iterable[Tuple[int, str]]]
# (normalized name) -> id of the newly inserted row
RowInserter = Callable[[str], int]


class IngredientNameCache:
    """
    Two-way id/name map with a last-seen-id high-water mark.

    All mutation happens under one lock, so concurrent refreshes and
    inserts cannot interleave.
    """

    def __init__(self, loader: RowLoader, inserter: RowInserter):
        self._loader = loader
        self._inserter = inserter
        self._lock = threading.Lock()
        self._by_id: Dict[int, str] = {}
        self._by_name: Dict[str, int] = {}
        self._last_seen_id = 0

    @staticmethod
    def normalize(name: str) -> str:
        if name is None or not name.strip():
            raise ValueError("Ingredient name cannot be null or empty")
        return name.strip().lower()

    @property
    def last_seen_id(self) -> int:
        return self._last_seen_id

    def __len__(self) -> int:
        return len(self._by_id)

    def refresh_if_stale(self) -> int:
        """Load rows newer than the high-water mark. Returns how many were added."""
        with self._lock:
            return self._refresh_locked()

    def _refresh_locked(self) -> int:
        added = 0
        for row_id, name in self._loader(self._last_seen_id):
            self._remember(row_id, name)
            added += 1
        if added:
            logger.debug(f"Ingredient cache loaded {added} new row(s), last id {self._last_seen_id}")
        return added

    def _remember(self, row_id: int, name: str) -> None:
        self._by_id[row_id] = name
        self._by_name[name.lower()] = row_id
        self._last_seen_id = max(self._last_seen_id, row_id)

    def get_or_insert(self, name: str) -> int:
        """Return the id for an ingredient name, inserting the row if it is new."""
        normalized = self.normalize(name)
        cached = self._by_name.get(normalized)
        if cached is not None:
            return cached

        with self._lock:
            # Another thread (or process) may have added it since the check above
            self._refresh_locked()
            cached = self._by_name.get(normalized)
            if cached is not None:
                return cached
            row_id = self._inserter(normalized)
            self._remember(row_id, normalized)
            return row_id

    def name_for(self, row_id: int) -> Optional[str]:
        """Return the ingredient name for an id, refreshing once on a miss."""
        name = self._by_id.get(row_id)
        if name is None and self.refresh_if_stale():
            name = self._by_id.get(row_id)
        return name
