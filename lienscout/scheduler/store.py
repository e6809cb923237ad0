"""
In-memory prospect index owned by the scheduler.

Single writer: only RefreshScheduler mutates the store, always between await
points, so no lock is needed. Iteration order is first-insertion order.
"""
from typing import Dict, Iterator, List, Optional

from lienscout.core.data_types import Prospect


class ProspectStore:

    def __init__(self):
        self._items: Dict[str, Prospect] = {}

    def get(self, prospect_id: str) -> Optional[Prospect]:
        return self._items.get(prospect_id)

    def upsert(self, prospect: Prospect) -> bool:
        """Insert or replace by id. Returns True if the id was new."""
        created = prospect.id not in self._items
        self._items[prospect.id] = prospect
        return created

    def remove(self, prospect_id: str) -> Optional[Prospect]:
        return self._items.pop(prospect_id, None)

    def values(self) -> List[Prospect]:
        return list(self._items.values())

    def ids(self) -> List[str]:
        return list(self._items)

    def as_mapping(self) -> Dict[str, Prospect]:
        """Snapshot of id -> prospect."""
        return dict(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, prospect_id: object) -> bool:
        return prospect_id in self._items

    def __iter__(self) -> Iterator[Prospect]:
        return iter(self.values())
