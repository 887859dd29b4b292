"""Wishlist and recently-viewed product trackers.

Both are plain ordered id lists persisted to the client key/value store on
every change. Neither touches inventory.
"""

import json

import structlog

from storefront.config import RECENTLY_VIEWED_STORAGE_KEY, WISHLIST_STORAGE_KEY
from storefront.gateway.storage import KeyValueStore
from storefront.shared.observable import Observable

logger = structlog.get_logger(__name__)


class _ProductIdList(Observable):
    def __init__(self, storage: KeyValueStore, storage_key: str) -> None:
        super().__init__()
        self._storage = storage
        self._storage_key = storage_key
        self._ids: list[int] = []

    @property
    def items(self) -> list[int]:
        return list(self._ids)

    def __contains__(self, product_id) -> bool:
        return product_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def rehydrate(self) -> None:
        raw = self._storage.get(self._storage_key)
        if not raw:
            return
        try:
            data = json.loads(raw)
        except ValueError as exc:
            logger.warning("Discarding unreadable stored list", key=self._storage_key, error=str(exc))
            self._storage.remove(self._storage_key)
            return
        if not isinstance(data, list):
            logger.warning("Ignoring stored list of unexpected shape", key=self._storage_key)
            return

        ids: list[int] = []
        for value in data:
            if isinstance(value, int) and value not in ids:
                ids.append(value)
        self._ids = ids
        self._notify()

    def _commit(self) -> None:
        self._storage.set(self._storage_key, json.dumps(self._ids))
        self._notify()


class WishlistTracker(_ProductIdList):
    def __init__(self, storage: KeyValueStore, storage_key: str = WISHLIST_STORAGE_KEY) -> None:
        super().__init__(storage, storage_key)

    def add(self, product_id: int) -> bool:
        """Insert ``product_id``; returns False if it was already wishlisted."""
        if product_id in self._ids:
            return False
        self._ids.append(product_id)
        self._commit()
        return True

    def remove(self, product_id: int) -> bool:
        if product_id not in self._ids:
            return False
        self._ids.remove(product_id)
        self._commit()
        return True

    def toggle(self, product_id: int) -> bool:
        """Flip membership; returns True when the product is now wishlisted."""
        if product_id in self._ids:
            self.remove(product_id)
            return False
        self.add(product_id)
        return True


class RecentlyViewedTracker(_ProductIdList):
    """Most-recently-viewed first, capped at ``limit`` entries."""

    def __init__(
        self,
        storage: KeyValueStore,
        storage_key: str = RECENTLY_VIEWED_STORAGE_KEY,
        limit: int = 10,
    ) -> None:
        super().__init__(storage, storage_key)
        self.limit = limit

    def record(self, product_id: int) -> None:
        ids = [product_id] + [pid for pid in self._ids if pid != product_id]
        self._ids = ids[: self.limit]
        self._commit()

    def rehydrate(self) -> None:
        super().rehydrate()
        self._ids = self._ids[: self.limit]
