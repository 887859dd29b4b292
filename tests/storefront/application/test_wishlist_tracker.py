"""Tests for the wishlist and recently-viewed trackers."""

import json

from storefront.wishlist.tracker import RecentlyViewedTracker, WishlistTracker


class TestWishlist:
    def test_add_is_set_insert(self, storage):
        wishlist = WishlistTracker(storage)

        assert wishlist.add(7) is True
        assert wishlist.add(7) is False

        assert wishlist.items == [7]
        assert json.loads(storage.get("wishlist")) == [7]

    def test_remove(self, storage):
        wishlist = WishlistTracker(storage)
        wishlist.add(7)
        wishlist.add(12)

        assert wishlist.remove(7) is True
        assert wishlist.remove(7) is False
        assert json.loads(storage.get("wishlist")) == [12]

    def test_toggle(self, storage):
        wishlist = WishlistTracker(storage)

        assert wishlist.toggle(7) is True
        assert 7 in wishlist
        assert wishlist.toggle(7) is False
        assert 7 not in wishlist

    def test_rehydrate_drops_duplicates_and_junk(self, storage):
        storage.set("wishlist", json.dumps([7, 7, "x", 12]))

        wishlist = WishlistTracker(storage)
        wishlist.rehydrate()

        assert wishlist.items == [7, 12]

    def test_rehydrate_ignores_non_list(self, storage):
        storage.set("wishlist", json.dumps({"7": True}))

        wishlist = WishlistTracker(storage)
        wishlist.rehydrate()

        assert len(wishlist) == 0


class TestRecentlyViewed:
    def test_most_recent_first(self, storage):
        recent = RecentlyViewedTracker(storage)
        recent.record(1)
        recent.record(2)
        recent.record(1)

        assert recent.items == [1, 2]
        assert json.loads(storage.get("recentlyViewed")) == [1, 2]

    def test_capped_at_ten_evicting_oldest(self, storage):
        recent = RecentlyViewedTracker(storage)
        for product_id in range(1, 12):
            recent.record(product_id)

        assert len(recent) == 10
        assert recent.items[0] == 11
        assert 1 not in recent

    def test_persists_independently_of_wishlist(self, storage):
        wishlist = WishlistTracker(storage)
        recent = RecentlyViewedTracker(storage)

        wishlist.add(7)
        recent.record(12)

        assert json.loads(storage.get("wishlist")) == [7]
        assert json.loads(storage.get("recentlyViewed")) == [12]

    def test_rehydrate_applies_cap(self, storage):
        storage.set("recentlyViewed", json.dumps(list(range(20))))

        recent = RecentlyViewedTracker(storage, limit=5)
        recent.rehydrate()

        assert recent.items == [0, 1, 2, 3, 4]
