import threading
import time
from unittest.mock import MagicMock

import mongomock
import pytest
from pymongo.errors import PyMongoError

from database import DocumentStore, StoreError


def test_add_get_update_delete(store):
    doc_id = store.add("things", {"name": "lamp"})

    doc = store.get("things", doc_id)
    assert doc["id"] == doc_id
    assert doc["name"] == "lamp"
    assert "_id" not in doc
    assert doc["created_at"] is not None

    assert store.update("things", doc_id, {"name": "desk"})
    assert store.get("things", doc_id)["name"] == "desk"

    assert store.delete("things", doc_id)
    assert store.get("things", doc_id) is None


def test_malformed_ids_read_as_missing(store):
    assert store.get("things", "not-an-id") is None
    assert store.update("things", "not-an-id", {"x": 1}) is False
    assert store.delete("things", "not-an-id") is False


def test_query_filters_and_sort(store):
    store.add("things", {"kind": "a", "rank": 2})
    store.add("things", {"kind": "b", "rank": 1})
    store.add("things", {"kind": "a", "rank": 1})

    docs = store.query("things", {"kind": "a"}, sort=[("rank", 1)])

    assert [d["rank"] for d in docs] == [1, 2]
    assert len(store.query("things", {"kind": {"$in": ["a", "b"]}})) == 3


def test_subscribe_delivers_initial_and_changed_snapshots(store):
    store.add("things", {"kind": "a"})
    seen = []

    store.subscribe("things", {"kind": "a"}, seen.append)
    assert len(seen) == 1 and len(seen[0]) == 1

    store.add("things", {"kind": "a"})
    assert len(seen) == 2 and len(seen[1]) == 2


def test_subscribe_skips_unchanged_results(store):
    seen = []
    store.subscribe("things", {"kind": "a"}, seen.append)

    store.add("things", {"kind": "b"})
    store.add("others", {"kind": "a"})

    assert seen == [[]]


def test_unsubscribe_stops_delivery(store):
    seen = []
    unsubscribe = store.subscribe("things", {}, seen.append)

    unsubscribe()
    unsubscribe()
    store.add("things", {"kind": "a"})

    assert seen == [[]]


def test_failing_subscriber_does_not_break_writes(store):
    def boom(snapshot):
        if snapshot:
            raise RuntimeError("listener bug")

    seen = []
    store.subscribe("things", {}, boom)
    store.subscribe("things", {}, seen.append)

    doc_id = store.add("things", {"kind": "a"})

    assert store.get("things", doc_id) is not None
    assert len(seen[-1]) == 1


def test_driver_errors_become_store_errors():
    database = MagicMock()
    database.__getitem__.return_value.insert_one.side_effect = PyMongoError("down")
    database.__getitem__.return_value.find.side_effect = PyMongoError("down")

    store = DocumentStore(database)

    with pytest.raises(StoreError):
        store.add("things", {"kind": "a"})
    with pytest.raises(StoreError):
        store.query("things")


class SlowStore(DocumentStore):
    """Stalls queries made from the thread named "slow" until released."""

    def __init__(self, database):
        super().__init__(database)
        self.entered = threading.Event()
        self.release = threading.Event()

    def query(self, collection, filters=None, sort=None):
        result = super().query(collection, filters, sort)
        if threading.current_thread().name == "slow":
            self.entered.set()
            self.release.wait(timeout=2)
        return result


def test_deliveries_stay_in_write_order():
    store = SlowStore(mongomock.MongoClient()["t"])
    seen = []
    store.subscribe("things", {}, lambda snapshot: seen.append(len(snapshot)))

    slow = threading.Thread(target=store.add, args=("things", {"n": 1}), name="slow")
    slow.start()
    assert store.entered.wait(timeout=2)
    fast = threading.Thread(target=store.add, args=("things", {"n": 2}))
    fast.start()
    time.sleep(0.2)
    store.release.set()
    slow.join(timeout=2)
    fast.join(timeout=2)

    assert seen == sorted(seen)
    assert seen[-1] == 2
