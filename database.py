"""
Document store for the Skill Swap API

Wraps a MongoDB database with the handful of operations the app needs:
add / get / query / update / delete, plus live queries that push fresh
snapshots to subscribers whenever a write made through the store changes
their result.
"""

import logging
import os
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from dotenv import load_dotenv
from pymongo import MongoClient
from pymongo.errors import PyMongoError

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "skillswap")

# Collection names shared with existing clients
USERS = "users"
REQUESTS = "connectionRequests"
CONNECTIONS = "connections"
PASSED = "passedUsers"
MESSAGES = "messages"
SESSIONS = "sessions"
PASSWORD_RESETS = "passwordResets"

Snapshot = List[Dict[str, Any]]
Listener = Callable[[Snapshot], None]
SortSpec = Optional[List[Tuple[str, int]]]


class StoreError(Exception):
    """A store operation failed at the database boundary."""


def now_utc():
    return datetime.now(timezone.utc)


def _oid(doc_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(doc_id)
    except (InvalidId, TypeError):
        return None


def _serialize(doc: Dict[str, Any]) -> Dict[str, Any]:
    out = {k: v for k, v in doc.items() if k != "_id"}
    out["id"] = str(doc["_id"])
    return out


class _Subscription:
    def __init__(self, collection: str, filters: Dict[str, Any], callback: Listener, sort: SortSpec):
        self.collection = collection
        self.filters = filters
        self.callback = callback
        self.sort = sort
        self.last: Optional[Snapshot] = None
        self.active = True
        self.lock = threading.RLock()


class DocumentStore:
    def __init__(self, database):
        self.db = database
        self._subs: List[_Subscription] = []
        self._lock = threading.RLock()

    # Reads

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        oid = _oid(doc_id)
        if oid is None:
            return None
        try:
            doc = self.db[collection].find_one({"_id": oid})
        except PyMongoError as e:
            raise StoreError(f"get {collection}/{doc_id} failed: {e}") from e
        return _serialize(doc) if doc else None

    def query(self, collection: str, filters: Optional[Dict[str, Any]] = None, sort: SortSpec = None) -> Snapshot:
        try:
            cursor = self.db[collection].find(filters or {})
            if sort:
                cursor = cursor.sort(sort)
            return [_serialize(d) for d in cursor]
        except PyMongoError as e:
            raise StoreError(f"query {collection} failed: {e}") from e

    # Writes

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        doc = dict(data)
        doc.setdefault("created_at", now_utc())
        try:
            inserted_id = self.db[collection].insert_one(doc).inserted_id
        except PyMongoError as e:
            raise StoreError(f"add to {collection} failed: {e}") from e
        self._notify(collection)
        return str(inserted_id)

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> bool:
        oid = _oid(doc_id)
        if oid is None:
            return False
        try:
            result = self.db[collection].update_one({"_id": oid}, {"$set": fields})
        except PyMongoError as e:
            raise StoreError(f"update {collection}/{doc_id} failed: {e}") from e
        self._notify(collection)
        return result.matched_count > 0

    def delete(self, collection: str, doc_id: str) -> bool:
        oid = _oid(doc_id)
        if oid is None:
            return False
        try:
            result = self.db[collection].delete_one({"_id": oid})
        except PyMongoError as e:
            raise StoreError(f"delete {collection}/{doc_id} failed: {e}") from e
        self._notify(collection)
        return result.deleted_count > 0

    def delete_many(self, collection: str, filters: Dict[str, Any]) -> int:
        try:
            result = self.db[collection].delete_many(filters)
        except PyMongoError as e:
            raise StoreError(f"delete from {collection} failed: {e}") from e
        self._notify(collection)
        return result.deleted_count

    # Live queries

    def subscribe(self, collection: str, filters: Optional[Dict[str, Any]], callback: Listener,
                  sort: SortSpec = None) -> Callable[[], None]:
        """
        Register a live query. The callback gets the current result right
        away, then every time a write through this store changes it.
        Returns a function that cancels the subscription.
        """
        sub = _Subscription(collection, filters or {}, callback, sort)
        with self._lock:
            self._subs.append(sub)
        self._deliver(sub)

        def unsubscribe():
            with self._lock:
                sub.active = False
                if sub in self._subs:
                    self._subs.remove(sub)

        return unsubscribe

    def _notify(self, collection: str):
        with self._lock:
            subs = [s for s in self._subs if s.collection == collection]
        for sub in subs:
            self._deliver(sub)

    def _deliver(self, sub: _Subscription):
        # Serialised per subscription so deliveries arrive in write order
        with sub.lock:
            if not sub.active:
                return
            try:
                snapshot = self.query(sub.collection, sub.filters, sub.sort)
            except StoreError:
                logger.exception("Refreshing live query on %s failed", sub.collection)
                return
            if snapshot == sub.last:
                return
            sub.last = snapshot
            try:
                sub.callback(snapshot)
            except Exception:
                logger.exception("Subscriber on %s raised", sub.collection)


def connect(url: Optional[str] = DATABASE_URL, name: str = DATABASE_NAME):
    if not url:
        logger.warning("DATABASE_URL not set, running without a database")
        return None
    client = MongoClient(url, serverSelectionTimeoutMS=5000)
    return client[name]


db = connect()
store = DocumentStore(db) if db is not None else None
