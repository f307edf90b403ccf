"""
Connection lifecycle for one signed-in user.

Per pair the state moves none -> pending (either direction) -> connected,
or none -> passed, which only hides the candidate for the user who passed.
The manager keeps three live views (connections, incoming requests, passes),
re-runs matching whenever one of them changes, and exposes the verbs that
write back to the store. Store failures are reported as a ``failed``
result, never raised.
"""

import logging
import threading
from enum import Enum
from typing import Callable, List, Optional

from pydantic import BaseModel

from database import CONNECTIONS, PASSED, REQUESTS, DocumentStore, StoreError
from matching import compute_matches, visible_matches
from profiles import ProfileStore
from schemas import Connection, ConnectionRequest, DashboardState, RequestStatus

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    passed = "passed"
    matched = "matched"
    already_requested = "already_requested"
    request_sent = "request_sent"
    accepted = "accepted"
    declined = "declined"
    failed = "failed"


class ActionResult(BaseModel):
    outcome: Outcome
    message: str
    user_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome != Outcome.failed


StateListener = Callable[[DashboardState], None]


class ConnectionManager:
    def __init__(self, store: DocumentStore, user_id: str):
        self.store = store
        self.user_id = user_id
        self.profiles = ProfileStore(store)
        self.state = DashboardState()
        self._listeners: List[StateListener] = []
        self._unsubscribes: List[Callable[[], None]] = []
        self._started = False
        self._lock = threading.RLock()

    def add_listener(self, callback: StateListener):
        self._listeners.append(callback)

    # Subscriptions

    def start(self) -> DashboardState:
        """Open the three live views and compute the first state."""
        if self._started:
            return self.state
        uid = self.user_id
        self._unsubscribes = [
            self.store.subscribe(
                CONNECTIONS, {"$or": [{"user1_id": uid}, {"user2_id": uid}]}, self._on_connections),
            self.store.subscribe(
                REQUESTS, {"to_user_id": uid, "status": RequestStatus.pending.value}, self._on_requests),
            self.store.subscribe(PASSED, {"user_id": uid}, self._on_passed),
        ]
        self._started = True
        self.refresh()
        return self.state

    def stop(self):
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes = []
        self._started = False

    def _on_connections(self, docs):
        with self._lock:
            self.state.connections = [Connection(**d) for d in docs]
        self._changed()

    def _on_requests(self, docs):
        with self._lock:
            self.state.incoming_requests = [ConnectionRequest(**d) for d in docs]
        self._changed()

    def _on_passed(self, docs):
        with self._lock:
            self.state.passed_user_ids = [d["passed_user_id"] for d in docs]
        self._changed()

    def _changed(self):
        if self._started:
            self.refresh()

    def refresh(self) -> DashboardState:
        """Reload profiles, re-rank and notify listeners."""
        with self._lock:
            try:
                me = self.profiles.get(self.user_id)
                others = self.profiles.list_all() if me else []
            except StoreError:
                logger.exception("Loading profiles for %s failed", self.user_id)
                return self.state
            state = self.state
            state.profile = me
            if me is None:
                state.matches = []
            else:
                ranked = compute_matches(me, others)
                state.matches = visible_matches(
                    ranked, self.user_id, state.connections, state.incoming_requests, state.passed_user_ids)
            snapshot = state.model_copy(deep=True)
        for listener in list(self._listeners):
            listener(snapshot)
        return snapshot

    # Actions

    def pass_user(self, other_id: str) -> ActionResult:
        try:
            self.store.add(PASSED, {"user_id": self.user_id, "passed_user_id": other_id})
        except StoreError:
            logger.exception("Recording pass %s -> %s failed", self.user_id, other_id)
            return ActionResult(outcome=Outcome.failed, message="Failed to pass user", user_id=other_id)
        logger.info("%s passed on %s", self.user_id, other_id)
        return ActionResult(outcome=Outcome.passed, message="Passed", user_id=other_id)

    def like(self, other_id: str) -> ActionResult:
        uid = self.user_id
        try:
            # An inbound request has to be checked before our own outbound one
            inbound = self.store.query(REQUESTS, {
                "from_user_id": other_id, "to_user_id": uid, "status": RequestStatus.pending.value})
            if inbound:
                self._connect(inbound[0]["id"], other_id)
                logger.info("Mutual match between %s and %s", uid, other_id)
                return ActionResult(outcome=Outcome.matched, message="It's a match!", user_id=other_id)

            outbound = self.store.query(REQUESTS, {
                "from_user_id": uid, "to_user_id": other_id, "status": RequestStatus.pending.value})
            if outbound:
                return ActionResult(outcome=Outcome.already_requested,
                                    message="You've already sent a request to this person!", user_id=other_id)

            self.store.add(REQUESTS, {
                "from_user_id": uid, "to_user_id": other_id, "status": RequestStatus.pending.value})
        except StoreError:
            logger.exception("Like %s -> %s failed", uid, other_id)
            return ActionResult(outcome=Outcome.failed, message="Failed to send request", user_id=other_id)
        logger.info("Request sent %s -> %s", uid, other_id)
        return ActionResult(outcome=Outcome.request_sent, message="Request sent!", user_id=other_id)

    def accept_request(self, request_id: str, from_user_id: str) -> ActionResult:
        try:
            self._connect(request_id, from_user_id)
        except StoreError:
            logger.exception("Accepting request %s failed", request_id)
            return ActionResult(outcome=Outcome.failed, message="Failed to accept request", user_id=from_user_id)
        logger.info("%s accepted request %s from %s", self.user_id, request_id, from_user_id)
        return ActionResult(outcome=Outcome.accepted, message="Connection accepted!", user_id=from_user_id)

    def decline_request(self, request_id: str) -> ActionResult:
        try:
            self.store.delete(REQUESTS, request_id)
        except StoreError:
            logger.exception("Declining request %s failed", request_id)
            return ActionResult(outcome=Outcome.failed, message="Failed to decline request")
        logger.info("%s declined request %s", self.user_id, request_id)
        return ActionResult(outcome=Outcome.declined, message="Request declined")

    def _connect(self, request_id: str, other_id: str):
        connection_id = self.store.add(CONNECTIONS, {"user1_id": other_id, "user2_id": self.user_id})
        try:
            self.store.delete(REQUESTS, request_id)
        except StoreError:
            # Not compensated: the connection stays and the request is left behind
            logger.warning("Connection %s created but request %s was not removed", connection_id, request_id)
            raise
