import logging
from typing import Callable, List, Optional

from pydantic import BaseModel

from database import CONNECTIONS, MESSAGES, DocumentStore, now_utc
from profiles import ProfileStore
from schemas import Connection, Message, Profile

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 80


class NotConnectedError(Exception):
    pass


class ChatSummary(BaseModel):
    user: Profile
    last_message: Optional[Message] = None
    unread_count: int = 0


def thread_id(a: str, b: str) -> str:
    return "_".join(sorted([a, b]))


class ChatService:
    def __init__(self, store: DocumentStore, user_id: str):
        self.store = store
        self.user_id = user_id
        self.profiles = ProfileStore(store)

    def connections(self) -> List[Connection]:
        uid = self.user_id
        docs = self.store.query(CONNECTIONS, {"$or": [{"user1_id": uid}, {"user2_id": uid}]})
        return [Connection(**d) for d in docs]

    def find_connection(self, other_id: str) -> Optional[Connection]:
        uid = self.user_id
        docs = self.store.query(CONNECTIONS, {"$or": [
            {"user1_id": uid, "user2_id": other_id},
            {"user1_id": other_id, "user2_id": uid},
        ]})
        return Connection(**docs[0]) if docs else None

    def is_connected(self, other_id: str) -> bool:
        return self.find_connection(other_id) is not None

    def send(self, other_id: str, text: str) -> Message:
        text = (text or "").strip()
        if not text:
            raise ValueError("Message is empty")
        conn = self.find_connection(other_id)
        if conn is None:
            raise NotConnectedError(other_id)
        data = {
            "thread_id": thread_id(self.user_id, other_id),
            "from_user_id": self.user_id,
            "to_user_id": other_id,
            "text": text,
            "sent_at": now_utc(),
            "read": False,
        }
        message_id = self.store.add(MESSAGES, data)
        self.store.update(CONNECTIONS, conn.id, {"last_message_preview": text[:PREVIEW_LENGTH]})
        return Message(id=message_id, **data)

    def _thread(self, other_id: str) -> List[Message]:
        docs = self.store.query(MESSAGES, {"thread_id": thread_id(self.user_id, other_id)},
                                sort=[("sent_at", 1)])
        return [Message(**d) for d in docs]

    def history(self, other_id: str) -> List[Message]:
        """Messages in the thread, oldest first. Marks theirs as read."""
        messages = self._thread(other_id)
        for m in messages:
            if m.from_user_id == other_id and not m.read:
                self.store.update(MESSAGES, m.id, {"read": True})
                m.read = True
        return messages

    def summaries(self) -> List[ChatSummary]:
        out = []
        for conn in self.connections():
            other_id = conn.other_user_id(self.user_id)
            user = self.profiles.get(other_id)
            if user is None:
                continue
            messages = self._thread(other_id)
            unread = sum(1 for m in messages if m.from_user_id == other_id and not m.read)
            out.append(ChatSummary(user=user, last_message=messages[-1] if messages else None,
                                   unread_count=unread))
        # Most recent thread first, empty threads last
        with_messages = [s for s in out if s.last_message is not None]
        without = [s for s in out if s.last_message is None]
        with_messages.sort(key=lambda s: s.last_message.sent_at, reverse=True)
        return with_messages + without

    def subscribe(self, other_id: str, callback: Callable[[List[Message]], None]) -> Callable[[], None]:
        def on_docs(docs):
            callback([Message(**d) for d in docs])

        return self.store.subscribe(MESSAGES, {"thread_id": thread_id(self.user_id, other_id)}, on_docs,
                                    sort=[("sent_at", 1)])
