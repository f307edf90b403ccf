import logging
from typing import Iterable, List, Optional

from database import USERS, DocumentStore
from schemas import Profile
from skills import clean_skills

logger = logging.getLogger(__name__)

SETTINGS_SKILL_LIMIT = 10
ONBOARDING_SKILL_LIMIT = 8

_PROFILE_FIELDS = ("name", "bio", "skills", "wants_to_learn")


def to_profile(doc: dict) -> Profile:
    return Profile(
        id=doc["id"],
        name=doc.get("name") or "",
        email=doc.get("email") or "",
        bio=doc.get("bio") or "",
        skills=doc.get("skills") or [],
        wants_to_learn=doc.get("wants_to_learn") or [],
        profile_complete=bool(doc.get("profile_complete")),
        created_at=doc.get("created_at"),
    )


class ProfileStore:
    """Reads and writes user profiles in the "users" collection."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def get(self, user_id: str) -> Optional[Profile]:
        doc = self.store.get(USERS, user_id)
        return to_profile(doc) if doc else None

    def list_all(self) -> List[Profile]:
        return [to_profile(d) for d in self.store.query(USERS)]

    def find_by_email(self, email: str) -> Optional[dict]:
        """Raw user document, password hash included. Only for auth."""
        docs = self.store.query(USERS, {"email": email.lower()})
        return docs[0] if docs else None

    def create(self, name: str, email: str, password_hash: str,
               skills: Iterable[str] = (), wants_to_learn: Iterable[str] = ()) -> Profile:
        skills = clean_skills(skills, SETTINGS_SKILL_LIMIT)
        wants_to_learn = clean_skills(wants_to_learn, SETTINGS_SKILL_LIMIT)
        user_id = self.store.add(USERS, {
            "name": name.strip(),
            "email": email.lower(),
            "password_hash": password_hash,
            "bio": "",
            "skills": skills,
            "wants_to_learn": wants_to_learn,
            "profile_complete": bool(skills or wants_to_learn),
        })
        logger.info("Created profile %s", user_id)
        return self.get(user_id)

    def update(self, user_id: str, **fields) -> Optional[Profile]:
        updates = {k: v for k, v in fields.items() if k in _PROFILE_FIELDS and v is not None}
        if "name" in updates:
            updates["name"] = updates["name"].strip()
        if "bio" in updates:
            updates["bio"] = updates["bio"].strip()
        for key in ("skills", "wants_to_learn"):
            if key in updates:
                updates[key] = clean_skills(updates[key], SETTINGS_SKILL_LIMIT)
        if updates:
            self.store.update(USERS, user_id, updates)
        return self.get(user_id)

    def complete_onboarding(self, user_id: str, skills: Iterable[str],
                            wants_to_learn: Iterable[str]) -> Optional[Profile]:
        self.store.update(USERS, user_id, {
            "skills": clean_skills(skills, ONBOARDING_SKILL_LIMIT),
            "wants_to_learn": clean_skills(wants_to_learn, ONBOARDING_SKILL_LIMIT),
            "profile_complete": True,
        })
        return self.get(user_id)

    def set_password_hash(self, user_id: str, password_hash: str):
        self.store.update(USERS, user_id, {"password_hash": password_hash})
