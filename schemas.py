"""
Database Schemas for the Skill Swap App

Each stored model maps to a MongoDB collection:
- Profile -> "users"
- ConnectionRequest -> "connectionRequests"
- Connection -> "connections"
- PassRecord -> "passedUsers"
- Message -> "messages"
- Session -> "sessions"
- PasswordReset -> "passwordResets"

MatchCandidate and DashboardState are derived and never stored.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class Profile(BaseModel):
    """
    Skills a user can teach and wants to learn
    Collection name: "users"
    """
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., description="User id")
    name: str = Field(..., description="Display name")
    email: str = Field("", description="Email address")
    bio: str = Field("", description="Short bio")
    skills: List[str] = Field(default_factory=list, description="Skills the user can teach")
    wants_to_learn: List[str] = Field(default_factory=list, description="Skills the user wants to learn")
    profile_complete: bool = Field(False, description="Onboarding finished")
    created_at: Optional[datetime] = None


class RequestStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    declined = "declined"


class ConnectionRequest(BaseModel):
    """
    One-way proposal to connect, deleted on accept or decline
    Collection name: "connectionRequests"
    """
    id: str
    from_user_id: str = Field(..., description="Who sent the request")
    to_user_id: str = Field(..., description="Who receives it")
    status: RequestStatus = RequestStatus.pending
    created_at: Optional[datetime] = None


class Connection(BaseModel):
    """
    Mutual link between two users; the pair is unordered
    Collection name: "connections"
    """
    id: str
    user1_id: str
    user2_id: str
    created_at: Optional[datetime] = None
    last_message_preview: Optional[str] = None

    def involves(self, user_id: str) -> bool:
        return user_id in (self.user1_id, self.user2_id)

    def other_user_id(self, user_id: str) -> str:
        return self.user2_id if self.user1_id == user_id else self.user1_id


class PassRecord(BaseModel):
    """
    A user hiding a candidate from their own match list
    Collection name: "passedUsers"
    """
    id: str
    user_id: str = Field(..., description="Who passed")
    passed_user_id: str = Field(..., description="Whom they passed on")
    created_at: Optional[datetime] = None


class Message(BaseModel):
    """
    Chat message between two connected users
    Collection name: "messages"
    """
    id: str
    thread_id: str = Field(..., description="Both user ids sorted and joined with '_'")
    from_user_id: str
    to_user_id: str
    text: str
    sent_at: Optional[datetime] = None
    read: bool = False


class Session(BaseModel):
    """
    Login sessions (bearer tokens)
    Collection name: "sessions"
    """
    user_id: str
    token: str
    expires_at: int = Field(..., description="Unix timestamp expiry (seconds)")


class PasswordReset(BaseModel):
    """
    Pending password reset tokens
    Collection name: "passwordResets"
    """
    user_id: str
    email: str
    token: str
    expires_at: int = Field(..., description="Unix timestamp expiry (seconds)")


class MatchCandidate(BaseModel):
    id: str
    name: str
    bio: str
    skills: List[str]
    wants_to_learn: List[str]
    match_score: int
    common_skills: List[str]
    teaching_matches: List[str] = Field(default_factory=list, description="What they can teach you")
    learning_matches: List[str] = Field(default_factory=list, description="What they want to learn from you")


class DashboardState(BaseModel):
    profile: Optional[Profile] = None
    matches: List[MatchCandidate] = Field(default_factory=list)
    incoming_requests: List[ConnectionRequest] = Field(default_factory=list)
    connections: List[Connection] = Field(default_factory=list)
    passed_user_ids: List[str] = Field(default_factory=list)


# Request bodies

class SignupRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)
    skills: List[str] = Field(default_factory=list, max_length=10)
    wants_to_learn: List[str] = Field(default_factory=list, max_length=10)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    token: str
    password: str = Field(..., min_length=6)


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    bio: Optional[str] = None
    skills: Optional[List[str]] = Field(None, max_length=10)
    wants_to_learn: Optional[List[str]] = Field(None, max_length=10)


class OnboardingRequest(BaseModel):
    skills: List[str] = Field(default_factory=list, max_length=8)
    wants_to_learn: List[str] = Field(default_factory=list, max_length=8)


class SendMessageRequest(BaseModel):
    text: str = Field(..., min_length=1)
