"""
User directory: the storage contract the auth workflows depend on.

Two implementations exist: FirestoreUserDirectory (users / usernames collections)
and SqlUserDirectory (SQLAlchemy tables). Both create the user record and its
username reservation in a single transaction.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class UserRecord:
    uid: str
    username: str
    display_name: str
    hashed_password: str
    photo_url: str = ""
    bio: str = ""
    followers_count: int = 0
    following_count: int = 0
    is_online: bool = True
    last_seen: datetime = field(default_factory=utcnow)
    created_at: datetime = field(default_factory=utcnow)

    def to_document(self) -> dict:
        """Firestore document body, field names as the mobile client reads them."""
        return {
            "uid": self.uid,
            "username": self.username,
            "displayName": self.display_name,
            "hashedPassword": self.hashed_password,
            "photoURL": self.photo_url,
            "bio": self.bio,
            "followersCount": self.followers_count,
            "followingCount": self.following_count,
            "isOnline": self.is_online,
            "lastSeen": self.last_seen,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_document(cls, data: dict) -> "UserRecord":
        now = utcnow()
        return cls(
            uid=data["uid"],
            username=data["username"],
            display_name=data.get("displayName", ""),
            hashed_password=data["hashedPassword"],
            photo_url=data.get("photoURL", ""),
            bio=data.get("bio", ""),
            followers_count=data.get("followersCount", 0),
            following_count=data.get("followingCount", 0),
            is_online=data.get("isOnline", False),
            last_seen=data.get("lastSeen") or now,
            created_at=data.get("createdAt") or now,
        )


class UserDirectory(ABC):

    @abstractmethod
    def new_uid(self) -> str:
        """Allocates a fresh, unused user id."""

    @abstractmethod
    def is_username_reserved(self, username: str) -> bool:
        ...

    @abstractmethod
    def create_user(self, record: UserRecord) -> None:
        """
        Persists the record and reserves record.username for record.uid atomically.
        Raises errors.UsernameTaken if the reservation already exists at commit time;
        in that case nothing is written.
        """

    @abstractmethod
    def find_by_username(self, username: str) -> Optional[UserRecord]:
        ...

    @abstractmethod
    def mark_online(self, uid: str, when: datetime) -> None:
        ...

    def close(self) -> None:
        pass
