from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from .database import Base


class User(Base):
    __tablename__ = "users"

    uid = Column(String, primary_key=True)
    # Not unique at the table level: uniqueness is owned by the usernames table
    username = Column(String, index=True, nullable=False)
    display_name = Column(String, nullable=False)
    hashed_password = Column(String, nullable=False)

    # Profile Fields
    photo_url = Column(String, nullable=False, default="")
    bio = Column(String, nullable=False, default="")
    followers_count = Column(Integer, nullable=False, default=0)
    following_count = Column(Integer, nullable=False, default=0)

    # Presence
    is_online = Column(Boolean, nullable=False, default=False)
    last_seen = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)


class UsernameReservation(Base):
    __tablename__ = "usernames"

    username = Column(String, primary_key=True)
    uid = Column(String, ForeignKey("users.uid"), nullable=False)
