import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Optional

from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import Engine

from .database import init_db, make_session_factory
from .directory import UserDirectory, UserRecord
from .errors import REGISTER, StoreTimeout, UsernameTaken
from .models import User, UsernameReservation

logger = logging.getLogger("uvicorn")

# Postgres query_canceled, raised when statement_timeout fires
QUERY_CANCELED_SQLSTATE = "57014"


def _is_deadline_error(error) -> bool:
    if getattr(error, "pgcode", None) == QUERY_CANCELED_SQLSTATE:
        return True
    message = str(error).lower()
    # SQLite busy timeout and libpq connect_timeout
    return "database is locked" in message or "timeout expired" in message


def _to_record(user: User) -> UserRecord:
    return UserRecord(
        uid=user.uid,
        username=user.username,
        display_name=user.display_name,
        hashed_password=user.hashed_password,
        photo_url=user.photo_url,
        bio=user.bio,
        followers_count=user.followers_count,
        following_count=user.following_count,
        is_online=user.is_online,
        last_seen=user.last_seen,
        created_at=user.created_at,
    )


class SqlUserDirectory(UserDirectory):
    """User directory on a relational database (Postgres in production, SQLite in tests)."""

    def __init__(self, engine: Engine, create_tables: bool = True):
        self.engine = engine
        self.SessionLocal = make_session_factory(engine)
        if create_tables:
            init_db(engine)

    @contextmanager
    def session(self):
        db = self.SessionLocal()
        try:
            yield db
        except sa_exc.TimeoutError as e:
            db.rollback()
            raise StoreTimeout("Database connection pool timed out") from e
        except sa_exc.OperationalError as e:
            db.rollback()
            if _is_deadline_error(e.orig):
                raise StoreTimeout(f"Database deadline exceeded: {e.orig}") from e
            raise
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def new_uid(self) -> str:
        return uuid.uuid4().hex

    def is_username_reserved(self, username: str) -> bool:
        with self.session() as db:
            return db.get(UsernameReservation, username) is not None

    def create_user(self, record: UserRecord) -> None:
        with self.session() as db:
            if db.get(UsernameReservation, record.username) is not None:
                raise UsernameTaken(REGISTER)

            db.add(User(
                uid=record.uid,
                username=record.username,
                display_name=record.display_name,
                hashed_password=record.hashed_password,
                photo_url=record.photo_url,
                bio=record.bio,
                followers_count=record.followers_count,
                following_count=record.following_count,
                is_online=record.is_online,
                last_seen=record.last_seen,
                created_at=record.created_at,
            ))
            # User row first so the reservation's foreign key resolves
            db.flush()
            db.add(UsernameReservation(username=record.username, uid=record.uid))
            try:
                db.commit()
            except sa_exc.IntegrityError as e:
                # Another registration committed the same reservation after our check
                db.rollback()
                raise UsernameTaken(REGISTER) from e
        logger.info(f"Created user {record.uid} with username '{record.username}'")

    def find_by_username(self, username: str) -> Optional[UserRecord]:
        with self.session() as db:
            user = db.query(User).filter(User.username == username).first()
            if user is None:
                return None
            return _to_record(user)

    def mark_online(self, uid: str, when: datetime) -> None:
        with self.session() as db:
            user = db.get(User, uid)
            if user is None:
                return
            user.is_online = True
            user.last_seen = when
            db.commit()

    def close(self) -> None:
        self.engine.dispose()
