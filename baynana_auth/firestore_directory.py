import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Optional

from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore import transactional
from google.cloud.firestore_v1.base_query import FieldFilter

from .directory import UserDirectory, UserRecord
from .errors import REGISTER, StoreTimeout, UsernameTaken

logger = logging.getLogger("uvicorn")

USERS_COLLECTION = "users"
USERNAMES_COLLECTION = "usernames"


@contextmanager
def _deadline(operation: str):
    try:
        yield
    except google_exceptions.DeadlineExceeded as e:
        raise StoreTimeout(f"Firestore {operation} timed out") from e


@transactional
def _create_user_in_transaction(transaction, user_ref, reservation_ref, record: UserRecord, timeout: float):
    # The reservation read joins the transaction, so a concurrent registration
    # of the same username forces a retry and then sees the reservation.
    snapshot = reservation_ref.get(transaction=transaction, timeout=timeout)
    if snapshot.exists:
        raise UsernameTaken(REGISTER)
    transaction.set(user_ref, record.to_document())
    transaction.set(reservation_ref, {"uid": record.uid})


class FirestoreUserDirectory(UserDirectory):
    """
    Users live in `users/{uid}`; `usernames/{username}` holds {"uid": uid}
    and is the uniqueness index Firestore cannot express natively.
    """

    def __init__(self, client, timeout: float = 10.0):
        self.client = client
        self.timeout = timeout

    @classmethod
    def from_app(cls, app, timeout: float = 10.0) -> "FirestoreUserDirectory":
        return cls(firestore.client(app), timeout=timeout)

    @property
    def users(self):
        return self.client.collection(USERS_COLLECTION)

    @property
    def usernames(self):
        return self.client.collection(USERNAMES_COLLECTION)

    def new_uid(self) -> str:
        # Auto-id generation is client side, no round-trip
        return self.users.document().id

    def is_username_reserved(self, username: str) -> bool:
        with _deadline("username lookup"):
            snapshot = self.usernames.document(username).get(timeout=self.timeout)
        return snapshot.exists

    def create_user(self, record: UserRecord) -> None:
        user_ref = self.users.document(record.uid)
        reservation_ref = self.usernames.document(record.username)
        with _deadline("registration transaction"):
            _create_user_in_transaction(
                self.client.transaction(), user_ref, reservation_ref, record, self.timeout
            )
        logger.info(f"Created user {record.uid} with username '{record.username}'")

    def find_by_username(self, username: str) -> Optional[UserRecord]:
        query = self.users.where(filter=FieldFilter("username", "==", username)).limit(1)
        with _deadline("user query"):
            docs = query.get(timeout=self.timeout)
        if not docs:
            return None

        data = docs[0].to_dict() or {}
        data.setdefault("uid", docs[0].id)
        return UserRecord.from_document(data)

    def mark_online(self, uid: str, when: datetime) -> None:
        with _deadline("presence update"):
            self.users.document(uid).update(
                {"isOnline": True, "lastSeen": when}, timeout=self.timeout
            )

    def close(self) -> None:
        self.client.close()
