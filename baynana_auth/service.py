"""
Registration, login and username availability workflows.

AuthService is constructed once at startup with its collaborators (user
directory, token issuer) injected, and is shared by every request. It holds
no mutable state of its own.
"""
import logging
import re
from dataclasses import dataclass
from typing import Optional, Protocol

from .directory import UserDirectory, UserRecord, utcnow
from .errors import (
    CHECK_USERNAME,
    LOGIN,
    REGISTER,
    AuthError,
    InternalError,
    InvalidCredentials,
    StoreTimeout,
    Timeout,
    UserNotFound,
    UsernameTaken,
    ValidationError,
)
from .passwords import DEFAULT_ROUNDS, MAX_PASSWORD_BYTES, hash_password, verify_password

logger = logging.getLogger("uvicorn")

USERNAME_MAX_LENGTH = 64
_INVALID_USERNAME_CHARS = re.compile(r"[\s/]")


class TokenIssuer(Protocol):
    def issue(self, uid: str) -> str:
        ...


@dataclass
class AuthResult:
    uid: str
    username: str
    display_name: str
    custom_token: str


def _is_blank(value: Optional[str]) -> bool:
    return value is None or value.strip() == ""


def _is_missing(value: Optional[str]) -> bool:
    # Passwords are taken verbatim, whitespace included
    return value is None or value == ""


def normalize_username(username: str) -> str:
    return username.strip().lower()


class AuthService:
    def __init__(
        self,
        directory: UserDirectory,
        token_issuer: TokenIssuer,
        bcrypt_rounds: int = DEFAULT_ROUNDS,
        password_min_length: int = 6,
    ):
        self.directory = directory
        self.token_issuer = token_issuer
        self.bcrypt_rounds = bcrypt_rounds
        self.password_min_length = password_min_length

    # --- Validation ---

    def _check_username_policy(self, username: str, operation: str) -> None:
        if len(username) > USERNAME_MAX_LENGTH or _INVALID_USERNAME_CHARS.search(username):
            raise ValidationError(operation, reason="invalid_username")

    def _check_password_policy(self, password: str) -> None:
        if len(password) < self.password_min_length:
            raise ValidationError(REGISTER, reason="password_too_short")
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(REGISTER, reason="password_too_long")

    # --- Workflows ---

    def register(self, username: Optional[str], password: Optional[str], display_name: Optional[str]) -> AuthResult:
        if _is_blank(username) or _is_missing(password) or _is_blank(display_name):
            raise ValidationError(REGISTER)

        username = normalize_username(username)
        self._check_username_policy(username, REGISTER)
        self._check_password_policy(password)

        try:
            if self.directory.is_username_reserved(username):
                raise UsernameTaken(REGISTER)

            hashed_password = hash_password(password, rounds=self.bcrypt_rounds)
            now = utcnow()
            record = UserRecord(
                uid=self.directory.new_uid(),
                username=username,
                display_name=display_name,
                hashed_password=hashed_password,
                is_online=True,
                last_seen=now,
                created_at=now,
            )
            # Raises UsernameTaken if a concurrent registration won the reservation
            self.directory.create_user(record)

            custom_token = self.token_issuer.issue(record.uid)
        except AuthError:
            raise
        except StoreTimeout as e:
            logger.error(f"Registration timed out for '{username}': {e}")
            raise Timeout(REGISTER) from e
        except Exception as e:
            logger.exception(f"Registration error for '{username}': {e}")
            raise InternalError(REGISTER) from e

        return AuthResult(
            uid=record.uid,
            username=record.username,
            display_name=record.display_name,
            custom_token=custom_token,
        )

    def login(self, username: Optional[str], password: Optional[str]) -> AuthResult:
        if _is_blank(username) or _is_missing(password):
            raise ValidationError(LOGIN)

        username = normalize_username(username)

        try:
            user = self.directory.find_by_username(username)
            if user is None:
                raise UserNotFound(LOGIN)

            if not verify_password(password, user.hashed_password):
                raise InvalidCredentials(LOGIN)

            self._update_presence(user)

            custom_token = self.token_issuer.issue(user.uid)
        except AuthError:
            raise
        except StoreTimeout as e:
            logger.error(f"Login timed out for '{username}': {e}")
            raise Timeout(LOGIN) from e
        except Exception as e:
            logger.exception(f"Login error for '{username}': {e}")
            raise InternalError(LOGIN) from e

        return AuthResult(
            uid=user.uid,
            username=user.username,
            display_name=user.display_name,
            custom_token=custom_token,
        )

    def _update_presence(self, user: UserRecord) -> None:
        # Presence is not part of authentication; a failed update must not fail the login
        try:
            self.directory.mark_online(user.uid, utcnow())
        except Exception as e:
            logger.warning(f"⚠️ Could not update presence for uid={user.uid}: {e}")

    def check_username(self, username: Optional[str]) -> bool:
        """Returns True when the username is free to register."""
        if _is_blank(username):
            raise ValidationError(CHECK_USERNAME)

        username = normalize_username(username)
        self._check_username_policy(username, CHECK_USERNAME)

        try:
            return not self.directory.is_username_reserved(username)
        except StoreTimeout as e:
            logger.error(f"Username check timed out for '{username}': {e}")
            raise Timeout(CHECK_USERNAME) from e
        except Exception as e:
            logger.exception(f"Username check error for '{username}': {e}")
            raise InternalError(CHECK_USERNAME) from e
