import os
from dataclasses import dataclass
from typing import Optional


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}") from None


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 3001
    locale: str = "ar"
    bcrypt_rounds: int = 10
    password_min_length: int = 6
    store_timeout: float = 10.0
    # SQL directory is used when set, Firestore otherwise
    database_url: Optional[str] = None


def load_settings() -> Settings:
    """
    Reads the server configuration from environment variables.
    Firebase credentials are read separately by firebase_config.
    """
    database_url = os.getenv("DATABASE_URL") or None

    # Fix for Render's URL starting with postgres:// instead of postgresql://
    if database_url and database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)

    return Settings(
        host=os.getenv("HOST", "0.0.0.0"),
        port=_int_env("PORT", 3001),
        locale=os.getenv("AUTH_LOCALE", "ar"),
        bcrypt_rounds=_int_env("BCRYPT_ROUNDS", 10),
        password_min_length=_int_env("PASSWORD_MIN_LENGTH", 6),
        store_timeout=_float_env("STORE_TIMEOUT_SECONDS", 10.0),
        database_url=database_url,
    )
