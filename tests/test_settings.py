import pytest

from baynana_auth.database import make_engine
from baynana_auth.settings import load_settings

SETTINGS_ENV = (
    "HOST",
    "PORT",
    "AUTH_LOCALE",
    "BCRYPT_ROUNDS",
    "PASSWORD_MIN_LENGTH",
    "STORE_TIMEOUT_SECONDS",
    "DATABASE_URL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = load_settings()

    assert settings.port == 3001
    assert settings.host == "0.0.0.0"
    assert settings.locale == "ar"
    assert settings.bcrypt_rounds == 10
    assert settings.password_min_length == 6
    assert settings.store_timeout == 10.0
    assert settings.database_url is None


def test_overrides(monkeypatch):
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("AUTH_LOCALE", "en")
    monkeypatch.setenv("BCRYPT_ROUNDS", "12")
    monkeypatch.setenv("STORE_TIMEOUT_SECONDS", "2.5")

    settings = load_settings()

    assert settings.port == 8080
    assert settings.locale == "en"
    assert settings.bcrypt_rounds == 12
    assert settings.store_timeout == 2.5


def test_render_postgres_url_is_rewritten(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgres://u:p@db/baynana")

    assert load_settings().database_url == "postgresql://u:p@db/baynana"


def test_invalid_port(monkeypatch):
    monkeypatch.setenv("PORT", "http")

    with pytest.raises(ValueError) as excinfo:
        load_settings()
    assert "PORT" in str(excinfo.value)


def test_file_sqlite_engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'auth.db'}", timeout=1.0)
    try:
        assert engine.dialect.name == "sqlite"
    finally:
        engine.dispose()
