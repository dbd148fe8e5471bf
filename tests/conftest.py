import pytest
from fastapi.testclient import TestClient

from baynana_auth.database import make_engine
from baynana_auth.main import create_app
from baynana_auth.models import User, UsernameReservation
from baynana_auth.settings import Settings
from baynana_auth.sql_directory import SqlUserDirectory


class StubTokenIssuer:
    """Stands in for Firebase custom token signing."""

    def __init__(self):
        self.issued = []

    def issue(self, uid):
        self.issued.append(uid)
        return f"custom-token-{uid}"


def count_rows(directory, model):
    with directory.session() as db:
        return db.query(model).count()


@pytest.fixture
def settings():
    # Lowest bcrypt cost keeps the suite fast
    return Settings(locale="en", bcrypt_rounds=4)


@pytest.fixture
def directory():
    d = SqlUserDirectory(make_engine("sqlite://"))
    yield d
    d.close()


@pytest.fixture
def token_issuer():
    return StubTokenIssuer()


@pytest.fixture
def client(settings, directory, token_issuer):
    app = create_app(settings=settings, directory=directory, token_issuer=token_issuer)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def user_count(directory):
    return lambda: count_rows(directory, User)


@pytest.fixture
def reservation_count(directory):
    return lambda: count_rows(directory, UsernameReservation)
