import pytest

from baynana_auth import errors
from baynana_auth.errors import StoreTimeout
from baynana_auth.passwords import verify_password
from baynana_auth.service import AuthService


@pytest.fixture
def service(directory, token_issuer):
    return AuthService(directory, token_issuer, bcrypt_rounds=4)


def test_register_stores_hashed_password_and_defaults(service, directory):
    result = service.register("Nora", "p@ss1234", "Nora")

    record = directory.find_by_username("nora")
    assert record.uid == result.uid
    assert record.hashed_password != "p@ss1234"
    assert record.hashed_password.startswith("$2")
    assert verify_password("p@ss1234", record.hashed_password)
    assert record.photo_url == ""
    assert record.bio == ""
    assert record.followers_count == 0
    assert record.following_count == 0
    assert record.is_online is True


def test_register_reserves_username(service, directory):
    result = service.register("nora", "p@ss1234", "Nora")

    assert directory.is_username_reserved("nora")
    assert service.check_username("NORA") is False
    assert result.custom_token == f"custom-token-{result.uid}"


def test_login_returns_registered_uid(service):
    registered = service.register("nora", "p@ss1234", "Nora")
    logged_in = service.login("nora", "p@ss1234")

    assert logged_in.uid == registered.uid
    assert logged_in.display_name == "Nora"


def test_login_wrong_password(service):
    service.register("nora", "p@ss1234", "Nora")

    with pytest.raises(errors.InvalidCredentials):
        service.login("nora", "wrong")


def test_login_unknown_user(service):
    with pytest.raises(errors.UserNotFound):
        service.login("nobody", "p@ss1234")


def test_login_over_long_password_never_matches(service):
    service.register("nora", "p@ss1234", "Nora")

    with pytest.raises(errors.InvalidCredentials):
        service.login("nora", "x" * 100)


def test_password_too_long_rejected(service):
    with pytest.raises(errors.ValidationError) as excinfo:
        service.register("nora", "é" * 40, "Nora")
    assert excinfo.value.message_key == "password_too_long"


def test_configurable_password_minimum(directory, token_issuer):
    service = AuthService(directory, token_issuer, bcrypt_rounds=4, password_min_length=10)

    with pytest.raises(errors.ValidationError) as excinfo:
        service.register("nora", "p@ss1234", "Nora")
    assert excinfo.value.message_key == "password_too_short"


def test_username_too_long_rejected(service):
    with pytest.raises(errors.ValidationError) as excinfo:
        service.register("n" * 65, "p@ss1234", "Nora")
    assert excinfo.value.message_key == "invalid_username"


def test_validation_happens_before_store_access(service, directory, monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("store must not be touched")

    monkeypatch.setattr(directory, "is_username_reserved", fail)
    monkeypatch.setattr(directory, "find_by_username", fail)

    with pytest.raises(errors.ValidationError):
        service.register("nora", "", "Nora")
    with pytest.raises(errors.ValidationError):
        service.login(None, "p@ss1234")
    with pytest.raises(errors.ValidationError):
        service.check_username("  ")


def test_presence_update_failure_does_not_block_login(service, directory, monkeypatch):
    registered = service.register("nora", "p@ss1234", "Nora")

    def broken(uid, when):
        raise RuntimeError("write quota exceeded")

    monkeypatch.setattr(directory, "mark_online", broken)

    result = service.login("nora", "p@ss1234")
    assert result.uid == registered.uid


def test_login_updates_presence(service, directory):
    registered = service.register("nora", "p@ss1234", "Nora")
    before = directory.find_by_username("nora").last_seen

    service.login("nora", "p@ss1234")

    after = directory.find_by_username("nora")
    assert after.is_online is True
    assert after.last_seen >= before
    assert after.uid == registered.uid


def test_race_on_reservation_yields_username_taken(service, directory, monkeypatch, user_count, reservation_count):
    service.register("nora", "p@ss1234", "Nora")

    # Both registrants pass the pre-check; the reservation is decided in the transaction
    monkeypatch.setattr(directory, "is_username_reserved", lambda username: False)

    with pytest.raises(errors.UsernameTaken):
        service.register("nora", "other-pass", "Nora Two")
    assert user_count() == 1
    assert reservation_count() == 1


@pytest.mark.parametrize("operation, call", [
    ("register", lambda s: s.register("nora", "p@ss1234", "Nora")),
    ("check_username", lambda s: s.check_username("nora")),
])
def test_store_timeout_maps_to_timeout(service, directory, monkeypatch, operation, call):
    def slow(*args, **kwargs):
        raise StoreTimeout("deadline exceeded")

    monkeypatch.setattr(directory, "is_username_reserved", slow)

    with pytest.raises(errors.Timeout) as excinfo:
        call(service)
    assert excinfo.value.operation == operation
    assert excinfo.value.status_code == 504


def test_login_timeout(service, directory, monkeypatch):
    def slow(username):
        raise StoreTimeout("deadline exceeded")

    monkeypatch.setattr(directory, "find_by_username", slow)

    with pytest.raises(errors.Timeout):
        service.login("nora", "p@ss1234")


def test_issuer_failure_is_internal_error(service, token_issuer, monkeypatch):
    def invalid(uid):
        raise ValueError("uid must be a non-empty string")

    monkeypatch.setattr(token_issuer, "issue", invalid)

    with pytest.raises(errors.InternalError) as excinfo:
        service.register("nora", "p@ss1234", "Nora")
    assert excinfo.value.message_key == "register.internal"


def test_whitespace_password_is_taken_verbatim(service):
    registered = service.register("nora", "      ", "Nora")

    assert service.login("nora", "      ").uid == registered.uid
    with pytest.raises(errors.InvalidCredentials):
        service.login("nora", "     ")


def test_empty_password_is_missing(service):
    with pytest.raises(errors.ValidationError) as excinfo:
        service.login("nora", "")
    assert excinfo.value.message_key == "login.missing_fields"
