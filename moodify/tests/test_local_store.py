import pytest
from sqlalchemy import select

from conftest import run
from moodify.errors import GatewayError
from moodify.local_store import User


def _stored_hash(gateway, email):
    with gateway._session() as db:
        return db.scalars(select(User).where(User.email == email)).one().password_hash


def test_passwords_are_stored_as_bcrypt_hashes(gateway):
    run(gateway.sign_up("hash@example.com", "secret!", {"username": "hash"}, "http://localhost/login"))

    stored = _stored_hash(gateway, "hash@example.com")

    assert stored.startswith("$2b$")
    assert "secret!" not in stored
    assert run(gateway.sign_in("hash@example.com", "secret!")).access_token


def test_wrong_password_is_invalid_credentials(gateway):
    run(gateway.sign_up("hash@example.com", "secret!", {}, "http://localhost/login"))

    with pytest.raises(GatewayError) as excinfo:
        run(gateway.sign_in("hash@example.com", "secret?"))
    assert excinfo.value.message == "Invalid login credentials"


def test_new_account_can_sign_in_right_away(gateway):
    result = run(gateway.sign_up("New@Example.com", "secret!", {"username": "new"}, "http://localhost/login"))

    assert result.session is not None
    auth = run(gateway.sign_in("new@example.com", "secret!"))
    assert auth.user.id == result.user.id
    assert run(gateway.get_user(auth.access_token)).display_name == "new"
