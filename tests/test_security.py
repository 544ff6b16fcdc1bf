"""Password hashing and JWT helpers."""
from datetime import datetime, timedelta, timezone

from jose import jwt

from findmyestate.core.config import settings
from findmyestate.core.security import (
    create_access_token,
    create_reset_token,
    decode_access_token,
    decode_reset_token,
    hash_password,
    verify_password,
)


def test_password_hash_round_trip():
    hashed = hash_password("s3cret!")
    assert hashed != "s3cret!"
    assert verify_password("s3cret!", hashed)
    assert not verify_password("wrong", hashed)


def test_access_token_payload():
    payload = decode_access_token(create_access_token(sub="a@example.com", user_id="u1", name="Ann"))
    assert payload["user_id"] == "u1"
    assert payload["sub"] == "a@example.com"
    assert payload["name"] == "Ann"


def test_foreign_signature_rejected():
    token = jwt.encode({"sub": "a", "user_id": "u1"}, "some-other-secret", algorithm=settings.jwt_algorithm)
    assert decode_access_token(token) is None


def test_expired_token_rejected():
    token = jwt.encode(
        {"sub": "a", "user_id": "u1", "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )
    assert decode_access_token(token) is None


def test_reset_token_is_not_an_access_token():
    reset = create_reset_token(user_id="u1", email="a@example.com")
    assert decode_access_token(reset) is None
    assert decode_reset_token(reset)["user_id"] == "u1"


def test_access_token_is_not_a_reset_token():
    assert decode_reset_token(create_access_token(sub="a", user_id="u1")) is None
