import uuid
from datetime import datetime, timedelta, timezone

from shopit.security import (
    SCOPE_AUTHENTICATION,
    TOKEN_LENGTH,
    generate_token,
    hash_password,
    hash_token,
    verify_password,
)


def test_generated_token_shape():
    user_id = uuid.uuid4()
    token = generate_token(user_id, timedelta(hours=1), SCOPE_AUTHENTICATION)

    assert len(token.plain_text) == TOKEN_LENGTH
    assert set(token.plain_text) <= set("ABCDEFGHIJKLMNOPQRSTUVWXYZ234567")
    assert "=" not in token.plain_text
    assert token.hash == hash_token(token.plain_text)
    assert len(token.hash) == 32
    assert token.user_id == user_id
    assert token.expiry > datetime.now(timezone.utc)


def test_tokens_are_unique():
    tokens = {generate_token(uuid.uuid4(), timedelta(minutes=1), SCOPE_AUTHENTICATION).plain_text for _ in range(50)}
    assert len(tokens) == 50


def test_password_hashing():
    hashed = hash_password("password123")
    assert hashed != "password123"
    assert verify_password("password123", hashed)
    assert not verify_password("password124", hashed)
