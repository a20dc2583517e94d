import base64
import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID

from passlib.context import CryptContext

SCOPE_AUTHENTICATION = "authentication"
SCOPE_PASSWORD_RESET = "password-reset"

# 16 random bytes, base32 without padding.
TOKEN_LENGTH = 26

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


@dataclass
class IssuedToken:
    plain_text: str
    hash: bytes
    user_id: UUID
    expiry: datetime
    scope: str


def hash_token(plain_text: str) -> bytes:
    return hashlib.sha256(plain_text.encode()).digest()


def generate_token(user_id: UUID, ttl: timedelta, scope: str) -> IssuedToken:
    plain = base64.b32encode(secrets.token_bytes(16)).decode().rstrip("=")
    return IssuedToken(
        plain_text=plain,
        hash=hash_token(plain),
        user_id=user_id,
        expiry=datetime.now(timezone.utc) + ttl,
        scope=scope,
    )


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)
