from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from ..models import Avatar, Token, User
from ..security import IssuedToken, hash_token


def insert_user(db: Session, name: str, email: str, password_hash: str, role: str) -> User:
    user = User(name=name, email=email, password=password_hash, role=role)
    db.add(user)
    db.flush()
    return user


def fetch_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email).first()


def fetch_user_by_id(db: Session, user_id: UUID) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def fetch_all_users(db: Session) -> List[User]:
    return db.query(User).order_by(User.created_at).all()


def update_user(db: Session, user: User) -> User:
    db.add(user)
    db.flush()
    return user


def delete_user_by_id(db: Session, user_id: UUID) -> int:
    return db.query(User).filter(User.id == user_id).delete(synchronize_session=False)


def insert_avatar(db: Session, public_id: str, url: str, user_id: UUID) -> Avatar:
    avatar = Avatar(public_id=public_id, url=url, user_id=user_id)
    db.add(avatar)
    db.flush()
    return avatar


def fetch_avatar_by_user(db: Session, user_id: UUID) -> Optional[Avatar]:
    return db.query(Avatar).filter(Avatar.user_id == user_id).first()


def fetch_avatars(db: Session, user_ids: List[UUID]) -> List[Avatar]:
    if not user_ids:
        return []
    return db.query(Avatar).filter(Avatar.user_id.in_(user_ids)).all()


def delete_avatar_by_id(db: Session, public_id: str) -> int:
    return db.query(Avatar).filter(Avatar.public_id == public_id).delete(synchronize_session=False)


def insert_token(db: Session, token: IssuedToken) -> Token:
    """Stores the token hash, replacing any token the user already had."""
    delete_token_by_user(db, token.user_id)
    row = Token(
        token_hash=token.hash,
        expiry=token.expiry,
        scope=token.scope,
        user_id=token.user_id,
    )
    db.add(row)
    db.flush()
    return row


def fetch_user_by_token(db: Session, plain_text: str, scope: str) -> Optional[User]:
    now = datetime.now(timezone.utc)
    return (
        db.query(User)
        .join(Token, Token.user_id == User.id)
        .filter(
            Token.token_hash == hash_token(plain_text),
            Token.scope == scope,
            Token.expiry > now,
        )
        .first()
    )


def delete_token_by_user(db: Session, user_id: UUID) -> int:
    return db.query(Token).filter(Token.user_id == user_id).delete(synchronize_session=False)
