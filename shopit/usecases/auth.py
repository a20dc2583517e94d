"""
Authentication and user management.

Coordinates the user repository, token issuing, password hashing, the
mail sender and the avatar image store.
"""
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional, Union
from uuid import UUID

from sqlalchemy.orm import Session

from ..clients.images import destroy_images
from ..config import Settings
from ..database import transaction
from ..errors import AuthenticationError, BadRequestError, ConflictError, NotFoundError
from ..models import ROLE_USER, User
from ..repositories import users as user_repo
from ..schemas import AvatarOut, UserOut
from ..security import (
    SCOPE_AUTHENTICATION,
    SCOPE_PASSWORD_RESET,
    generate_token,
    hash_password,
    verify_password,
)

logger = logging.getLogger(__name__)

AVATAR_FOLDER = "avatar"


@dataclass
class AuthResult:
    token: str
    user: UserOut


def user_out(user: User, avatar=None) -> UserOut:
    out = UserOut.model_validate(user)
    out.avatar = AvatarOut.model_validate(avatar) if avatar is not None else None
    return out


def _issue(db: Session, user: User, ttl: timedelta, scope: str = SCOPE_AUTHENTICATION) -> str:
    token = generate_token(user.id, ttl, scope)
    user_repo.insert_token(db, token)
    return token.plain_text


def register(
    db: Session,
    settings: Settings,
    image_store,
    name: str,
    email: str,
    password: str,
    avatar: Union[bytes, str],
) -> AuthResult:
    with transaction(db):
        if user_repo.fetch_user_by_email(db, email) is not None:
            raise ConflictError(f"user {email} already exists")
        user = user_repo.insert_user(db, name, email, hash_password(password), ROLE_USER)
        uploaded = image_store.upload(AVATAR_FOLDER, avatar)
        saved_avatar = user_repo.insert_avatar(db, uploaded.public_id, uploaded.url, user.id)
        token = _issue(db, user, timedelta(hours=settings.token_ttl_hours))
    logger.info("Registered user %s", user.id)
    return AuthResult(token=token, user=user_out(user, saved_avatar))


def login(db: Session, settings: Settings, email: str, password: str) -> AuthResult:
    with transaction(db):
        user = user_repo.fetch_user_by_email(db, email)
        if user is None or not verify_password(password, user.password):
            raise BadRequestError("invalid email or password")
        token = _issue(db, user, timedelta(hours=settings.token_ttl_hours))
    return AuthResult(token=token, user=user_out(user, user_repo.fetch_avatar_by_user(db, user.id)))


def logout(db: Session, token: str) -> None:
    with transaction(db):
        user = user_repo.fetch_user_by_token(db, token, SCOPE_AUTHENTICATION)
        if user is None:
            raise AuthenticationError()
        user_repo.delete_token_by_user(db, user.id)


def send_password_reset_email(db: Session, settings: Settings, mailer, email: str, base_url: str) -> str:
    """Mails a reset link; returns the confirmation message."""
    with transaction(db):
        user = user_repo.fetch_user_by_email(db, email)
        if user is None:
            raise NotFoundError(f"no user with email {email}")
        token = _issue(
            db, user, timedelta(minutes=settings.reset_token_ttl_minutes), SCOPE_PASSWORD_RESET
        )
        link = f"{base_url.rstrip('/')}/password/reset/{token}"
        # Sending inside the unit of work: a mail failure discards the token.
        mailer.send_mail(settings.mail_from, email, "ShopIT Password Recovery", "password-reset", {"link": link})
    return f"Email sent to {email}"


def reset_password(db: Session, settings: Settings, token: str, password: str) -> AuthResult:
    with transaction(db):
        user = user_repo.fetch_user_by_token(db, token, SCOPE_PASSWORD_RESET)
        if user is None:
            raise BadRequestError("password reset token is invalid or has expired")
        user.password = hash_password(password)
        user_repo.update_user(db, user)
        new_token = _issue(db, user, timedelta(hours=settings.token_ttl_hours))
    return AuthResult(token=new_token, user=user_out(user, user_repo.fetch_avatar_by_user(db, user.id)))


def update_password(
    db: Session, settings: Settings, principal: User, old_password: str, password: str
) -> AuthResult:
    with transaction(db):
        if not verify_password(old_password, principal.password):
            raise BadRequestError("old password is incorrect")
        principal.password = hash_password(password)
        user_repo.update_user(db, principal)
        token = _issue(db, principal, timedelta(hours=settings.token_ttl_hours))
    return AuthResult(token=token, user=user_out(principal, user_repo.fetch_avatar_by_user(db, principal.id)))


def get_profile(db: Session, principal: User) -> UserOut:
    return user_out(principal, user_repo.fetch_avatar_by_user(db, principal.id))


def update_profile(
    db: Session, principal: User, image_store, name: str, email: str, avatar: Optional[Union[bytes, str]] = None
) -> UserOut:
    with transaction(db):
        existing = user_repo.fetch_user_by_email(db, email)
        if existing is not None and existing.id != principal.id:
            raise ConflictError(f"user {email} already exists")
        current = user_repo.fetch_avatar_by_user(db, principal.id)
        replaced = []
        if avatar:
            if current is not None:
                replaced.append(current.public_id)
                user_repo.delete_avatar_by_id(db, current.public_id)
            uploaded = image_store.upload(AVATAR_FOLDER, avatar)
            current = user_repo.insert_avatar(db, uploaded.public_id, uploaded.url, principal.id)
        principal.name = name
        principal.email = email
        user_repo.update_user(db, principal)
    destroy_images(image_store, replaced)
    return user_out(principal, current)


def get_all_users(db: Session) -> List[UserOut]:
    users = user_repo.fetch_all_users(db)
    avatars = {a.user_id: a for a in user_repo.fetch_avatars(db, [u.id for u in users])}
    return [user_out(u, avatars.get(u.id)) for u in users]


def _require_user(db: Session, user_id: UUID) -> User:
    user = user_repo.fetch_user_by_id(db, user_id)
    if user is None:
        raise NotFoundError(f"user {user_id} not found")
    return user


def get_user_details(db: Session, user_id: UUID) -> UserOut:
    user = _require_user(db, user_id)
    return user_out(user, user_repo.fetch_avatar_by_user(db, user_id))


def update_user(db: Session, user_id: UUID, name: str, email: str, role: str) -> UserOut:
    with transaction(db):
        user = _require_user(db, user_id)
        existing = user_repo.fetch_user_by_email(db, email)
        if existing is not None and existing.id != user_id:
            raise ConflictError(f"user {email} already exists")
        user.name = name
        user.email = email
        user.role = role
        user_repo.update_user(db, user)
    return user_out(user, user_repo.fetch_avatar_by_user(db, user_id))


def delete_user(db: Session, user_id: UUID, image_store) -> None:
    with transaction(db):
        _require_user(db, user_id)
        avatar = user_repo.fetch_avatar_by_user(db, user_id)
        user_repo.delete_user_by_id(db, user_id)
    if avatar is not None:
        destroy_images(image_store, [avatar.public_id])
    logger.info("User %s deleted", user_id)
