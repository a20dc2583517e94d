import logging

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from .config import Settings
from .database import get_db
from .errors import AuthenticationError, PermissionDenied
from .models import ROLE_ADMIN, User
from .repositories import users as user_repo
from .security import SCOPE_AUTHENTICATION, TOKEN_LENGTH

logger = logging.getLogger(__name__)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_image_store(request: Request):
    return request.app.state.image_store


def get_payment_gateway(request: Request):
    return request.app.state.payment_gateway


def get_mailer(request: Request):
    return request.app.state.mailer


def get_event_bus(request: Request):
    return request.app.state.event_bus


def bearer_token(request: Request) -> str:
    header = request.headers.get("Authorization", "")
    parts = header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        logger.info("no bearer authorization header received")
        raise AuthenticationError()
    token = parts[1]
    if len(token) != TOKEN_LENGTH:
        logger.info("bearer token has the wrong length")
        raise AuthenticationError()
    return token


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Resolves the authenticated principal from the bearer token."""
    token = bearer_token(request)
    user = user_repo.fetch_user_by_token(db, token, SCOPE_AUTHENTICATION)
    if user is None:
        logger.info("bearer token not found or expired")
        raise AuthenticationError()
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != ROLE_ADMIN:
        raise PermissionDenied(f"role ({user.role}) is not allowed to access this resource")
    return user
