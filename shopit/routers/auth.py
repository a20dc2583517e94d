"""
Authentication and user management routes.

Public:
  POST   /register                 register a new user
  POST   /login                    log in
  POST   /password/forgot          mail a password reset link
  PUT    /password/reset/{token}   reset the password with a mailed token
  GET    /logout/{token}           log out (delete the token)

Authenticated:
  GET    /me                       current user profile
  PUT    /password/update          change own password
  PUT    /me/update                update own profile
  GET    /admin/users              all users (admin)
  GET    /admin/user/{id}          user details (admin)
  PUT    /admin/user/{id}          update a user (admin)
  DELETE /admin/user/{id}          delete a user (admin)
"""
from uuid import UUID

from fastapi import APIRouter, Depends, Form, Request
from sqlalchemy.orm import Session

from ..config import Settings
from ..database import get_db
from ..deps import get_current_user, get_image_store, get_mailer, get_settings, require_admin
from ..errors import BadRequestError
from ..models import ROLE_ADMIN, ROLE_USER, User
from ..schemas import LoginRequest
from ..usecases import auth as auth_uc
from ..validator import Validator

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

MIN_PASSWORD = 8


def _auth_response(result: auth_uc.AuthResult) -> dict:
    return {"success": True, "token": result.token, "user": result.user}


@router.post("/register")
def register(
    name: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    avatar: str = Form(""),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    image_store=Depends(get_image_store),
):
    v = Validator()
    v.check(name.strip() != "", "name", "user name must be provided")
    v.check(email.strip() != "", "email", "user email must be provided")
    if email.strip():
        v.check_email(email.strip(), "email", "email must be valid")
    v.check(len(password) >= MIN_PASSWORD, "password", "password must be at least 8 characters")
    v.check(avatar != "", "avatar", "user avatar must be provided")
    v.raise_if_invalid()

    result = auth_uc.register(db, settings, image_store, name.strip(), email.strip(), password, avatar)
    return _auth_response(result)


@router.post("/login")
def login(body: LoginRequest, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    v = Validator()
    v.check(body.email != "", "email", "user email must be provided")
    v.check(len(body.password) >= MIN_PASSWORD, "password", "password must be at least 8 characters")
    v.raise_if_invalid()

    return _auth_response(auth_uc.login(db, settings, body.email, body.password))


@router.post("/password/forgot")
def forgot_password(
    request: Request,
    email: str = Form(""),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    mailer=Depends(get_mailer),
):
    v = Validator()
    v.check(email.strip() != "", "email", "user email must be provided")
    v.raise_if_invalid()

    scheme = request.headers.get("X-Forwarded-Proto") or request.url.scheme
    base_url = f"{scheme}://{request.url.hostname}"
    message = auth_uc.send_password_reset_email(db, settings, mailer, email.strip(), base_url)
    return {"success": True, "message": message}


@router.put("/password/reset/{token}")
def reset_password(
    token: str,
    password: str = Form(""),
    confirmPassword: str = Form(""),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    v = Validator()
    v.check(password != "", "password", "password must be provided")
    v.check(confirmPassword != "", "confirmPassword", "confirm password must be provided")
    v.check(password == "" or len(password) >= MIN_PASSWORD, "password", "password must be at least 8 characters")
    v.raise_if_invalid()
    if password != confirmPassword:
        raise BadRequestError("passwords do not match")

    return _auth_response(auth_uc.reset_password(db, settings, token, password))


@router.get("/logout/{token}")
def logout(token: str, db: Session = Depends(get_db)):
    auth_uc.logout(db, token)
    return {"success": True, "message": "Logged out"}


@router.get("/me")
def get_user_profile(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"success": True, "user": auth_uc.get_profile(db, user)}


@router.put("/password/update")
def update_password(
    password: str = Form(""),
    oldPassword: str = Form(""),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    v = Validator()
    v.check(password != "", "password", "password must be provided")
    v.check(oldPassword != "", "oldPassword", "old password must be provided")
    v.check(password == "" or len(password) >= MIN_PASSWORD, "password", "password must be at least 8 characters")
    v.raise_if_invalid()

    return _auth_response(auth_uc.update_password(db, settings, user, oldPassword, password))


@router.put("/me/update")
def update_profile(
    name: str = Form(""),
    email: str = Form(""),
    avatar: str = Form(""),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    image_store=Depends(get_image_store),
):
    v = Validator()
    v.check(name.strip() != "", "name", "name must be provided")
    v.check(email.strip() != "", "email", "email must be provided")
    v.check_email(email.strip(), "email", "email must be valid")
    v.raise_if_invalid()

    updated = auth_uc.update_profile(db, user, image_store, name.strip(), email.strip(), avatar or None)
    return {"success": True, "user": updated}


@router.get("/admin/users")
def get_all_users(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return {"success": True, "users": auth_uc.get_all_users(db)}


@router.get("/admin/user/{user_id}")
def get_user_details(user_id: UUID, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return {"success": True, "user": auth_uc.get_user_details(db, user_id)}


@router.put("/admin/user/{user_id}")
def update_user(
    user_id: UUID,
    name: str = Form(""),
    email: str = Form(""),
    role: str = Form(ROLE_USER),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    v = Validator()
    v.check(name.strip() != "", "name", "user name must be provided")
    v.check(email.strip() != "", "email", "user email must be provided")
    v.check(role in (ROLE_USER, ROLE_ADMIN), "role", "role must be user or admin")
    v.raise_if_invalid()

    return {"success": True, "user": auth_uc.update_user(db, user_id, name.strip(), email.strip(), role)}


@router.delete("/admin/user/{user_id}")
def delete_user(
    user_id: UUID,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    image_store=Depends(get_image_store),
):
    auth_uc.delete_user(db, user_id, image_store)
    return {"success": True}
