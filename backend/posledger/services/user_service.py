# Overview: Till operator records used to attribute sales.

from __future__ import annotations

import bcrypt

from ..extensions import db
from ..models import User
from ..models.auth import ROLES


class UserError(ValueError):
    pass


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Passwords shorter than 4 characters are refused (till PINs are 4+ digits).
    """
    if not password or len(password) < 4:
        raise UserError("Password must be at least 4 characters")
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def create_user(username: str, password: str, role: str = "staff") -> User:
    username = (username or "").strip()
    if not username:
        raise UserError("username is required")
    if role not in ROLES:
        raise UserError(f"role must be one of: {', '.join(ROLES)}")
    if db.session.query(User).filter_by(username=username).first():
        raise UserError(f"User {username!r} already exists")

    user = User(username=username, password_hash=hash_password(password), role=role, is_active=True)
    db.session.add(user)
    db.session.commit()
    return user


def set_active(user_id: int, is_active: bool) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise UserError("User not found")
    user.is_active = is_active
    db.session.commit()
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.id).all()
