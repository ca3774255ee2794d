"""
auth.py
Authentication utilities (bcrypt hashing, verify, login, roles, change password).

Two roles: "admin" (full access) and "viewer" (installation/payment summary only).
"""

from __future__ import annotations

import bcrypt
from loguru import logger

import db

ROLE_ADMIN = "admin"
ROLE_VIEWER = "viewer"


def _to_bcrypt_secret(password: str) -> bytes:
    """
    bcrypt only uses the first 72 BYTES of the password.
    We truncate to 72 bytes to avoid ValueError and to make behavior explicit.
    """
    pw = password.encode("utf-8")
    if len(pw) > 72:
        pw = pw[:72]
    return pw


def hash_password(password: str) -> str:
    """
    Returns a bcrypt hash as a UTF-8 string (stored in SQLite).
    """
    secret = _to_bcrypt_secret(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(secret, salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    secret = _to_bcrypt_secret(password)
    stored = password_hash.encode("utf-8")
    return bcrypt.checkpw(secret, stored)


def to_login_username(login_value: str) -> str:
    """Accept "valeria" or "valeria@g.com" alike."""
    v = login_value.strip().lower()
    return v.split("@", 1)[0] if "@" in v else v


def get_user(username: str):
    return db.fetch_one("SELECT * FROM admin_users WHERE username = ?", (username,))


def login(login_value: str, password: str) -> str | None:
    """Returns the user's role on success, None otherwise."""
    username = to_login_username(login_value)
    user = get_user(username)
    if not user or not verify_password(password, user["password_hash"]):
        logger.warning("Failed login for {!r}", username)
        return None
    logger.info("User {} logged in ({})", username, user["role"])
    return user["role"]


def is_restricted(role: str | None) -> bool:
    return role == ROLE_VIEWER


def change_password(username: str, new_password: str) -> None:
    new_hash = hash_password(new_password)
    db.execute(
        "UPDATE admin_users SET password_hash = ? WHERE username = ?",
        (new_hash, username),
    )
    db.clear_force_password_change()
