"""User management helpers for HarmonyDesk."""

from __future__ import annotations

import sqlite3
from typing import Optional

from services.db import get_app_db
from services.security import hash_password, verify_password


class UserExistsError(ValueError):
    """Raised when attempting to create a user with an email that already exists."""


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def create_user(email: str, password: str, role: str = "user", is_active: bool = True) -> int:
    email_norm = normalize_email(email)
    if not email_norm:
        raise ValueError("Email is required")
    if role not in {"admin", "user"}:
        raise ValueError("Invalid role")
    password_hash = hash_password(password)

    conn = get_app_db()
    try:
        cur = conn.execute(
            """
            INSERT INTO users(email, password_hash, role, is_active)
            VALUES(?, ?, ?, ?)
            """,
            (email_norm, password_hash, role, 1 if is_active else 0),
        )
        conn.commit()
    except sqlite3.IntegrityError as exc:
        raise UserExistsError(f"User with email {email_norm!r} already exists") from exc

    return int(cur.lastrowid)


def get_user_by_email(email: str) -> Optional[sqlite3.Row]:
    email_norm = normalize_email(email)
    if not email_norm:
        return None
    conn = get_app_db()
    return conn.execute(
        "SELECT * FROM users WHERE email = ?",
        (email_norm,),
    ).fetchone()


def get_user_by_id(user_id: int) -> Optional[sqlite3.Row]:
    conn = get_app_db()
    return conn.execute(
        "SELECT * FROM users WHERE id = ?",
        (user_id,),
    ).fetchone()


def authenticate_user(email: str, password: str) -> Optional[sqlite3.Row]:
    user = get_user_by_email(email)
    if not user or not user["is_active"]:
        return None
    if not verify_password(password, user["password_hash"]):
        return None
    return user


def count_users() -> int:
    conn = get_app_db()
    row = conn.execute("SELECT COUNT(*) AS c FROM users").fetchone()
    return int(row["c"] if row else 0)


def mark_user_login(user_id: int) -> None:
    conn = get_app_db()
    conn.execute(
        "UPDATE users SET last_login_at = CURRENT_TIMESTAMP WHERE id = ?",
        (user_id,),
    )
    conn.commit()


def list_users() -> list[sqlite3.Row]:
    conn = get_app_db()
    return conn.execute(
        "SELECT id, email, role, is_active, created_at, updated_at, last_login_at FROM users ORDER BY email COLLATE NOCASE"
    ).fetchall()


def user_to_dict(row: sqlite3.Row) -> dict:
    return {
        "id": row["id"],
        "email": row["email"],
        "role": row["role"],
        "isActive": bool(row["is_active"]),
        "lastLoginAt": row["last_login_at"],
    }


def set_user_password(user_id: int, password: str) -> None:
    conn = get_app_db()
    conn.execute(
        "UPDATE users SET password_hash = ? WHERE id = ?",
        (hash_password(password), user_id),
    )
    conn.commit()
