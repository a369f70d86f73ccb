"""Client contact records."""

from __future__ import annotations

import sqlite3
from typing import Any, Mapping, Optional

from services.db import get_app_db
from services.fields import clean_optional, clean_text

_OPTIONAL_FIELDS = ("email", "phone", "notes")


def client_to_dict(row: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "id": row["id"],
        "name": row["name"],
        "email": row["email"],
        "phone": row["phone"],
        "notes": row["notes"],
    }


def _clean_fields(payload: Mapping[str, Any], partial: bool) -> dict[str, Any]:
    values: dict[str, Any] = {}
    if "name" in payload or not partial:
        name = clean_text(payload.get("name"), 200, "name")
        if not name:
            raise ValueError("Client name is required")
        values["name"] = name
    for key in _OPTIONAL_FIELDS:
        if key in payload:
            values[key] = clean_optional(payload[key], name=key)
    return values


def list_clients(owner_id: int, search: str = "") -> list[sqlite3.Row]:
    sql = "SELECT * FROM clients WHERE owner_id = ?"
    params: list[Any] = [owner_id]
    needle = (search or "").strip().lower()
    if needle:
        sql += " AND (lower(name) LIKE ? OR lower(IFNULL(email, '')) LIKE ?)"
        params.extend([f"%{needle}%"] * 2)
    sql += " ORDER BY name COLLATE NOCASE"
    return get_app_db().execute(sql, params).fetchall()


def get_client(owner_id: int, client_id: int) -> Optional[sqlite3.Row]:
    return get_app_db().execute(
        "SELECT * FROM clients WHERE id = ? AND owner_id = ?",
        (client_id, owner_id),
    ).fetchone()


def create_client(owner_id: int, payload: Mapping[str, Any]) -> sqlite3.Row:
    values = _clean_fields(payload, partial=False)
    conn = get_app_db()
    cur = conn.execute(
        "INSERT INTO clients(owner_id, name, email, phone, notes) VALUES(?, ?, ?, ?, ?)",
        (
            owner_id,
            values["name"],
            values.get("email"),
            values.get("phone"),
            values.get("notes"),
        ),
    )
    conn.commit()
    return get_client(owner_id, int(cur.lastrowid))


def update_client(owner_id: int, client_id: int, payload: Mapping[str, Any]) -> Optional[sqlite3.Row]:
    values = _clean_fields(payload, partial=True)
    if not values:
        raise ValueError("Nothing to update")
    assignments = ", ".join(f"{column} = ?" for column in values)
    conn = get_app_db()
    cur = conn.execute(
        f"UPDATE clients SET {assignments} WHERE id = ? AND owner_id = ?",
        [*values.values(), client_id, owner_id],
    )
    conn.commit()
    if cur.rowcount == 0:
        return None
    return get_client(owner_id, client_id)


def delete_client(owner_id: int, client_id: int) -> bool:
    conn = get_app_db()
    cur = conn.execute(
        "DELETE FROM clients WHERE id = ? AND owner_id = ?",
        (client_id, owner_id),
    )
    conn.commit()
    return cur.rowcount > 0
