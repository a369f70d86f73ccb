"""Mediation case records."""

from __future__ import annotations

import sqlite3
from typing import Any, Mapping, Optional

from services.db import get_app_db
from services.fields import clean_optional, clean_text

CASE_STATUSES = ("Open", "Upcoming", "Closed")

# JSON key -> column
_FIELDS = {
    "caseNumber": "case_number",
    "matter": "matter",
    "parties": "parties",
    "county": "county",
    "status": "status",
    "nextSessionDate": "next_session_date",
    "notes": "notes",
}


def case_to_dict(row: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "id": row["id"],
        "caseNumber": row["case_number"],
        "matter": row["matter"],
        "parties": row["parties"],
        "county": row["county"],
        "status": row["status"],
        "nextSessionDate": row["next_session_date"],
        "notes": row["notes"],
    }


def _clean_fields(payload: Mapping[str, Any], partial: bool) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for key, column in _FIELDS.items():
        if key not in payload:
            continue
        if column in {"case_number", "matter"}:
            values[column] = clean_text(payload[key], 200, key)
        elif column == "status":
            values[column] = clean_text(payload[key], 40, key)
        else:
            values[column] = clean_optional(payload[key], name=key)

    if not partial:
        values.setdefault("status", "Open")
    for required in ("case_number", "matter"):
        if (not partial or required in values) and not values.get(required):
            raise ValueError("Case number and matter are required")
    if "status" in values and values["status"] not in CASE_STATUSES:
        raise ValueError(f"Unknown case status: {values['status']!r}")
    return values


def list_cases(owner_id: int, status: Optional[str] = None, search: str = "") -> list[sqlite3.Row]:
    sql = "SELECT * FROM cases WHERE owner_id = ?"
    params: list[Any] = [owner_id]
    if status:
        sql += " AND status = ?"
        params.append(status)
    needle = (search or "").strip().lower()
    if needle:
        sql += " AND (lower(case_number) LIKE ? OR lower(matter) LIKE ? OR lower(IFNULL(parties, '')) LIKE ?)"
        params.extend([f"%{needle}%"] * 3)
    sql += " ORDER BY created_at DESC, id DESC"
    return get_app_db().execute(sql, params).fetchall()


def get_case(owner_id: int, case_id: int) -> Optional[sqlite3.Row]:
    return get_app_db().execute(
        "SELECT * FROM cases WHERE id = ? AND owner_id = ?",
        (case_id, owner_id),
    ).fetchone()


def create_case(owner_id: int, payload: Mapping[str, Any]) -> sqlite3.Row:
    values = _clean_fields(payload, partial=False)
    columns = ["owner_id", *values.keys()]
    conn = get_app_db()
    cur = conn.execute(
        f"INSERT INTO cases({', '.join(columns)}) VALUES({', '.join('?' for _ in columns)})",
        [owner_id, *values.values()],
    )
    conn.commit()
    return get_case(owner_id, int(cur.lastrowid))


def update_case(owner_id: int, case_id: int, payload: Mapping[str, Any]) -> Optional[sqlite3.Row]:
    values = _clean_fields(payload, partial=True)
    if not values:
        raise ValueError("Nothing to update")
    assignments = ", ".join(f"{column} = ?" for column in values)
    conn = get_app_db()
    cur = conn.execute(
        f"UPDATE cases SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = ? AND owner_id = ?",
        [*values.values(), case_id, owner_id],
    )
    conn.commit()
    if cur.rowcount == 0:
        return None
    return get_case(owner_id, case_id)


def delete_case(owner_id: int, case_id: int) -> bool:
    conn = get_app_db()
    cur = conn.execute(
        "DELETE FROM cases WHERE id = ? AND owner_id = ?",
        (case_id, owner_id),
    )
    conn.commit()
    return cur.rowcount > 0
