"""Scheduled mediation sessions, each attached to one of the mediator's cases."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Any, Mapping, Optional

from services.cases import get_case
from services.db import get_app_db
from services.fields import as_bool, clean_optional, clean_text, parse_number, require_non_negative


def session_to_dict(row: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "id": row["id"],
        "caseId": row["case_id"],
        "date": row["date"],
        "durationHours": float(row["duration_hours"] or 0),
        "notes": row["notes"],
        "completed": bool(row["completed"]),
    }


def _clean_date(value: Any) -> str:
    text = clean_text(value, 40, "date")
    if not text:
        raise ValueError("Session date is required")
    try:
        datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        raise ValueError(f"Session date must be ISO formatted: {text!r}") from None
    return text


def list_sessions(owner_id: int, case_id: Optional[int] = None) -> list[sqlite3.Row]:
    sql = "SELECT * FROM mediation_sessions WHERE owner_id = ?"
    params: list[Any] = [owner_id]
    if case_id is not None:
        sql += " AND case_id = ?"
        params.append(case_id)
    sql += " ORDER BY date DESC, id DESC"
    return get_app_db().execute(sql, params).fetchall()


def get_session(owner_id: int, session_id: int) -> Optional[sqlite3.Row]:
    return get_app_db().execute(
        "SELECT * FROM mediation_sessions WHERE id = ? AND owner_id = ?",
        (session_id, owner_id),
    ).fetchone()


def create_session(
    owner_id: int,
    payload: Mapping[str, Any],
    default_duration: float = 1.0,
) -> sqlite3.Row:
    try:
        case_id = int(payload.get("caseId"))
    except (TypeError, ValueError):
        raise ValueError("Missing required fields: caseId and date") from None
    if get_case(owner_id, case_id) is None:
        raise ValueError("Case not found for this session")

    date = _clean_date(payload.get("date"))
    duration = require_non_negative(
        "durationHours",
        parse_number(payload.get("durationHours"), default_duration),
    )

    conn = get_app_db()
    cur = conn.execute(
        """
        INSERT INTO mediation_sessions(owner_id, case_id, date, duration_hours, notes, completed)
        VALUES(?, ?, ?, ?, ?, ?)
        """,
        (
            owner_id,
            case_id,
            date,
            duration,
            clean_optional(payload.get("notes"), name="notes"),
            1 if as_bool(payload.get("completed", False)) else 0,
        ),
    )
    conn.commit()
    return get_session(owner_id, int(cur.lastrowid))


def update_session(owner_id: int, session_id: int, payload: Mapping[str, Any]) -> Optional[sqlite3.Row]:
    values: dict[str, Any] = {}
    if "date" in payload:
        values["date"] = _clean_date(payload["date"])
    if "durationHours" in payload:
        values["duration_hours"] = require_non_negative(
            "durationHours", parse_number(payload["durationHours"], 1.0)
        )
    if "notes" in payload:
        values["notes"] = clean_optional(payload["notes"], name="notes")
    if "completed" in payload:
        values["completed"] = 1 if as_bool(payload["completed"]) else 0
    if not values:
        raise ValueError("Nothing to update")

    assignments = ", ".join(f"{column} = ?" for column in values)
    conn = get_app_db()
    cur = conn.execute(
        f"UPDATE mediation_sessions SET {assignments} WHERE id = ? AND owner_id = ?",
        [*values.values(), session_id, owner_id],
    )
    conn.commit()
    if cur.rowcount == 0:
        return None
    return get_session(owner_id, session_id)


def delete_session(owner_id: int, session_id: int) -> bool:
    conn = get_app_db()
    cur = conn.execute(
        "DELETE FROM mediation_sessions WHERE id = ? AND owner_id = ?",
        (session_id, owner_id),
    )
    conn.commit()
    return cur.rowcount > 0
