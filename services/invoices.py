"""Hourly mediation invoices and their Draft -> Sent -> county-report lifecycle."""

from __future__ import annotations

import sqlite3
from typing import Any, Iterable, Mapping, Optional

from services.db import get_app_db
from services.fields import clean_text, parse_number, require_non_negative
from services.reports import (
    INVOICE_STATUSES,
    STATUS_COUNTY_REPORT,
    STATUS_DRAFT,
    STATUS_SENT,
)

# Default "due" text shown for each lifecycle stage.
DUE_TEXT = {
    STATUS_DRAFT: "Draft – set due date",
    STATUS_SENT: "Sent – awaiting payment",
    STATUS_COUNTY_REPORT: "Included in month-end county report",
}


def invoice_to_dict(row: Mapping[str, Any]) -> dict[str, Any]:
    hours = float(row["hours"] or 0)
    rate = float(row["rate"] or 0)
    return {
        "id": row["id"],
        "caseNumber": row["case_number"],
        "matter": row["matter"],
        "contact": row["contact"],
        "hours": hours,
        "rate": rate,
        "total": hours * rate,
        "status": row["status"],
        "due": row["due"],
    }


def list_invoices(owner_id: int, status: Optional[str] = None) -> list[sqlite3.Row]:
    sql = "SELECT * FROM invoices WHERE owner_id = ?"
    params: list[Any] = [owner_id]
    if status:
        sql += " AND status = ?"
        params.append(status)
    sql += " ORDER BY created_at DESC, id DESC"
    return get_app_db().execute(sql, params).fetchall()


def get_invoice(owner_id: int, invoice_id: int) -> Optional[sqlite3.Row]:
    return get_app_db().execute(
        "SELECT * FROM invoices WHERE id = ? AND owner_id = ?",
        (invoice_id, owner_id),
    ).fetchone()


def create_invoice(
    owner_id: int,
    payload: Mapping[str, Any],
    default_rate: float = 0.0,
) -> sqlite3.Row:
    case_number = clean_text(payload.get("caseNumber"), 80, "caseNumber")
    matter = clean_text(payload.get("matter"), 300, "matter")
    contact = clean_text(payload.get("contact"), 200, "contact")
    if not case_number or not matter or not contact:
        raise ValueError("Missing required fields")

    hours = require_non_negative("hours", parse_number(payload.get("hours")))
    rate_default = default_rate if "rate" not in payload else 0.0
    rate = require_non_negative("rate", parse_number(payload.get("rate"), rate_default))

    conn = get_app_db()
    cur = conn.execute(
        """
        INSERT INTO invoices(owner_id, case_number, matter, contact, hours, rate, status, due)
        VALUES(?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (owner_id, case_number, matter, contact, hours, rate, STATUS_DRAFT, DUE_TEXT[STATUS_DRAFT]),
    )
    conn.commit()
    return get_invoice(owner_id, int(cur.lastrowid))


def update_invoice(owner_id: int, invoice_id: int, payload: Mapping[str, Any]) -> Optional[sqlite3.Row]:
    """Apply a status and/or due-text change; a new status resets the due text."""
    values: dict[str, Any] = {}
    status = payload.get("status")
    if status:
        if status not in INVOICE_STATUSES:
            raise ValueError(f"Unknown invoice status: {status!r}")
        values["status"] = status
        values["due"] = DUE_TEXT[status]
    if payload.get("due"):
        values["due"] = clean_text(payload["due"], 120, "due")
    if not values:
        raise ValueError("Nothing to update")

    assignments = ", ".join(f"{column} = ?" for column in values)
    conn = get_app_db()
    cur = conn.execute(
        f"UPDATE invoices SET {assignments} WHERE id = ? AND owner_id = ?",
        [*values.values(), invoice_id, owner_id],
    )
    conn.commit()
    if cur.rowcount == 0:
        return None
    return get_invoice(owner_id, invoice_id)


def delete_invoice(owner_id: int, invoice_id: int) -> bool:
    conn = get_app_db()
    cur = conn.execute(
        "DELETE FROM invoices WHERE id = ? AND owner_id = ?",
        (invoice_id, owner_id),
    )
    conn.commit()
    return cur.rowcount > 0


def draft_total(rows: Iterable[Mapping[str, Any]]) -> float:
    return sum(
        (float(r["hours"] or 0) * float(r["rate"] or 0) for r in rows if r["status"] == STATUS_DRAFT),
        0.0,
    )
