"""Messaging helpers for HarmonyDesk."""

from __future__ import annotations

import sqlite3
from typing import Any, Iterable, List, Mapping, Optional

from services.db import get_app_db

EMAIL_PENDING = "pending"
EMAIL_SENT = "sent"
EMAIL_FAILED = "failed"


def _split_emails(raw: Optional[str]) -> list[str]:
    return [part for part in (raw or "").split(",") if part]


def message_to_dict(row: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "id": row["id"],
        "caseId": row["case_id"],
        "subject": row["subject"],
        "body": row["body"],
        "createdAt": row["created_at"],
        "direction": row["direction"] or "internal",
        "toEmails": _split_emails(row["to_emails"]),
        "fromEmail": row["from_email"],
        "emailStatus": row["email_status"],
        "sentAt": row["sent_at"],
    }


def create_message(
    owner_id: int,
    subject: str,
    body: str,
    case_id: Optional[int] = None,
    to_emails: Iterable[str] = (),
    send_as_email: bool = False,
) -> int:
    subject = (subject or "").strip()
    body = (body or "").strip()
    if not subject or not body:
        raise ValueError("Subject and message body are required")

    recipients = [e.strip() for e in to_emails if e and e.strip()]
    if send_as_email and not recipients:
        raise ValueError("At least one recipient is required to send as email")

    conn = get_app_db()
    cur = conn.execute(
        """
        INSERT INTO messages(owner_id, case_id, subject, body, direction, to_emails, email_status)
        VALUES(?, ?, ?, ?, ?, ?, ?)
        """,
        (
            owner_id,
            case_id,
            subject,
            body,
            "email_outbound" if send_as_email else "internal",
            ",".join(recipients) or None,
            EMAIL_PENDING if send_as_email else None,
        ),
    )
    conn.commit()
    return int(cur.lastrowid)


def list_messages(owner_id: int, case_id: Optional[int] = None, search: str = "") -> List[sqlite3.Row]:
    sql = "SELECT * FROM messages WHERE owner_id = ?"
    params: list[Any] = [owner_id]
    if case_id is not None:
        sql += " AND case_id = ?"
        params.append(case_id)
    needle = (search or "").strip().lower()
    if needle:
        sql += " AND instr(lower(subject || ' ' || body), ?) > 0"
        params.append(needle)
    sql += " ORDER BY created_at DESC, id DESC"
    return get_app_db().execute(sql, params).fetchall()


def get_message(owner_id: int, message_id: int) -> sqlite3.Row | None:
    return get_app_db().execute(
        "SELECT * FROM messages WHERE id = ? AND owner_id = ?",
        (message_id, owner_id),
    ).fetchone()


def mark_email_status(
    message_id: int,
    status: str,
    from_email: Optional[str] = None,
) -> None:
    conn = get_app_db()
    conn.execute(
        """
        UPDATE messages
        SET email_status = ?,
            from_email = COALESCE(?, from_email),
            sent_at = CASE WHEN ? = 'sent' THEN CURRENT_TIMESTAMP ELSE sent_at END
        WHERE id = ?
        """,
        (status, from_email, status, message_id),
    )
    conn.commit()


def delete_message(owner_id: int, message_id: int) -> bool:
    """Remove a message owned by the user."""
    conn = get_app_db()
    cur = conn.execute(
        "DELETE FROM messages WHERE id = ? AND owner_id = ?",
        (message_id, owner_id),
    )
    conn.commit()
    return cur.rowcount > 0
