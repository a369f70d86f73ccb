"""Database utilities for HarmonyDesk."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional

from flask import current_app, g


# Global schema version for the application database.
_SCHEMA_VERSION = 2


def _app_db_path() -> Path:
    """Return the configured path for the application database."""
    return Path(current_app.config["DATABASE"])


def _ensure_parent_dir(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _ensure_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS app_meta (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
        """
    )

    row = conn.execute(
        "SELECT value FROM app_meta WHERE key = 'schema_version'"
    ).fetchone()
    current_version = int(row["value"]) if row else 0

    if current_version < 1:
        _migrate_to_v1(conn)
        current_version = 1

    if current_version < 2:
        _migrate_to_v2(conn)
        current_version = 2

    if current_version != _SCHEMA_VERSION:
        conn.execute(
            "INSERT INTO app_meta(key, value) VALUES('schema_version', ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (str(_SCHEMA_VERSION),),
        )
    conn.commit()


def _migrate_to_v1(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            email TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            role TEXT NOT NULL CHECK(role IN ('admin','user')),
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            last_login_at TEXT
        )
        """
    )

    conn.execute(
        """
        CREATE TRIGGER IF NOT EXISTS trg_users_updated_at
        AFTER UPDATE ON users
        BEGIN
            UPDATE users SET updated_at = CURRENT_TIMESTAMP WHERE id = NEW.id;
        END;
        """
    )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS user_profiles (
            user_id INTEGER PRIMARY KEY,
            full_name TEXT,
            phone TEXT,
            business_name TEXT,
            business_address TEXT,
            default_hourly_rate REAL,
            default_county TEXT,
            default_session_duration REAL,
            timezone TEXT,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
        )
        """
    )

    conn.execute(
        "INSERT INTO app_meta(key, value) VALUES('schema_version', '1') "
        "ON CONFLICT(key) DO UPDATE SET value = excluded.value"
    )


def _migrate_to_v2(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS cases (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            owner_id INTEGER NOT NULL,
            case_number TEXT NOT NULL,
            matter TEXT NOT NULL,
            parties TEXT,
            county TEXT,
            status TEXT NOT NULL DEFAULT 'Open'
                CHECK(status IN ('Open','Upcoming','Closed')),
            next_session_date TEXT,
            notes TEXT,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(owner_id) REFERENCES users(id) ON DELETE CASCADE
        )
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_cases_owner ON cases(owner_id)")

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS clients (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            owner_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            email TEXT,
            phone TEXT,
            notes TEXT,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(owner_id) REFERENCES users(id) ON DELETE CASCADE
        )
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_clients_owner ON clients(owner_id)")

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS mediation_sessions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            owner_id INTEGER NOT NULL,
            case_id INTEGER NOT NULL,
            date TEXT NOT NULL,
            duration_hours REAL NOT NULL DEFAULT 1,
            notes TEXT,
            completed INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(owner_id) REFERENCES users(id) ON DELETE CASCADE,
            FOREIGN KEY(case_id) REFERENCES cases(id) ON DELETE CASCADE
        )
        """
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_sessions_owner ON mediation_sessions(owner_id, date)"
    )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS invoices (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            owner_id INTEGER NOT NULL,
            case_number TEXT NOT NULL,
            matter TEXT NOT NULL,
            contact TEXT NOT NULL,
            hours REAL NOT NULL DEFAULT 0,
            rate REAL NOT NULL DEFAULT 0,
            status TEXT NOT NULL DEFAULT 'Draft'
                CHECK(status IN ('Draft','Sent','For county report')),
            due TEXT,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(owner_id) REFERENCES users(id) ON DELETE CASCADE
        )
        """
    )
    conn.execute(
        """
        CREATE TRIGGER IF NOT EXISTS trg_invoices_updated_at
        AFTER UPDATE ON invoices
        BEGIN
            UPDATE invoices SET updated_at = CURRENT_TIMESTAMP WHERE id = NEW.id;
        END;
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_invoices_owner ON invoices(owner_id, status)")

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS messages (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            owner_id INTEGER NOT NULL,
            case_id INTEGER,
            subject TEXT NOT NULL,
            body TEXT NOT NULL,
            direction TEXT NOT NULL DEFAULT 'internal'
                CHECK(direction IN ('internal','email_outbound')),
            to_emails TEXT,
            from_email TEXT,
            email_status TEXT CHECK(email_status IN ('pending','sent','failed')),
            sent_at TEXT,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY(owner_id) REFERENCES users(id) ON DELETE CASCADE,
            FOREIGN KEY(case_id) REFERENCES cases(id) ON DELETE SET NULL
        )
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_messages_owner ON messages(owner_id, case_id)")

    conn.execute(
        "INSERT INTO app_meta(key, value) VALUES('schema_version', '2') "
        "ON CONFLICT(key) DO UPDATE SET value = excluded.value"
    )


def connect(db_path: Path) -> sqlite3.Connection:
    _ensure_parent_dir(db_path)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute('PRAGMA foreign_keys = ON')
    _ensure_schema(conn)
    return conn


def get_app_db() -> sqlite3.Connection:
    """Return a connection to the application database bound to Flask's context."""
    if 'app_db' not in g:
        g.app_db = connect(_app_db_path())
    return g.app_db


def close_app_db(_: Optional[BaseException]) -> None:
    conn = g.pop('app_db', None)
    if conn is not None:
        conn.close()
