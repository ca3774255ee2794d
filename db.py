"""
db.py
SQLite helpers + initialization (creates DB/tables, inserts default users, preference lists).
"""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone

from loguru import logger

from config import settings

DB_FILE = settings.db_path


@contextmanager
def get_conn():
    conn = sqlite3.connect(DB_FILE, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def execute(sql: str, params: tuple = ()) -> int:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.lastrowid


def execute_rowcount(sql: str, params: tuple = ()) -> int:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.rowcount


def fetch_one(sql: str, params: tuple = ()):
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchone()


def fetch_all(sql: str, params: tuple = ()) -> list[sqlite3.Row]:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchall()


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _create_tables() -> None:
    execute(
        """
        CREATE TABLE IF NOT EXISTS admin_users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            username TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            role TEXT NOT NULL DEFAULT 'admin' CHECK(role IN ('admin','viewer')),
            created_at TEXT NOT NULL
        )
        """
    )

    # Money columns are TEXT so Decimal values come back unchanged
    execute(
        """
        CREATE TABLE IF NOT EXISTS invoices (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            dealer TEXT NOT NULL,
            invoice_number TEXT NOT NULL,
            gross_total TEXT NOT NULL,
            plan TEXT NOT NULL,
            invoice_date TEXT NOT NULL,
            client TEXT NOT NULL,
            fixed_fee TEXT NOT NULL,
            excess TEXT NOT NULL,
            vat_on_excess TEXT NOT NULL,
            commission TEXT NOT NULL,
            vat_on_fee TEXT NOT NULL,
            total_vat TEXT NOT NULL,
            vehicle TEXT,
            paid INTEGER NOT NULL DEFAULT 0,
            will_not_renew INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """
    )

    execute("CREATE INDEX IF NOT EXISTS idx_invoices_date ON invoices(invoice_date)")

    # Small settings table (forced password change, preference lists)
    execute(
        """
        CREATE TABLE IF NOT EXISTS app_settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
        """
    )


def _get_setting(key: str, default: str | None = None) -> str | None:
    row = fetch_one("SELECT value FROM app_settings WHERE key = ?", (key,))
    if row:
        return str(row["value"])
    return default


def _set_setting(key: str, value: str) -> None:
    execute(
        """
        INSERT INTO app_settings(key, value) VALUES(?, ?)
        ON CONFLICT(key) DO UPDATE SET value=excluded.value
        """,
        (key, value),
    )


def init_db(default_admin_hash: str, viewer: tuple[str, str] | None = None) -> None:
    """
    Initialize the database.
    - Create tables
    - Insert default admin (admin/admin123) if no admin exists
    - Force password change on first login
    - Insert the restricted viewer when one is configured and missing
    """
    _create_tables()

    admin = fetch_one("SELECT id FROM admin_users WHERE role = 'admin' LIMIT 1")
    if not admin:
        execute(
            "INSERT INTO admin_users(username, password_hash, role, created_at) VALUES(?,?,?,?)",
            ("admin", default_admin_hash, "admin", utc_now_iso()),
        )
        _set_setting("force_password_change", "1")
        logger.info("Created default admin user")
    else:
        # ensure setting exists
        if _get_setting("force_password_change") is None:
            _set_setting("force_password_change", "0")

    if viewer:
        username, password_hash = viewer
        if not fetch_one("SELECT id FROM admin_users WHERE username = ?", (username,)):
            execute(
                "INSERT INTO admin_users(username, password_hash, role, created_at) VALUES(?,?,?,?)",
                (username, password_hash, "viewer", utc_now_iso()),
            )
            logger.info("Created restricted viewer {}", username)


def is_force_password_change() -> bool:
    val = fetch_one("SELECT value FROM app_settings WHERE key = ?", ("force_password_change",))
    return bool(val and str(val["value"]) == "1")


def clear_force_password_change() -> None:
    _set_setting("force_password_change", "0")


# ---------- Preference lists (dealers, vehicle colors) ----------

def get_preference_list(name: str) -> list[str]:
    raw = _get_setting(f"pref:{name}")
    return json.loads(raw) if raw else []


def add_to_preference_list(name: str, value: str) -> list[str]:
    value = value.strip()
    items = get_preference_list(name)
    if value and value.lower() not in (i.lower() for i in items):
        items.append(value)
        items.sort(key=str.lower)
        _set_setting(f"pref:{name}", json.dumps(items, ensure_ascii=False))
    return items
