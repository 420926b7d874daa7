"""SQLite-backed store for administrator accounts."""
from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

import bcrypt

from app.models import AdminRecord

logger = logging.getLogger(__name__)

_BCRYPT_ROUNDS = 12
MIN_PASSWORD_LEN = 8


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def hash_password(plain_password: str) -> str:
    password = (plain_password or "").encode("utf-8")
    if not password:
        raise ValueError("Password must not be empty")
    return bcrypt.hashpw(password, bcrypt.gensalt(_BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    password = (plain_password or "").encode("utf-8")
    hashed = (password_hash or "").encode("utf-8")
    if not password or not hashed:
        return False
    try:
        return bcrypt.checkpw(password, hashed)
    except ValueError:
        return False


class Database:
    """Thin wrapper around SQLite holding the ``admin_users`` table.

    Connections are opened per call so the store can be shared between
    FastAPI's worker threads.
    """

    def __init__(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        self._path = path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def initialize(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS admin_users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    email TEXT NOT NULL UNIQUE,
                    hashed_password TEXT NOT NULL,
                    role TEXT NOT NULL DEFAULT 'admin',
                    is_active INTEGER NOT NULL DEFAULT 1,
                    last_login TEXT,
                    created_at TEXT NOT NULL
                );
                """
            )

    def ping(self) -> None:
        with self._connect() as conn:
            conn.execute("SELECT 1").fetchone()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> AdminRecord:
        return AdminRecord(
            id=int(row["id"]),
            email=str(row["email"]),
            password_hash=str(row["hashed_password"]),
            role=str(row["role"]),
            is_active=bool(row["is_active"]),
            last_login=_parse_dt(row["last_login"]),
            created_at=_parse_dt(row["created_at"]),
        )

    def create_admin(self, email: str, password: str, *, role: str = "admin", is_active: bool = True) -> AdminRecord:
        email = normalize_email(email)
        if "@" not in email:
            raise ValueError("A valid email address is required")
        if len(password or "") < MIN_PASSWORD_LEN:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LEN} characters")

        with self._connect() as conn:
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO admin_users (email, hashed_password, role, is_active, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (email, hash_password(password), role, int(is_active), _now().isoformat()),
                )
            except sqlite3.IntegrityError as exc:
                raise ValueError(f"Admin with email {email!r} already exists") from exc
            admin_id = cursor.lastrowid

        record = self.get_admin(admin_id)
        if record is None:
            raise RuntimeError("Failed to create admin")
        logger.info("created admin id=%s email=%s", record.id, record.email)
        return record

    def get_admin(self, admin_id: int) -> AdminRecord | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM admin_users WHERE id = ?", (admin_id,)).fetchone()
        return self._row_to_record(row) if row else None

    def get_admin_by_email(self, email: str) -> AdminRecord | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM admin_users WHERE email = ?", (normalize_email(email),)
            ).fetchone()
        return self._row_to_record(row) if row else None

    def set_admin_active(self, admin_id: int, is_active: bool) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE admin_users SET is_active = ? WHERE id = ?", (int(is_active), admin_id)
            )
        return cursor.rowcount > 0

    def record_login(self, admin_id: int) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE admin_users SET last_login = ? WHERE id = ?", (_now().isoformat(), admin_id)
            )

    def update_password(self, admin_id: int, new_password: str) -> None:
        if len(new_password or "") < MIN_PASSWORD_LEN:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LEN} characters")
        with self._connect() as conn:
            conn.execute(
                "UPDATE admin_users SET hashed_password = ? WHERE id = ?",
                (hash_password(new_password), admin_id),
            )
