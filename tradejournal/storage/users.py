"""User store: accounts keyed by id, looked up by email at sign-in."""

from __future__ import annotations

import sqlite3
from typing import Optional

from tradejournal.journal.models import User, from_iso
from tradejournal.storage.database import Database, Query
from tradejournal.utils.exceptions import DuplicateIdentityError
from tradejournal.utils.logger import get_logger

logger = get_logger(__name__)

TABLE = "users"


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        email=row["email"],
        username=row["username"],
        password_hash=row["password_hash"],
        created_at=from_iso(row["created_at"]),
        updated_at=from_iso(row["updated_at"]),
        deleted_at=from_iso(row["deleted_at"]),
    )


class UserStore:

    def __init__(self, db: Database):
        self._db = db

    def create(self, user: User) -> User:
        d = user.to_dict()
        try:
            with self._db.transaction() as conn:
                conn.execute("""
                    INSERT INTO users (id, email, username, password_hash, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                """, (d["id"], d["email"], d["username"], d["password_hash"],
                      d["created_at"], d["updated_at"]))
        except sqlite3.IntegrityError as e:
            # lost a race with a concurrent sign-up for the same identity
            raise DuplicateIdentityError() from e
        logger.info("user_created", user_id=user.id)
        return user

    def get_by_id(self, user_id: str) -> Optional[User]:
        sql, params = Query(TABLE).where("id = ?", user_id).select()
        row = self._db.connection().execute(sql, params).fetchone()
        return _row_to_user(row) if row else None

    def get_by_email(self, email: str) -> Optional[User]:
        sql, params = Query(TABLE).where("email = ?", email).select()
        row = self._db.connection().execute(sql, params).fetchone()
        return _row_to_user(row) if row else None

    def exists(self, email: str, username: str) -> bool:
        """True if either the email or the username is taken."""
        sql, params = Query(TABLE).where("(email = ? OR username = ?)", email, username).exists()
        return bool(self._db.connection().execute(sql, params).fetchone()["found"])
