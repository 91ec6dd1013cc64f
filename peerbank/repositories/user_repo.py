"""User repository for database operations."""

import sqlite3
from datetime import datetime

from peerbank.models.exceptions import UsernameTakenError
from peerbank.models.user import User
from peerbank.repositories.database import Database


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        id=row["id"],
        username=row["Username"],
        email=row["Email"],
        password_hash=row["PasswordHash"],
        created_at=datetime.fromisoformat(row["Created"]),
    )


class UserRepository:
    """Repository for User data access operations."""

    def __init__(self, db: Database):
        self._db = db

    def create_table(self) -> None:
        """Create the Users table if it doesn't exist."""
        with self._db.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS Users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    Username TEXT NOT NULL UNIQUE,
                    Email TEXT,
                    PasswordHash TEXT NOT NULL,
                    Created TEXT NOT NULL
                )
            """
            )

    def create(self, user: User) -> User:
        """
        Store a new user.

        Raises:
            UsernameTakenError: If the username is already registered
        """
        with self._db.transaction() as conn:
            try:
                cursor = conn.execute(
                    "INSERT INTO Users (Username, Email, PasswordHash, Created) VALUES (?, ?, ?, ?)",
                    (user.username, user.email, user.password_hash, user.created_at.isoformat()),
                )
            except sqlite3.IntegrityError:
                raise UsernameTakenError(f"Username {user.username} already exists")
            user.id = cursor.lastrowid
        return user

    def find_by_username(self, username: str) -> User | None:
        with self._db.read() as conn:
            row = conn.execute(
                "SELECT id, Username, Email, PasswordHash, Created FROM Users WHERE Username = ?",
                (username,),
            ).fetchone()
        return None if row is None else _row_to_user(row)

    def find_by_id(self, user_id: int) -> User | None:
        with self._db.read() as conn:
            row = conn.execute(
                "SELECT id, Username, Email, PasswordHash, Created FROM Users WHERE id = ?",
                (user_id,),
            ).fetchone()
        return None if row is None else _row_to_user(row)
