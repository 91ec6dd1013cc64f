"""Account repository for database operations."""

import sqlite3
from datetime import datetime
from decimal import Decimal

from peerbank.models.account import Account
from peerbank.models.exceptions import AccountAlreadyExistsError, ConflictError
from peerbank.repositories.database import Database

_COLUMNS = "id, AccountNo, Owner, Balance, Version, Created"


def _row_to_account(row: sqlite3.Row) -> Account:
    return Account(
        id=row["id"],
        account_no=row["AccountNo"],
        owner=row["Owner"],
        balance=Decimal(row["Balance"]),
        version=row["Version"],
        created_at=datetime.fromisoformat(row["Created"]),
    )


class AccountRepository:
    """Repository for Account data access operations."""

    def __init__(self, db: Database):
        """
        Initialize the repository with a database handle.

        Args:
            db: Shared Database wrapping the SQLite connection
        """
        self._db = db

    def create_table(self) -> None:
        """Create the Accounts table if it doesn't exist."""
        with self._db.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS Accounts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    AccountNo TEXT NOT NULL UNIQUE,
                    Owner INTEGER NOT NULL UNIQUE,
                    Balance TEXT NOT NULL,
                    Version INTEGER NOT NULL DEFAULT 0,
                    Created TEXT NOT NULL
                )
            """
            )

    def find_by_account_no(self, account_no: str) -> Account | None:
        """
        Find an account by account number.

        Args:
            account_no: The account number to search for

        Returns:
            Account object if found, None otherwise
        """
        with self._db.read() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM Accounts WHERE AccountNo = ?",
                (account_no,),
            ).fetchone()

        if row is None:
            return None
        return _row_to_account(row)

    def find_by_owner(self, owner: int) -> Account | None:
        """
        Find the account owned by a user.

        Args:
            owner: The owning user's id

        Returns:
            Account object if found, None otherwise
        """
        with self._db.read() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM Accounts WHERE Owner = ?",
                (owner,),
            ).fetchone()

        if row is None:
            return None
        return _row_to_account(row)

    def create(self, account: Account) -> Account:
        """
        Create a new account.

        Args:
            account: The Account object to create

        Returns:
            The stored Account, with its database id

        Raises:
            AccountAlreadyExistsError: If the account number or the owner is already taken
        """
        with self._db.transaction() as conn:
            try:
                cursor = conn.execute(
                    """
                    INSERT INTO Accounts (AccountNo, Owner, Balance, Version, Created)
                    VALUES (?, ?, ?, ?, ?)
                """,
                    (
                        account.account_no,
                        account.owner,
                        str(account.balance),
                        account.version,
                        account.created_at.isoformat(),
                    ),
                )
            except sqlite3.IntegrityError:
                raise AccountAlreadyExistsError(
                    f"Account {account.account_no} or an account for user {account.owner} already exists"
                )
            account.id = cursor.lastrowid
        return account

    def exists(self, account_no: str) -> bool:
        """
        Check if an account exists.

        Args:
            account_no: The account number to check

        Returns:
            True if the account exists, False otherwise
        """
        with self._db.read() as conn:
            row = conn.execute("SELECT 1 FROM Accounts WHERE AccountNo = ?", (account_no,)).fetchone()
        return row is not None

    def count(self) -> int:
        """Return the number of accounts."""
        with self._db.read() as conn:
            return conn.execute("SELECT COUNT(*) FROM Accounts").fetchone()[0]

    def save_balance(self, account: Account) -> None:
        """
        Write a new balance, guarded by the version the account was read at.

        On success the account's version is bumped in place.

        Args:
            account: The account carrying the new balance and the version it was read with

        Raises:
            ConflictError: If the stored version no longer matches
        """
        with self._db.transaction() as conn:
            cursor = conn.execute(
                "UPDATE Accounts SET Balance = ?, Version = Version + 1 WHERE AccountNo = ? AND Version = ?",
                (str(account.balance), account.account_no, account.version),
            )
            if cursor.rowcount != 1:
                raise ConflictError(
                    f"Account {account.account_no} changed since version {account.version}"
                )
        account.version += 1
