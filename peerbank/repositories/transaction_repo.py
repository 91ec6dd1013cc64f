"""Transaction repository for database operations."""

import sqlite3
from dataclasses import replace
from datetime import datetime
from decimal import Decimal

from peerbank.models.transaction import Transaction, TransactionKind
from peerbank.repositories.database import Database

_COLUMNS = 'TransactionID, Kind, Time, "From Account", "To Account", Amount'


def _row_to_transaction(row: sqlite3.Row) -> Transaction:
    return Transaction(
        id=row["TransactionID"],
        kind=TransactionKind(row["Kind"]),
        timestamp=datetime.fromisoformat(row["Time"]),
        from_account=row["From Account"],
        to_account=row["To Account"],
        amount=Decimal(row["Amount"]),
    )


class TransactionRepository:
    """Repository for Transaction data access operations. Records are append-only."""

    def __init__(self, db: Database):
        """
        Initialize the repository with a database handle.

        Args:
            db: Shared Database wrapping the SQLite connection
        """
        self._db = db

    def create_table(self) -> None:
        """Create the Transactions table if it doesn't exist."""
        with self._db.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS Transactions (
                    TransactionID INTEGER PRIMARY KEY AUTOINCREMENT,
                    Kind TEXT NOT NULL,
                    Time TEXT NOT NULL,
                    "From Account" TEXT NOT NULL,
                    "To Account" TEXT NOT NULL,
                    Amount TEXT NOT NULL
                )
            """
            )
            conn.execute(
                'CREATE INDEX IF NOT EXISTS idx_transactions_from ON Transactions ("From Account")'
            )
            conn.execute(
                'CREATE INDEX IF NOT EXISTS idx_transactions_to ON Transactions ("To Account")'
            )

    def append(self, txn: Transaction) -> Transaction:
        """
        Append a transaction record.

        Args:
            txn: The Transaction to store; its id is ignored

        Returns:
            A copy of the transaction carrying the id assigned by the database
        """
        with self._db.transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO Transactions (Kind, Time, "From Account", "To Account", Amount)
                VALUES (?, ?, ?, ?, ?)
            """,
                (
                    txn.kind.value,
                    txn.timestamp.isoformat(timespec="microseconds"),
                    txn.from_account,
                    txn.to_account,
                    str(txn.amount),
                ),
            )
        return replace(txn, id=cursor.lastrowid)

    def find_by_id(self, txn_id: int) -> Transaction | None:
        """
        Find a transaction by ID.

        Args:
            txn_id: The transaction ID to search for

        Returns:
            Transaction object if found, None otherwise
        """
        with self._db.read() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM Transactions WHERE TransactionID = ?",
                (txn_id,),
            ).fetchone()

        if row is None:
            return None
        return _row_to_transaction(row)

    def find_by_account(self, account_no: str, limit: int | None = None) -> list[Transaction]:
        """
        Find transactions where the account is sender or receiver.

        Args:
            account_no: The account number to search for
            limit: Maximum number of transactions to return, or None for all

        Returns:
            List of transactions, most recent first; ties fall back to insertion order
        """
        query = (
            f"SELECT {_COLUMNS} FROM Transactions "
            'WHERE "From Account" = ? OR "To Account" = ? '
            "ORDER BY Time DESC, TransactionID DESC"
        )
        params: tuple = (account_no, account_no)
        if limit is not None:
            query += " LIMIT ?"
            params += (limit,)

        with self._db.read() as conn:
            rows = conn.execute(query, params).fetchall()

        return [_row_to_transaction(row) for row in rows]

    def count(self) -> int:
        """Return the number of stored transactions."""
        with self._db.read() as conn:
            return conn.execute("SELECT COUNT(*) FROM Transactions").fetchone()[0]
