"""Transaction data model."""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum


class TransactionKind(str, Enum):
    """Kinds of balance movement a transaction can record."""

    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    TRANSFER = "TRANSFER"


@dataclass(frozen=True)
class Transaction:
    """An immutable record of a completed balance movement."""

    id: int | None
    kind: TransactionKind
    timestamp: datetime
    from_account: str
    to_account: str
    amount: Decimal

    @classmethod
    def create_transfer(
        cls,
        sender: str,
        receiver: str,
        amount: Decimal,
    ) -> "Transaction":
        """
        Create a transfer record stamped with the current UTC time.

        Args:
            sender: The sender account number
            receiver: The receiver account number
            amount: The transferred amount

        Returns:
            A new Transaction with id=None; the store assigns the id on append
        """
        return cls(
            id=None,
            kind=TransactionKind.TRANSFER,
            timestamp=datetime.now(timezone.utc),
            from_account=sender,
            to_account=receiver,
            amount=amount,
        )

    def involves(self, account_no: str) -> bool:
        return account_no in (self.from_account, self.to_account)
