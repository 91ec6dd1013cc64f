"""Structured outcomes returned to request handlers."""

from dataclasses import dataclass
from enum import Enum

from .account import Account
from .transaction import Transaction


class TransferError(str, Enum):
    """Reasons a transfer request can be rejected."""

    INVALID_AMOUNT = "invalid_amount"
    SOURCE_NOT_FOUND = "source_not_found"
    DESTINATION_NOT_FOUND = "destination_not_found"
    SELF_TRANSFER = "self_transfer"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class TransferResult:
    """Outcome of a transfer: either the updated source account and its record, or an error code."""

    message: str
    error: TransferError | None = None
    account: Account | None = None
    transaction: Transaction | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, account: Account, transaction: Transaction) -> "TransferResult":
        return cls(
            message=f"Transfer successful: ${transaction.amount} to {transaction.to_account}",
            account=account,
            transaction=transaction,
        )

    @classmethod
    def rejected(cls, error: TransferError, message: str) -> "TransferResult":
        return cls(message=message, error=error)
