"""Data models for the banking system."""

from .account import Account
from .transaction import Transaction, TransactionKind
from .user import User
from .result import TransferError, TransferResult
from .exceptions import (
    BankError,
    ValidationError,
    InvalidAmountError,
    InsufficientBalanceError,
    InvalidTransferError,
    NotFoundError,
    AccountNotFoundError,
    SourceNotFoundError,
    DestinationNotFoundError,
    AccountAlreadyExistsError,
    ConflictError,
    StoreError,
    UsernameTakenError,
    InvalidCredentialsError,
    UnauthenticatedError,
)

__all__ = [
    "Account",
    "Transaction",
    "TransactionKind",
    "User",
    "TransferError",
    "TransferResult",
    "BankError",
    "ValidationError",
    "InvalidAmountError",
    "InsufficientBalanceError",
    "InvalidTransferError",
    "NotFoundError",
    "AccountNotFoundError",
    "SourceNotFoundError",
    "DestinationNotFoundError",
    "AccountAlreadyExistsError",
    "ConflictError",
    "StoreError",
    "UsernameTakenError",
    "InvalidCredentialsError",
    "UnauthenticatedError",
]
