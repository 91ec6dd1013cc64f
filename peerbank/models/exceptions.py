"""Custom exceptions for the banking system."""


class BankError(Exception):
    """Base exception for all banking-related errors."""
    pass


class ValidationError(BankError):
    """Raised when a request fails a caller-correctable check."""
    pass


class InvalidAmountError(ValidationError):
    """Raised when an invalid amount is provided (e.g., zero or negative amount)."""
    pass


class InsufficientBalanceError(ValidationError):
    """Raised when an account has insufficient balance for a transaction."""
    pass


class InvalidTransferError(ValidationError):
    """Raised when a transfer operation is invalid (e.g., sender == receiver)."""
    pass


class NotFoundError(BankError):
    """Raised when a referenced record does not exist."""
    pass


class AccountNotFoundError(NotFoundError):
    """Raised when an account cannot be found."""
    pass


class SourceNotFoundError(AccountNotFoundError):
    """Raised when the debited account of a transfer is missing."""
    pass


class DestinationNotFoundError(AccountNotFoundError):
    """Raised when the credited account of a transfer is missing."""
    pass


class AccountAlreadyExistsError(BankError):
    """Raised when attempting to create an account that already exists."""
    pass


class ConflictError(BankError):
    """Raised when a balance write loses against a concurrent update."""
    pass


class StoreError(BankError):
    """Raised when the underlying database fails."""
    pass


class UsernameTakenError(BankError):
    """Raised when registering a username that is already in use."""
    pass


class InvalidCredentialsError(BankError):
    """Raised when a username/password pair does not match."""
    pass


class UnauthenticatedError(BankError):
    """Raised when a session token is missing, unknown or expired."""
    pass
