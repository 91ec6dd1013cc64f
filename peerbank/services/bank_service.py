"""Bank service for business logic layer."""

import logging
import secrets
from decimal import Decimal, InvalidOperation

from config.settings import Settings
from peerbank.models.account import Account
from peerbank.models.exceptions import (
    AccountAlreadyExistsError,
    ConflictError,
    DestinationNotFoundError,
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidTransferError,
    SourceNotFoundError,
    StoreError,
)
from peerbank.models.result import TransferError, TransferResult
from peerbank.models.transaction import Transaction
from peerbank.repositories.account_repo import AccountRepository
from peerbank.repositories.database import Database
from peerbank.repositories.transaction_repo import TransactionRepository
from peerbank.services.locks import AccountLocks

logger = logging.getLogger("peerbank.bank_service")

# Keyed by the exact exception type the engine raises
_REJECTION_CODES = {
    InvalidAmountError: TransferError.INVALID_AMOUNT,
    SourceNotFoundError: TransferError.SOURCE_NOT_FOUND,
    DestinationNotFoundError: TransferError.DESTINATION_NOT_FOUND,
    InvalidTransferError: TransferError.SELF_TRANSFER,
    InsufficientBalanceError: TransferError.INSUFFICIENT_FUNDS,
    ConflictError: TransferError.CONFLICT,
}


class BankService:
    """Service layer for banking operations."""

    def __init__(
        self,
        db: Database,
        account_repo: AccountRepository,
        transaction_repo: TransactionRepository,
        locks: AccountLocks | None = None,
        starting_balance: Decimal = Decimal("1000"),
        account_number_length: int = 10,
        currency_places: int = 2,
        max_conflict_retries: int = 3,
    ):
        """
        Initialize the BankService with its store handles.

        Args:
            db: Database the repositories share; provides the atomic unit of work
            account_repo: Repository for account data access
            transaction_repo: Repository for transaction data access
            locks: Lock registry; pass the same one to every service sharing the database
            starting_balance: Balance given to a newly provisioned account (default: 1000)
            account_number_length: Digits in a generated account number (default: 10)
            currency_places: Maximum fractional digits accepted in an amount (default: 2)
            max_conflict_retries: Extra attempts after a lost optimistic write (default: 3)
        """
        self._db = db
        self._account_repo = account_repo
        self._transaction_repo = transaction_repo
        self._locks = locks or AccountLocks()
        self._starting_balance = starting_balance
        self._account_number_length = account_number_length
        self._currency_places = currency_places
        self._max_conflict_retries = max_conflict_retries

    @classmethod
    def from_settings(
        cls,
        db: Database,
        account_repo: AccountRepository,
        transaction_repo: TransactionRepository,
        settings: Settings,
    ) -> "BankService":
        return cls(
            db=db,
            account_repo=account_repo,
            transaction_repo=transaction_repo,
            starting_balance=settings.starting_balance,
            account_number_length=settings.account_number_length,
            currency_places=settings.currency_places,
            max_conflict_retries=settings.max_conflict_retries,
        )

    def _new_account_no(self) -> str:
        """Generate a random, zero-padded account number."""
        return str(secrets.randbelow(10 ** self._account_number_length)).zfill(
            self._account_number_length
        )

    def _parse_amount(self, amount) -> Decimal:
        """
        Turn caller input into an exact, positive Decimal.

        Args:
            amount: A Decimal, int or numeric string

        Returns:
            The amount as a Decimal

        Raises:
            InvalidAmountError: If the amount is not a finite positive number with
                at most ``currency_places`` fractional digits
        """
        if isinstance(amount, (bool, float)):
            raise InvalidAmountError(f"Amount must be an exact decimal, got {amount!r}")
        try:
            value = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
        except (InvalidOperation, ValueError):
            raise InvalidAmountError(f"Amount {amount!r} is not a number")

        if not value.is_finite():
            raise InvalidAmountError(f"Amount {amount!r} is not a finite number")
        if value <= 0:
            raise InvalidAmountError("Transfer amount must be greater than zero.")

        try:
            quantized = value.quantize(Decimal(1).scaleb(-self._currency_places))
        except InvalidOperation:
            raise InvalidAmountError(f"Amount {amount!r} is too large")
        if quantized != value:
            raise InvalidAmountError(
                f"Amount {amount} has more than {self._currency_places} decimal places"
            )
        # 1E+2 is kept as 100 so ledger rows and messages stay fixed-point
        if value.as_tuple().exponent > 0:
            value = value.quantize(Decimal(1))
        return value

    def get_or_create_account(self, user_id: int) -> Account:
        """
        Return the user's account, opening one with the starting balance on first access.

        Concurrent first-time calls for the same user are serialized, so only
        one account is ever created.

        Args:
            user_id: The owning user's id

        Returns:
            The existing or newly created Account
        """
        account = self._account_repo.find_by_owner(user_id)
        if account is not None:
            return account

        with self._locks.hold_owner(user_id):
            account = self._account_repo.find_by_owner(user_id)
            if account is not None:
                return account

            try:
                with self._db.transaction():
                    account_no = self._new_account_no()
                    while self._account_repo.exists(account_no):
                        account_no = self._new_account_no()
                    account = self._account_repo.create(
                        Account(
                            id=None,
                            account_no=account_no,
                            owner=user_id,
                            balance=self._starting_balance,
                        )
                    )
            except AccountAlreadyExistsError:
                # Created by another process sharing the database file
                account = self._account_repo.find_by_owner(user_id)
                if account is None:
                    raise
                return account

        logger.info(
            "Opened account %s for user %s with balance %s",
            account.account_no,
            user_id,
            account.balance,
        )
        return account

    def get_account(self, account_no: str) -> Account | None:
        return self._account_repo.find_by_account_no(account_no)

    def find_account_for_user(self, user_id: int) -> Account | None:
        return self._account_repo.find_by_owner(user_id)

    def count_accounts(self) -> int:
        return self._account_repo.count()

    def _apply_transfer(
        self, from_account_no: str, to_account_no: str, amount: Decimal
    ) -> tuple[Account, Transaction]:
        """
        Validate and apply one transfer attempt as a single unit of work.

        Both account locks are taken in account-number order and held until
        the database commit, and both balances are re-read inside the unit.

        Raises:
            SourceNotFoundError: If the sender account doesn't exist
            DestinationNotFoundError: If the receiver account doesn't exist
            InvalidTransferError: If sender and receiver are the same
            InsufficientBalanceError: If the sender has insufficient balance
            ConflictError: If a balance changed underneath this attempt
        """
        with self._locks.hold_accounts(from_account_no, to_account_no):
            with self._db.transaction():
                source = self._account_repo.find_by_account_no(from_account_no)
                if source is None:
                    raise SourceNotFoundError(f"Account {from_account_no} not found")

                destination = self._account_repo.find_by_account_no(to_account_no)
                if destination is None:
                    raise DestinationNotFoundError(
                        f"Destination account {to_account_no} not found"
                    )

                if source.account_no == destination.account_no:
                    raise InvalidTransferError("Cannot transfer to the same account")

                if not source.can_cover(amount):
                    raise InsufficientBalanceError(
                        f"Insufficient funds: {source.balance} available, {amount} requested"
                    )

                source.balance -= amount
                destination.balance += amount
                self._account_repo.save_balance(source)
                self._account_repo.save_balance(destination)

                transaction = self._transaction_repo.append(
                    Transaction.create_transfer(
                        sender=source.account_no,
                        receiver=destination.account_no,
                        amount=amount,
                    )
                )
        return source, transaction

    def transfer(self, from_account_no: str, to_account_no: str, amount) -> TransferResult:
        """
        Move funds from one account to another.

        Checks run in order and the first failure wins: amount, sender,
        receiver, self-transfer, funds. A lost optimistic write is retried up
        to ``max_conflict_retries`` times before the request is rejected.

        Args:
            from_account_no: The account to debit
            to_account_no: The account to credit
            amount: The amount to move (must be positive)

        Returns:
            A TransferResult; rejected requests carry an error code instead of raising

        Raises:
            StoreError: If the database fails; nothing from the attempt is committed
        """
        attempts = self._max_conflict_retries + 1
        try:
            value = self._parse_amount(amount)
            for attempt in range(1, attempts + 1):
                try:
                    account, transaction = self._apply_transfer(
                        from_account_no, to_account_no, value
                    )
                    break
                except ConflictError:
                    if attempt == attempts:
                        raise
                    logger.warning(
                        "Transfer %s -> %s hit a concurrent update, retrying (%d/%d)",
                        from_account_no,
                        to_account_no,
                        attempt,
                        self._max_conflict_retries,
                    )
        except tuple(_REJECTION_CODES) as err:
            logger.warning(
                "Transfer %s -> %s of %s rejected: %s", from_account_no, to_account_no, amount, err
            )
            return TransferResult.rejected(_REJECTION_CODES[type(err)], str(err))
        except StoreError:
            logger.exception("Transfer %s -> %s failed in the store", from_account_no, to_account_no)
            raise

        logger.info(
            "Transferred %s from %s to %s (transaction %s)",
            value,
            from_account_no,
            to_account_no,
            transaction.id,
        )
        return TransferResult.success(account, transaction)

    def transfer_for_user(self, user_id: int, to_account_no: str, amount) -> TransferResult:
        """
        Transfer from the caller's own account.

        Args:
            user_id: The authenticated caller
            to_account_no: The account to credit
            amount: The amount to move

        Returns:
            A TransferResult; SOURCE_NOT_FOUND when the caller has no account yet
        """
        account = self._account_repo.find_by_owner(user_id)
        if account is None:
            try:
                self._parse_amount(amount)
            except InvalidAmountError as err:
                return TransferResult.rejected(TransferError.INVALID_AMOUNT, str(err))
            return TransferResult.rejected(
                TransferError.SOURCE_NOT_FOUND, f"No account found for user {user_id}"
            )
        return self.transfer(account.account_no, to_account_no, amount)

    def list_transactions(self, account_no: str, limit: int | None = None) -> list[Transaction]:
        """
        Get the transaction history of an account.

        Args:
            account_no: The account number, as sender or receiver
            limit: Maximum number of records, or None for the full history

        Returns:
            Transactions most recent first; empty for unknown accounts
        """
        return self._transaction_repo.find_by_account(account_no, limit)
