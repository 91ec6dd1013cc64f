"""Command-line interface for PeerBank."""

import argparse
import logging
import sys
from dataclasses import dataclass
from datetime import timedelta
from getpass import getpass
from typing import Sequence

from dotenv import load_dotenv
from tabulate import tabulate

from config.settings import Settings
from peerbank.logging_config import configure_logging
from peerbank.models.exceptions import BankError, StoreError
from peerbank.repositories.account_repo import AccountRepository
from peerbank.repositories.database import Database
from peerbank.repositories.transaction_repo import TransactionRepository
from peerbank.repositories.user_repo import UserRepository
from peerbank.services.bank_service import BankService
from peerbank.services.sessions import SessionManager
from peerbank.services.user_service import UserService

logger = logging.getLogger("peerbank.cli")


@dataclass
class Bank:
    """The services wired onto one database."""

    db: Database
    bank: BankService
    users: UserService


def open_bank(settings: Settings) -> Bank:
    db = Database(settings.db_path)
    account_repo = AccountRepository(db)
    transaction_repo = TransactionRepository(db)
    user_repo = UserRepository(db)
    for repo in (account_repo, transaction_repo, user_repo):
        repo.create_table()

    sessions = SessionManager(ttl=timedelta(minutes=settings.session_ttl_minutes))
    return Bank(
        db=db,
        bank=BankService.from_settings(db, account_repo, transaction_repo, settings),
        users=UserService(user_repo, sessions),
    )


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="peerbank", description="PeerBank account utilities")
    parser.add_argument("--db", help="Database path (overrides PEERBANK_DB_PATH)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    register = subparsers.add_parser("register", help="Create a user")
    register.add_argument("username")
    register.add_argument("--email", default="")
    register.add_argument("--password", help="Prompted for when omitted")

    for name, help_text in (
        ("balance", "Show your account, opening it on first use"),
        ("history", "List your transactions, most recent first"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("username")
        sub.add_argument("--password", help="Prompted for when omitted")

    history = subparsers.choices["history"]
    history.add_argument("--limit", type=int, help="Number of transactions to show")

    transfer = subparsers.add_parser("transfer", help="Send money to another account")
    transfer.add_argument("username")
    transfer.add_argument("to_account")
    transfer.add_argument("amount")
    transfer.add_argument("--password", help="Prompted for when omitted")

    subparsers.add_parser("accounts-count", help="Print the number of accounts")
    return parser.parse_args(argv)


def _login(bank: Bank, args: argparse.Namespace) -> int:
    password = args.password if args.password is not None else getpass("Password: ")
    token, _ = bank.users.login(args.username, password)
    return bank.users.resolve_caller(token)


def _run(bank: Bank, args: argparse.Namespace, settings: Settings) -> int:
    if args.command == "register":
        password = args.password if args.password is not None else getpass("Password: ")
        _, user = bank.users.register(args.username, password, args.email)
        print(f"Registered {user.username} (user id {user.id})")
        return 0

    if args.command == "accounts-count":
        print(bank.bank.count_accounts())
        return 0

    user_id = _login(bank, args)

    if args.command == "balance":
        account = bank.bank.get_or_create_account(user_id)
        print(f"Account {account.account_no}: balance {account.balance}")
        return 0

    if args.command == "transfer":
        result = bank.bank.transfer_for_user(user_id, args.to_account, args.amount)
        print(result.message)
        if not result.ok:
            return 1
        print(f"Account {result.account.account_no}: balance {result.account.balance}")
        return 0

    if args.command == "history":
        account = bank.bank.find_account_for_user(user_id)
        if account is None:
            print("No transactions.")
            return 0
        limit = args.limit if args.limit is not None else settings.history_limit
        rows = [
            [
                txn.id,
                txn.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                txn.kind.value,
                txn.from_account,
                txn.to_account,
                ("-" if txn.from_account == account.account_no else "+") + str(txn.amount),
            ]
            for txn in bank.bank.list_transactions(account.account_no, limit)
        ]
        if not rows:
            print("No transactions.")
            return 0
        print(
            tabulate(
                rows,
                headers=["ID", "Time", "Type", "From", "To", "Amount"],
                stralign="right",
                numalign="right",
                disable_numparse=True,
            )
        )
        return 0

    raise ValueError(f"Unknown command {args.command}")


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv()
    args = _parse_args(argv)
    try:
        settings = Settings.load()
    except ValueError as err:
        print(f"Configuration error: {err}", file=sys.stderr)
        return 2
    if args.db:
        settings.db_path = args.db
    configure_logging(settings.log_level, settings.log_file)

    try:
        bank = open_bank(settings)
    except StoreError:
        logger.exception("Cannot open database %s", settings.db_path)
        print("The bank is unavailable, please try again later.", file=sys.stderr)
        return 2

    try:
        return _run(bank, args, settings)
    except StoreError:
        logger.exception("Database failure while running %s", args.command)
        print("The bank is unavailable, please try again later.", file=sys.stderr)
        return 2
    except BankError as err:
        print(str(err), file=sys.stderr)
        return 1
    finally:
        bank.db.close()


if __name__ == "__main__":
    sys.exit(main())
