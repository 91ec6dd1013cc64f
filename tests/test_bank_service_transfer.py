"""Tests for BankService transfer operations."""

import sqlite3
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest

from peerbank.models.exceptions import ConflictError, StoreError
from peerbank.models.result import TransferError
from peerbank.models.transaction import TransactionKind
from peerbank.repositories.account_repo import AccountRepository
from peerbank.repositories.database import Database
from peerbank.repositories.transaction_repo import TransactionRepository
from peerbank.services.bank_service import BankService
from peerbank.services.locks import AccountLocks


@pytest.fixture
def in_memory_db():
    """Create an in-memory SQLite database for testing."""
    db = Database(":memory:")
    yield db
    db.close()


@pytest.fixture
def account_repo(in_memory_db):
    """Create an AccountRepository instance with a fresh database."""
    repo = AccountRepository(in_memory_db)
    repo.create_table()
    return repo


@pytest.fixture
def transaction_repo(in_memory_db):
    """Create a TransactionRepository instance with a fresh database."""
    repo = TransactionRepository(in_memory_db)
    repo.create_table()
    return repo


@pytest.fixture
def bank_service(in_memory_db, account_repo, transaction_repo):
    """Create a BankService instance with repositories."""
    return BankService(db=in_memory_db, account_repo=account_repo, transaction_repo=transaction_repo)


def _set_balance(account_repo, account_no, balance):
    account = account_repo.find_by_account_no(account_no)
    account.balance = Decimal(balance)
    account_repo.save_balance(account)


def _balance(account_repo, account_no):
    return account_repo.find_by_account_no(account_no).balance


@pytest.fixture
def alice_and_bob(bank_service, account_repo):
    """Alice holds 1000, Bob holds 500."""
    alice = bank_service.get_or_create_account(1).account_no
    bob = bank_service.get_or_create_account(2).account_no
    _set_balance(account_repo, bob, "500")
    return alice, bob


def test_transfer_success(bank_service, account_repo, transaction_repo, alice_and_bob):
    """A=1000 sends 300 to B=500: A=700, B=800, one TRANSFER of 300 recorded."""
    alice, bob = alice_and_bob

    result = bank_service.transfer(alice, bob, Decimal("300"))

    assert result.ok
    assert result.message == f"Transfer successful: $300 to {bob}"
    assert result.account.account_no == alice
    assert result.account.balance == Decimal("700")

    assert _balance(account_repo, alice) == Decimal("700")
    assert _balance(account_repo, bob) == Decimal("800")

    history = transaction_repo.find_by_account(alice)
    assert len(history) == 1
    assert history[0] == result.transaction
    assert history[0].kind is TransactionKind.TRANSFER
    assert history[0].from_account == alice
    assert history[0].to_account == bob
    assert history[0].amount == Decimal("300")


@pytest.mark.parametrize("amount", [Decimal("300"), 300, "300", "300.00"])
def test_transfer_accepts_exact_amount_types(bank_service, account_repo, alice_and_bob, amount):
    alice, bob = alice_and_bob

    assert bank_service.transfer(alice, bob, amount).ok
    assert _balance(account_repo, alice) == Decimal("700")


def test_transfer_conserves_total(bank_service, account_repo, alice_and_bob):
    alice, bob = alice_and_bob
    before = _balance(account_repo, alice) + _balance(account_repo, bob)

    for amount, (src, dst) in [
        ("12.34", (alice, bob)),
        ("0.01", (bob, alice)),
        ("999.99", (bob, alice)),
        ("250.50", (alice, bob)),
    ]:
        assert bank_service.transfer(src, dst, amount).ok

    assert _balance(account_repo, alice) + _balance(account_repo, bob) == before


def test_transfer_can_drain_to_zero(bank_service, account_repo, alice_and_bob):
    alice, bob = alice_and_bob

    result = bank_service.transfer(alice, bob, "1000")

    assert result.ok
    assert _balance(account_repo, alice) == Decimal("0")
    assert _balance(account_repo, bob) == Decimal("1500")


def test_transfer_insufficient_funds(bank_service, account_repo, transaction_repo, alice_and_bob):
    """A=100 tries to send 150: rejected, nothing changes."""
    alice, bob = alice_and_bob
    _set_balance(account_repo, alice, "100")

    result = bank_service.transfer(alice, bob, "150")

    assert not result.ok
    assert result.error is TransferError.INSUFFICIENT_FUNDS
    assert _balance(account_repo, alice) == Decimal("100")
    assert _balance(account_repo, bob) == Decimal("500")
    assert transaction_repo.count() == 0


def test_transfer_destination_not_found(bank_service, account_repo, transaction_repo, alice_and_bob):
    alice, _ = alice_and_bob

    result = bank_service.transfer(alice, "does-not-exist", "10")

    assert result.error is TransferError.DESTINATION_NOT_FOUND
    assert _balance(account_repo, alice) == Decimal("1000")
    assert transaction_repo.count() == 0


def test_transfer_source_not_found(bank_service, transaction_repo, alice_and_bob):
    _, bob = alice_and_bob

    result = bank_service.transfer("does-not-exist", bob, "10")

    assert result.error is TransferError.SOURCE_NOT_FOUND
    assert transaction_repo.count() == 0


@pytest.mark.parametrize(
    "amount", [0, "0", "-5", Decimal("-0.01"), "abc", "", None, 1.5, True, "NaN", "Infinity", "0.001"]
)
def test_transfer_invalid_amount(bank_service, account_repo, transaction_repo, alice_and_bob, amount):
    alice, bob = alice_and_bob

    result = bank_service.transfer(alice, bob, amount)

    assert result.error is TransferError.INVALID_AMOUNT
    assert _balance(account_repo, alice) == Decimal("1000")
    assert transaction_repo.count() == 0


def test_invalid_amount_checked_before_accounts(bank_service):
    """The first failing check wins: amount comes before account lookups."""
    result = bank_service.transfer("missing-a", "missing-b", "-1")
    assert result.error is TransferError.INVALID_AMOUNT


def test_source_checked_before_destination(bank_service):
    result = bank_service.transfer("missing-a", "missing-b", "10")
    assert result.error is TransferError.SOURCE_NOT_FOUND


def test_destination_checked_before_funds(bank_service, alice_and_bob):
    alice, _ = alice_and_bob
    result = bank_service.transfer(alice, "missing-b", "5000")
    assert result.error is TransferError.DESTINATION_NOT_FOUND


def test_transfer_to_self_rejected(bank_service, account_repo, transaction_repo, alice_and_bob):
    alice, _ = alice_and_bob

    result = bank_service.transfer(alice, alice, "10")

    assert result.error is TransferError.SELF_TRANSFER
    assert _balance(account_repo, alice) == Decimal("1000")
    assert transaction_repo.count() == 0


def test_transfer_for_user(bank_service, account_repo, alice_and_bob):
    _, bob = alice_and_bob

    result = bank_service.transfer_for_user(1, bob, "25")

    assert result.ok
    assert _balance(account_repo, bob) == Decimal("525")


def test_transfer_for_user_without_account(bank_service, alice_and_bob):
    _, bob = alice_and_bob

    assert bank_service.transfer_for_user(99, bob, "25").error is TransferError.SOURCE_NOT_FOUND
    assert bank_service.transfer_for_user(99, bob, "-1").error is TransferError.INVALID_AMOUNT


def test_failure_before_record_append_leaves_no_trace(
    bank_service, account_repo, transaction_repo, alice_and_bob, monkeypatch
):
    """Balances and the record are committed together or not at all."""
    alice, bob = alice_and_bob

    def broken_append(txn):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(transaction_repo, "append", broken_append)

    with pytest.raises(StoreError):
        bank_service.transfer(alice, bob, "300")

    assert _balance(account_repo, alice) == Decimal("1000")
    assert _balance(account_repo, bob) == Decimal("500")
    assert transaction_repo.count() == 0


def test_interrupted_transfer_invisible_after_reopen(tmp_path, monkeypatch):
    """After an interrupted transfer, a fresh connection sees the pre-transfer state."""
    path = str(tmp_path / "bank.db")
    db = Database(path)
    account_repo = AccountRepository(db)
    transaction_repo = TransactionRepository(db)
    account_repo.create_table()
    transaction_repo.create_table()
    service = BankService(db=db, account_repo=account_repo, transaction_repo=transaction_repo)
    alice = service.get_or_create_account(1).account_no
    bob = service.get_or_create_account(2).account_no

    def crash(txn):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(transaction_repo, "append", crash)
    with pytest.raises(StoreError):
        service.transfer(alice, bob, "300")
    db.close()

    reopened = Database(path)
    try:
        assert AccountRepository(reopened).find_by_account_no(alice).balance == Decimal("1000")
        assert AccountRepository(reopened).find_by_account_no(bob).balance == Decimal("1000")
        assert TransactionRepository(reopened).count() == 0
    finally:
        reopened.close()


def test_conflict_is_retried(bank_service, account_repo, transaction_repo, alice_and_bob, monkeypatch):
    alice, bob = alice_and_bob
    original = account_repo.save_balance
    calls = []

    def flaky_save(account):
        calls.append(account.account_no)
        if len(calls) == 1:
            raise ConflictError("simulated concurrent write")
        original(account)

    monkeypatch.setattr(account_repo, "save_balance", flaky_save)

    result = bank_service.transfer(alice, bob, "300")

    assert result.ok
    assert _balance(account_repo, alice) == Decimal("700")
    assert _balance(account_repo, bob) == Decimal("800")
    assert transaction_repo.count() == 1


def test_conflict_surfaces_after_bounded_retries(
    in_memory_db, account_repo, transaction_repo, alice_and_bob, monkeypatch
):
    alice, bob = alice_and_bob
    service = BankService(
        db=in_memory_db,
        account_repo=account_repo,
        transaction_repo=transaction_repo,
        max_conflict_retries=2,
    )
    calls = []

    def always_conflict(account):
        calls.append(account.account_no)
        raise ConflictError("simulated concurrent write")

    monkeypatch.setattr(account_repo, "save_balance", always_conflict)

    result = service.transfer(alice, bob, "300")

    assert result.error is TransferError.CONFLICT
    assert len(calls) == 3
    assert _balance(account_repo, alice) == Decimal("1000")
    assert transaction_repo.count() == 0


def test_concurrent_transfers_from_one_account(bank_service, account_repo, transaction_repo):
    """50 concurrent transfers of 10 out of a 1000 balance leave exactly 500."""
    source = bank_service.get_or_create_account(1).account_no
    targets = [bank_service.get_or_create_account(user_id).account_no for user_id in range(2, 52)]

    with ThreadPoolExecutor(max_workers=16) as pool:
        results = list(pool.map(lambda dst: bank_service.transfer(source, dst, "10"), targets))

    assert all(result.ok for result in results)
    assert _balance(account_repo, source) == Decimal("500")
    for target in targets:
        assert _balance(account_repo, target) == Decimal("1010")
    assert transaction_repo.count() == 50


def test_concurrent_overdraw_never_goes_negative(bank_service, account_repo):
    source = bank_service.get_or_create_account(1).account_no
    target = bank_service.get_or_create_account(2).account_no

    with ThreadPoolExecutor(max_workers=16) as pool:
        results = list(pool.map(lambda _: bank_service.transfer(source, target, "100"), range(30)))

    succeeded = [result for result in results if result.ok]
    rejected = [result for result in results if not result.ok]
    assert len(succeeded) == 10
    assert all(result.error is TransferError.INSUFFICIENT_FUNDS for result in rejected)
    assert _balance(account_repo, source) == Decimal("0")
    assert _balance(account_repo, target) == Decimal("2000")


def test_opposite_direction_transfers_do_not_deadlock(bank_service, account_repo):
    a = bank_service.get_or_create_account(1).account_no
    b = bank_service.get_or_create_account(2).account_no
    pairs = [(a, b), (b, a)] * 50

    with ThreadPoolExecutor(max_workers=16) as pool:
        futures = [pool.submit(bank_service.transfer, src, dst, "1") for src, dst in pairs]
        results = [future.result(timeout=30) for future in futures]

    assert all(result.ok for result in results)
    assert _balance(account_repo, a) + _balance(account_repo, b) == Decimal("2000")
    assert _balance(account_repo, a) == Decimal("1000")


def test_exponent_amount_is_stored_fixed_point(bank_service, account_repo, transaction_repo, alice_and_bob):
    alice, bob = alice_and_bob

    result = bank_service.transfer(alice, bob, "1e2")

    assert result.ok
    assert result.message == f"Transfer successful: $100 to {bob}"
    assert str(transaction_repo.find_by_account(alice)[0].amount) == "100"
    assert str(_balance(account_repo, alice)) == "900"


def test_rejected_transfers_leave_no_lock_entries(in_memory_db, account_repo, transaction_repo):
    """Unknown destination numbers sent by callers do not accumulate locks."""
    locks = AccountLocks()
    service = BankService(
        db=in_memory_db,
        account_repo=account_repo,
        transaction_repo=transaction_repo,
        locks=locks,
    )
    source = service.get_or_create_account(1).account_no
    target = service.get_or_create_account(2).account_no

    for i in range(200):
        result = service.transfer(source, f"unknown-{i}", "1")
        assert result.error is TransferError.DESTINATION_NOT_FOUND
    assert service.transfer(source, target, "1").ok
    assert service.transfer(source, target, "5000").error is TransferError.INSUFFICIENT_FUNDS

    assert locks.tracked() == 0


def test_unexpected_errors_are_not_turned_into_rejections(bank_service, alice_and_bob, monkeypatch):
    alice, bob = alice_and_bob

    def broken_save(account):
        raise RuntimeError("bug")

    monkeypatch.setattr(bank_service._account_repo, "save_balance", broken_save)

    with pytest.raises(RuntimeError):
        bank_service.transfer(alice, bob, "10")
