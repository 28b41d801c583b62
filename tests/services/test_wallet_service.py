"""Unit tests for src/services/wallet_service.py"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from src.api.models import WithdrawRequest
from src.core.exceptions import (
    InsufficientBalanceError,
    InvalidRequestError,
    TransactionNotFoundError,
)
from src.core.shared_types import BalanceOperation, TransactionStatus, TransactionType
from src.services.wallet_service import WalletService


def withdraw_request(amount: float, user_id: str = "alice") -> WithdrawRequest:
    return WithdrawRequest(user_id=user_id, amount=amount, upi_id="alice@okbank")


def test_new_user_has_empty_wallet(wallet_service: WalletService) -> None:
    wallet = wallet_service.get_wallet("alice")
    assert wallet.balance == 0
    assert wallet.transactions == []


# --- UPDATE BALANCE ---
def test_add_and_subtract_are_logged(wallet_service: WalletService) -> None:
    wallet_service.update_balance("alice", 100, BalanceOperation.ADD, "Top up")
    wallet_service.update_balance("alice", 30.25, BalanceOperation.SUBTRACT, "Entry fee")

    assert wallet_service.get_balance("alice") == 69.75
    history = wallet_service.transactions("alice")
    assert [(t.type, t.amount, t.status) for t in history] == [
        ("debit", 30.25, "completed"),
        ("credit", 100, "completed"),
    ]


def test_subtract_clamps_at_zero(wallet_service: WalletService) -> None:
    """The balance never goes negative; the transaction keeps the requested amount."""
    wallet_service.credit("alice", 20, "Top up")
    transaction = wallet_service.update_balance("alice", 50, BalanceOperation.SUBTRACT, "Penalty")
    assert wallet_service.get_balance("alice") == 0
    assert transaction.amount == 50


@pytest.mark.parametrize("amount", [0, -5])
def test_amount_must_be_positive(wallet_service: WalletService, amount: float) -> None:
    with pytest.raises(InvalidRequestError):
        wallet_service.update_balance("alice", amount, BalanceOperation.ADD, "Nothing")
    assert wallet_service.transactions("alice") == []


def test_balance_is_rounded_to_cents(wallet_service: WalletService) -> None:
    wallet_service.credit("alice", 0.1, "a")
    wallet_service.credit("alice", 0.2, "b")
    assert wallet_service.get_balance("alice") == 0.3


def test_unique_reference_is_applied_once(wallet_service: WalletService) -> None:
    first = wallet_service.credit("alice", 50, "Prize", reference="tournament:t1:prize:1", unique_reference=True)
    again = wallet_service.credit("alice", 50, "Prize", reference="tournament:t1:prize:1", unique_reference=True)
    assert again == first
    assert wallet_service.get_balance("alice") == 50
    assert len(wallet_service.transactions("alice")) == 1

    wallet_service.refund("alice", 10, "Refund", reference="tournament:t2:refund", unique_reference=True)
    assert wallet_service.get_balance("alice") == 60


def test_unique_reference_requires_a_reference(wallet_service: WalletService) -> None:
    with pytest.raises(InvalidRequestError):
        wallet_service.credit("alice", 50, "Prize", unique_reference=True)
    assert wallet_service.get_balance("alice") == 0


def test_refund_is_logged_as_refund(wallet_service: WalletService) -> None:
    wallet_service.refund("alice", 25, "Tournament cancelled")
    assert wallet_service.get_balance("alice") == 25
    assert wallet_service.transactions("alice")[0].type == TransactionType.REFUND


def test_transactions_limit(wallet_service: WalletService) -> None:
    for amount in (10, 20, 30):
        wallet_service.credit("alice", amount, f"Top up {amount}")
    assert [t.amount for t in wallet_service.transactions("alice", limit=2)] == [30, 20]


# --- DEBIT ---
def test_debit_refuses_instead_of_clamping(wallet_service: WalletService) -> None:
    wallet_service.credit("alice", 40, "Top up")
    with pytest.raises(InsufficientBalanceError):
        wallet_service.debit("alice", 50, "Entry fee")
    assert wallet_service.get_balance("alice") == 40
    assert len(wallet_service.transactions("alice")) == 1


def test_concurrent_debits_never_overdraw(wallet_service: WalletService) -> None:
    """Twenty debits of 10 race for a balance of 100: exactly ten succeed."""
    wallet_service.credit("alice", 100, "Top up")

    def try_debit(_: int) -> bool:
        try:
            wallet_service.debit("alice", 10, "Entry fee")
        except InsufficientBalanceError:
            return False
        return True

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(try_debit, range(20)))

    assert results.count(True) == 10
    assert wallet_service.get_balance("alice") == 0
    assert len(wallet_service.transactions("alice")) == 11


# --- WITHDRAWALS ---
def test_withdrawal_reserves_amount(wallet_service: WalletService) -> None:
    wallet_service.credit("alice", 500, "Top up")
    transaction = wallet_service.request_withdrawal(withdraw_request(200))

    assert transaction.status == TransactionStatus.PENDING
    assert transaction.type == TransactionType.WITHDRAWAL
    assert transaction.reference == "alice@okbank"
    assert wallet_service.get_balance("alice") == 300


def test_withdrawal_without_funds_is_logged_as_failed(wallet_service: WalletService) -> None:
    wallet_service.credit("alice", 60, "Top up")
    with pytest.raises(InsufficientBalanceError):
        wallet_service.request_withdrawal(withdraw_request(100))

    assert wallet_service.get_balance("alice") == 60
    failed = wallet_service.transactions("alice")[0]
    assert (failed.type, failed.status, failed.amount) == ("withdrawal", "failed", 100)


def test_successful_settlement(wallet_service: WalletService) -> None:
    wallet_service.credit("alice", 500, "Top up")
    pending = wallet_service.request_withdrawal(withdraw_request(200))

    settled = wallet_service.settle_withdrawal("alice", pending.id, succeeded=True)
    assert settled.status == TransactionStatus.COMPLETED
    assert wallet_service.get_balance("alice") == 300


def test_failed_settlement_refunds_once(wallet_service: WalletService) -> None:
    wallet_service.credit("alice", 500, "Top up")
    pending = wallet_service.request_withdrawal(withdraw_request(200))

    wallet_service.settle_withdrawal("alice", pending.id, succeeded=False)
    wallet_service.settle_withdrawal("alice", pending.id, succeeded=False)
    wallet_service.settle_withdrawal("alice", pending.id, succeeded=True)

    assert wallet_service.get_balance("alice") == 500
    assert wallet_service.get_transaction("alice", pending.id).status == TransactionStatus.FAILED
    refunds = [t for t in wallet_service.transactions("alice") if t.type == TransactionType.REFUND]
    assert len(refunds) == 1
    assert refunds[0].reference == pending.id


def test_unknown_transaction(wallet_service: WalletService) -> None:
    with pytest.raises(TransactionNotFoundError):
        wallet_service.settle_withdrawal("alice", "nope", succeeded=True)


def test_withdrawing_more_than_the_balance(wallet_service: WalletService) -> None:
    """Balance 100, withdraw 150: refused, balance untouched, only the failed attempt is logged."""
    wallet_service.credit("alice", 100, "Top up")
    with pytest.raises(InsufficientBalanceError):
        wallet_service.request_withdrawal(withdraw_request(150))

    assert wallet_service.get_balance("alice") == 100
    assert [t.status for t in wallet_service.transactions("alice")] == ["failed", "completed"]
