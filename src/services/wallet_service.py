"""
Wallet ledger operations.

A user's balance and transaction log live in one record (users/<user_id>), so every mutation and its ledger entry land
in a single write. All mutations of a wallet are serialized on the wallet's lock.
"""

import logging
from typing import Optional
from uuid import uuid4

from src.api.models import TransactionResponse, WalletResponse, WithdrawRequest
from src.core.exceptions import (
    InsufficientBalanceError,
    InvalidRequestError,
    TransactionNotFoundError,
)
from src.core.locks import KeyedLocks
from src.core.models import TransactionModel, UserId, WalletModel
from src.core.shared_types import (
    BalanceOperation,
    PaymentMethod,
    TransactionStatus,
    TransactionType,
)
from src.db.records import Records

logger = logging.getLogger(__name__)


class WalletService:
    """Balance mutations + their ledger entries."""

    def __init__(self, records: Records, locks: Optional[KeyedLocks] = None) -> None:
        self.records = records
        self.locks = locks or KeyedLocks()

    # -- Queries ---
    def get_balance(self, user_id: UserId) -> float:
        return self.records.get_wallet(user_id).balance

    def get_wallet(self, user_id: UserId) -> WalletResponse:
        wallet = self.records.get_wallet(user_id)
        return WalletResponse(
            user_id=wallet.user_id,
            balance=wallet.balance,
            transactions=[self.transaction_response(t) for t in wallet.transactions],
        )

    def transactions(self, user_id: UserId, limit: Optional[int] = None) -> list[TransactionResponse]:
        """Most recent first."""
        history = list(reversed(self.records.get_wallet(user_id).transactions))
        if limit is not None:
            history = history[:limit]
        return [self.transaction_response(t) for t in history]

    def get_transaction(self, user_id: UserId, transaction_id: str) -> TransactionModel:
        return self._find_transaction(self.records.get_wallet(user_id), transaction_id)

    # -- Mutations ---
    def update_balance(
        self,
        user_id: UserId,
        amount: float,
        operation: BalanceOperation,
        memo: str,
        txn_type: Optional[TransactionType] = None,
        method: Optional[PaymentMethod] = None,
        reference: Optional[str] = None,
        unique_reference: bool = False,
    ) -> TransactionModel:
        """
        Add or subtract an amount and log it.
        ----

        Subtracting more than the balance clamps the balance at zero. The logged transaction always carries the
        requested amount. The transaction type follows from the operation unless given explicitly (ex. refund).

        With unique_reference, a completed transaction already logged under the same reference is returned instead
        and nothing changes, so a retried settlement pays out once.
        """
        self._assert_amount(amount)
        if unique_reference and reference is None:
            raise InvalidRequestError("A unique reference needs a reference")
        with self.locks.hold(self._lock_key(user_id)):
            wallet = self.records.get_wallet(user_id)
            if unique_reference:
                logged = self._find_completed(wallet, reference)
                if logged is not None:
                    logger.info("Transaction %s already logged for %s", reference, user_id)
                    return logged

            if operation == BalanceOperation.ADD:
                wallet.balance = round(wallet.balance + amount, 2)
            else:
                wallet.balance = max(0, round(wallet.balance - amount, 2))

            default_type = TransactionType.CREDIT if operation == BalanceOperation.ADD else TransactionType.DEBIT
            transaction = self._new_transaction(
                user_id,
                txn_type or default_type,
                amount,
                TransactionStatus.COMPLETED,
                memo,
                method,
                reference,
            )
            wallet.transactions.append(transaction)
            self.records.save_wallet(wallet)

        logger.info("%s %.2f for %s (%s), balance %.2f", operation, amount, user_id, memo, wallet.balance)
        return transaction

    def credit(
        self,
        user_id: UserId,
        amount: float,
        memo: str,
        method: Optional[PaymentMethod] = None,
        reference: Optional[str] = None,
        unique_reference: bool = False,
    ) -> TransactionModel:
        return self.update_balance(
            user_id,
            amount,
            BalanceOperation.ADD,
            memo,
            method=method,
            reference=reference,
            unique_reference=unique_reference,
        )

    def refund(
        self, user_id: UserId, amount: float, memo: str, reference: Optional[str] = None, unique_reference: bool = False
    ) -> TransactionModel:
        return self.update_balance(
            user_id,
            amount,
            BalanceOperation.ADD,
            memo,
            txn_type=TransactionType.REFUND,
            reference=reference,
            unique_reference=unique_reference,
        )

    def debit(self, user_id: UserId, amount: float, memo: str) -> TransactionModel:
        """Strict subtraction: refuses instead of clamping."""
        self._assert_amount(amount)
        with self.locks.hold(self._lock_key(user_id)):
            balance = self.get_balance(user_id)
            if balance < amount:
                raise InsufficientBalanceError(
                    f"Insufficient balance: {balance:.2f} available, {amount:.2f} required"
                )
            return self.update_balance(user_id, amount, BalanceOperation.SUBTRACT, memo)

    def record_failed(
        self,
        user_id: UserId,
        amount: float,
        txn_type: TransactionType,
        memo: str,
        method: Optional[PaymentMethod] = None,
        reference: Optional[str] = None,
    ) -> TransactionModel:
        """Log an attempt that did not go through. The balance is left alone."""
        with self.locks.hold(self._lock_key(user_id)):
            wallet = self.records.get_wallet(user_id)
            transaction = self._new_transaction(
                user_id, txn_type, amount, TransactionStatus.FAILED, memo, method, reference
            )
            wallet.transactions.append(transaction)
            self.records.save_wallet(wallet)

        logger.info("Failed %s of %.2f for %s: %s", txn_type, amount, user_id, memo)
        return transaction

    def request_withdrawal(self, request: WithdrawRequest) -> TransactionModel:
        """
        Reserve the amount and log a pending withdrawal
        ----

        1. not enough balance? log a failed withdrawal and refuse
        2. take the amount off the balance
        3. log the withdrawal as pending, it settles later (see settle_withdrawal)
        """
        user_id = request.user_id
        with self.locks.hold(self._lock_key(user_id)):
            wallet = self.records.get_wallet(user_id)
            if wallet.balance < request.amount:
                self.record_failed(
                    user_id,
                    request.amount,
                    TransactionType.WITHDRAWAL,
                    "Withdrawal failed: insufficient balance",
                    method=PaymentMethod.UPI,
                    reference=request.upi_id,
                )
                raise InsufficientBalanceError(
                    f"Insufficient balance: {wallet.balance:.2f} available, {request.amount:.2f} requested"
                )

            wallet.balance = round(wallet.balance - request.amount, 2)
            transaction = self._new_transaction(
                user_id,
                TransactionType.WITHDRAWAL,
                request.amount,
                TransactionStatus.PENDING,
                f"Withdrawal to {request.upi_id}",
                PaymentMethod.UPI,
                request.upi_id,
            )
            wallet.transactions.append(transaction)
            self.records.save_wallet(wallet)

        logger.info("Withdrawal %s of %.2f requested by %s", transaction.id, request.amount, user_id)
        return transaction

    def settle_withdrawal(self, user_id: UserId, transaction_id: str, succeeded: bool) -> TransactionModel:
        """
        Move a pending withdrawal to completed or failed.

        Only pending withdrawals settle, so settling twice changes nothing. A failed withdrawal gets its amount
        refunded (exactly once).
        """
        with self.locks.hold(self._lock_key(user_id)):
            wallet = self.records.get_wallet(user_id)
            transaction = self._find_transaction(wallet, transaction_id)
            if transaction.status != TransactionStatus.PENDING:
                logger.info("Withdrawal %s already settled as %s", transaction_id, transaction.status)
                return transaction

            if succeeded:
                transaction.status = TransactionStatus.COMPLETED.value
            else:
                transaction.status = TransactionStatus.FAILED.value
                wallet.balance = round(wallet.balance + transaction.amount, 2)
                wallet.transactions.append(
                    self._new_transaction(
                        user_id,
                        TransactionType.REFUND,
                        transaction.amount,
                        TransactionStatus.COMPLETED,
                        f"Refund for failed withdrawal {transaction_id}",
                        reference=transaction_id,
                    )
                )
            self.records.save_wallet(wallet)

        logger.info("Withdrawal %s settled as %s", transaction_id, transaction.status)
        return transaction

    # -- Internal helpers --
    def transaction_response(self, transaction: TransactionModel) -> TransactionResponse:
        return TransactionResponse(
            id=transaction.id,
            user_id=transaction.user_id,
            type=transaction.type,
            amount=transaction.amount,
            status=transaction.status,
            description=transaction.description,
            method=transaction.method,
            reference=transaction.reference,
            timestamp=transaction.timestamp,
        )

    def _new_transaction(
        self,
        user_id: UserId,
        txn_type: TransactionType,
        amount: float,
        status: TransactionStatus,
        memo: str,
        method: Optional[PaymentMethod] = None,
        reference: Optional[str] = None,
    ) -> TransactionModel:
        return TransactionModel(
            id=str(uuid4()),
            user_id=user_id,
            type=txn_type.value,
            amount=amount,
            status=status.value,
            description=memo,
            method=method.value if method else None,
            reference=reference,
        )

    def _find_transaction(self, wallet: WalletModel, transaction_id: str) -> TransactionModel:
        for transaction in wallet.transactions:
            if transaction.id == transaction_id:
                return transaction
        raise TransactionNotFoundError(f"Transaction {transaction_id} not found for user {wallet.user_id}")

    def _find_completed(self, wallet: WalletModel, reference: Optional[str]) -> Optional[TransactionModel]:
        for transaction in wallet.transactions:
            if transaction.reference == reference and transaction.status == TransactionStatus.COMPLETED:
                return transaction
        return None

    def _assert_amount(self, amount: float) -> None:
        if amount <= 0:
            raise InvalidRequestError(f"Amount must be positive, got {amount}")

    @staticmethod
    def _lock_key(user_id: UserId) -> str:
        return f"wallet:{user_id}"
