"""Orchestration of deposits and withdrawals between the payment processor and the wallet ledger."""

import logging
import threading
from dataclasses import dataclass
from enum import StrEnum
from typing import Callable, Optional, Protocol

from src.api.models import AddMoneyRequest, TransactionResponse, WithdrawRequest
from src.core.config import settings
from src.core.exceptions import PaymentFailedError
from src.core.models import TransactionModel, UserId
from src.core.shared_types import PaymentMethod, TransactionStatus, TransactionType
from src.services.wallet_service import WalletService

logger = logging.getLogger(__name__)


class PaymentOutcome(StrEnum):
    SUCCESS = "success"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class PaymentOrder:
    order_id: str
    amount: float
    user_id: UserId


@dataclass
class PaymentResult:
    outcome: PaymentOutcome
    payment_id: Optional[str] = None
    error: Optional[str] = None


class PaymentProcessor(Protocol):
    """Gateway to the payment provider (ex. Razorpay)"""

    def create_order(self, amount: float, user_id: UserId) -> PaymentOrder: ...

    def pay(self, order: PaymentOrder, amount: float, method: PaymentMethod) -> PaymentResult:
        """Run the payment flow for an order with the chosen method (checkout sheet, UPI intent, ...)."""
        ...

    def payout(self, user_id: UserId, amount: float, upi_id: str, reference: str) -> bool:
        """Send money to the user. True when the payout went through."""
        ...


# Runs a callback after a delay (seconds). The default starts a daemon timer thread.
Scheduler = Callable[[float, Callable[[], None]], None]


def timer_scheduler(delay: float, callback: Callable[[], None]) -> None:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()


class PaymentService:
    def __init__(
        self,
        wallet: WalletService,
        processor: PaymentProcessor,
        scheduler: Scheduler = timer_scheduler,
    ) -> None:
        self.wallet = wallet
        self.processor = processor
        self.scheduler = scheduler

    def add_money(self, request: AddMoneyRequest) -> TransactionResponse:
        """
        Deposit through the payment processor
        ----

        1. create an order and run the payment
        2. success: credit the wallet with the paid amount
        3. cancelled or failed: log a failed credit, leave the balance alone, and raise
        """
        order = self.processor.create_order(request.amount, request.user_id)
        result = self.processor.pay(order, request.amount, request.method)

        if result.outcome != PaymentOutcome.SUCCESS:
            memo = (
                "Payment cancelled by user"
                if result.outcome == PaymentOutcome.CANCELLED
                else f"Payment failed: {result.error or 'unknown error'}"
            )
            self.wallet.record_failed(
                request.user_id,
                request.amount,
                TransactionType.CREDIT,
                memo,
                method=request.method,
                reference=order.order_id,
            )
            raise PaymentFailedError(memo)

        transaction = self.wallet.credit(
            request.user_id,
            request.amount,
            f"Added money via {request.method}",
            method=request.method,
            reference=result.payment_id or order.order_id,
        )
        return self.wallet.transaction_response(transaction)

    def withdraw(self, request: WithdrawRequest) -> TransactionResponse:
        """Reserve the amount now; the payout settles after the configured delay."""
        transaction = self.wallet.request_withdrawal(request)
        self.scheduler(
            settings.withdrawal_settlement_delay,
            lambda: self.process_withdrawal(request.user_id, transaction.id, request.upi_id),
        )
        return self.wallet.transaction_response(transaction)

    def process_withdrawal(self, user_id: UserId, transaction_id: str, upi_id: str) -> TransactionModel:
        """Ask the processor for the payout and settle the pending withdrawal with its result."""
        withdrawal = self.wallet.get_transaction(user_id, transaction_id)
        if withdrawal.status != TransactionStatus.PENDING:
            return withdrawal
        try:
            succeeded = self.processor.payout(user_id, withdrawal.amount, upi_id, transaction_id)
        except PaymentFailedError:
            logger.exception("Payout of withdrawal %s failed", transaction_id)
            succeeded = False
        return self.wallet.settle_withdrawal(user_id, transaction_id, succeeded)
