import asyncio
import logging
import random
import string
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Dict

from farm2city.domain.models import (
    PaymentMethod, PaymentRequest, PaymentResponse, PaymentTransaction, TransactionStatus
)
from farm2city.application.interfaces import PaymentGateway, TransactionStore

logger = logging.getLogger(__name__)


class InMemoryTransactionStore(TransactionStore):
    def __init__(self):
        self._transactions: Dict[str, PaymentTransaction] = {}

    async def get(self, transaction_id: str) -> Optional[PaymentTransaction]:
        return self._transactions.get(transaction_id)

    async def save(self, transaction: PaymentTransaction) -> None:
        self._transactions[transaction.transaction_id] = transaction


class MockPaymentGateway(PaymentGateway):
    """Имитация платежного шлюза, транзакции не переживают перезапуск.

    Создается один раз при старте процесса и передается в use cases.
    """

    def __init__(
        self,
        store: TransactionStore,
        success_rate: float = 0.9,
        delay: float = 0.0,
        rng: random.Random | None = None
    ):
        self._store = store
        self._success_rate = success_rate
        self._delay = delay
        self._rng = rng or random.Random()

    def _new_id(self, prefix: str) -> str:
        suffix = "".join(self._rng.choices(string.ascii_lowercase + string.digits, k=9))
        return f"{prefix}_{int(time.time() * 1000)}_{suffix}"

    async def initiate_payment(self, request: PaymentRequest, method: PaymentMethod) -> PaymentResponse:
        await asyncio.sleep(self._delay)

        transaction_id = self._new_id("txn")
        await self._store.save(PaymentTransaction(
            transaction_id=transaction_id,
            order_id=request.order_id,
            status=TransactionStatus.PENDING,
            amount=request.amount,
            currency=request.currency,
            timestamp=datetime.now(timezone.utc)
        ))
        if method == PaymentMethod.UPI:
            payment_url = f"/payment/upi/{transaction_id}"
        else:
            payment_url = f"/payment/process/{transaction_id}"

        logger.info(f"Платеж {transaction_id} создан для заказа {request.order_id} на {request.amount}")
        return PaymentResponse(success=True, transaction_id=transaction_id, payment_url=payment_url)

    async def process_payment(self, transaction_id: str, method: PaymentMethod) -> PaymentResponse:
        await asyncio.sleep(self._delay)

        transaction = await self._store.get(transaction_id)
        if not transaction:
            return PaymentResponse(success=False, error="Transaction not found")

        if self._rng.random() < self._success_rate:
            await self._store.save(transaction.model_copy(update={"status": TransactionStatus.COMPLETED}))
            logger.info(f"Платеж {transaction_id} проведен ({method.value})")
            return PaymentResponse(success=True, transaction_id=transaction_id)

        await self._store.save(transaction.model_copy(update={"status": TransactionStatus.FAILED}))
        logger.warning(f"Платеж {transaction_id} отклонен ({method.value})")
        return PaymentResponse(
            success=False,
            transaction_id=transaction_id,
            error="Payment failed. Please try again."
        )

    async def get_payment_status(self, transaction_id: str) -> Optional[PaymentTransaction]:
        return await self._store.get(transaction_id)

    async def refund_payment(self, transaction_id: str, amount: Optional[Decimal] = None) -> PaymentResponse:
        transaction = await self._store.get(transaction_id)
        if not transaction:
            return PaymentResponse(success=False, error="Transaction not found")
        if transaction.status != TransactionStatus.COMPLETED:
            return PaymentResponse(success=False, error="Only completed transactions can be refunded")

        await asyncio.sleep(self._delay)

        refund_amount = amount if amount is not None else transaction.amount
        refund_id = self._new_id("refund")
        logger.info(f"Возврат {refund_id} по платежу {transaction_id} на {refund_amount}")
        return PaymentResponse(success=True, transaction_id=refund_id)
