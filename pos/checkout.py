import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Set, Tuple

import httpx

from sdk.posbase import BackendClient, BackendError

from .cart import CartEngine
from .catalog import CatalogStore
from .errors import EmptyCartError, PaymentValidationError, RemoteReadError, RemoteWriteError
from .models import CartLine, PaymentInfo, Transaction, TransactionItem

logger = logging.getLogger(__name__)

STEP_TRANSACTION = 1
STEP_ITEMS = 2
STEP_STOCK = 3


@dataclass
class CheckoutResult:
    ok: bool
    transaction: Optional[Transaction] = None
    error: Optional[str] = None
    step: Optional[int] = None
    cause: Optional[Exception] = None
    refresh_error: Optional[str] = None


@dataclass
class _Attempt:
    """Writes already committed for one cart, so a retry can pick up where it stopped."""
    fingerprint: Tuple[Tuple[int, int, int, int], ...]
    code: str
    transaction: Optional[Transaction] = None
    items_written: bool = False
    decremented: Set[int] = field(default_factory=set)


def _fingerprint(lines: List[CartLine]) -> Tuple[Tuple[int, int, int, int], ...]:
    return tuple((l.product_id, l.quantity, l.sell_price, l.stock) for l in lines)


def new_transaction_code() -> str:
    return f"TRX-{int(time.time() * 1000)}-{uuid.uuid4().hex[:4].upper()}"


class CheckoutSequencer:
    """
    Turns the cart into a persisted sale:

    1. insert the ``transaction`` row and read back its id
    2. insert one ``transaction_items`` row per cart line (single batch)
    3. set each product's stock to ``snapshot stock - quantity``, one write per line
    4. clear the cart and refresh the catalog

    The store offers no multi-statement transaction, so a failure leaves the
    earlier steps committed. The sequencer keeps that progress and a retry
    with the same cart resumes at the failed step.
    """

    def __init__(
        self,
        backend: BackendClient,
        cart: CartEngine,
        catalog: CatalogStore,
        default_customer: str = "Guest",
    ):
        self.backend = backend
        self.cart = cart
        self.catalog = catalog
        self.default_customer = default_customer
        self._pending: Optional[_Attempt] = None

    @property
    def pending(self) -> Optional[_Attempt]:
        return self._pending

    def _settle(self, payment: PaymentInfo, total: int) -> Tuple[int, int]:
        amount = payment.amount if payment.amount is not None else total
        if amount < total:
            raise PaymentValidationError(f"amount paid {amount} is less than total {total}")
        change = payment.change if payment.change is not None else amount - total
        if change < 0:
            raise PaymentValidationError("change cannot be negative")
        return amount, change

    async def _create_transaction(self, attempt: _Attempt, payment: PaymentInfo, total: int) -> None:
        amount, change = self._settle(payment, total)
        row = {
            "transaction_code": attempt.code,
            "customer_name": (payment.customer_name or "").strip() or self.default_customer,
            "total_amount": total,
            "payment_method": payment.method,
            "payment_amount": amount,
            "change_amount": change,
            "discount_amount": 0,
            "status": "completed",
        }
        try:
            created = await self.backend.table("transaction").insert([row]).select().single().execute()
        except (BackendError, httpx.HTTPError) as exc:
            raise RemoteWriteError("create transaction", exc, step=STEP_TRANSACTION) from exc
        attempt.transaction = Transaction.model_validate(created)
        logger.info("Transaction %s created (id=%s, total=%s)", attempt.code, attempt.transaction.id, total)

    async def _create_items(self, attempt: _Attempt, lines: List[CartLine]) -> None:
        transaction_id = attempt.transaction.id
        items = [
            TransactionItem(
                transaction_id=transaction_id,
                product_id=line.product_id,
                quantity=line.quantity,
                price=line.sell_price,
                subtotal=line.subtotal,
            )
            for line in lines
        ]
        try:
            await self.backend.table("transaction_items").insert(
                [item.model_dump(exclude={"id"}) for item in items]
            ).execute()
        except (BackendError, httpx.HTTPError) as exc:
            raise RemoteWriteError("create transaction items", exc, step=STEP_ITEMS) from exc
        attempt.items_written = True
        attempt.transaction.items = items

    async def _decrement_stock(self, attempt: _Attempt, lines: List[CartLine]) -> None:
        for line in lines:
            if line.product_id in attempt.decremented:
                continue
            new_stock = line.stock - line.quantity
            try:
                await self.backend.table("products").update({"stock": new_stock}).eq("id", line.product_id).execute()
            except (BackendError, httpx.HTTPError) as exc:
                raise RemoteWriteError(f"update stock for {line.sku}", exc, step=STEP_STOCK) from exc
            attempt.decremented.add(line.product_id)
            logger.info("Stock for %s set to %d", line.sku, new_stock)

    def _attempt_for(self, lines: List[CartLine]) -> _Attempt:
        fingerprint = _fingerprint(lines)
        if self._pending is not None:
            if self._pending.fingerprint == fingerprint:
                logger.warning("Resuming checkout %s after earlier failure", self._pending.code)
                return self._pending
            logger.warning(
                "Cart changed since failed checkout %s; starting a new transaction",
                self._pending.code,
            )
            self._pending = None
        return _Attempt(fingerprint=fingerprint, code=new_transaction_code())

    async def checkout(self, payment: PaymentInfo) -> CheckoutResult:
        lines = self.cart.lines()
        if not lines:
            err = EmptyCartError()
            return CheckoutResult(ok=False, error=str(err), step=0, cause=err)

        total = self.cart.total()
        try:
            self._settle(payment, total)
        except PaymentValidationError as exc:
            return CheckoutResult(ok=False, error=str(exc), step=0, cause=exc)

        attempt = self._attempt_for(lines)
        try:
            if attempt.transaction is None:
                await self._create_transaction(attempt, payment, total)
            if not attempt.items_written:
                await self._create_items(attempt, lines)
            await self._decrement_stock(attempt, lines)
        except RemoteWriteError as exc:
            logger.error("Checkout %s failed at step %s: %s", attempt.code, exc.step, exc)
            # only keep attempts that left something committed
            self._pending = attempt if attempt.transaction is not None else None
            return CheckoutResult(
                ok=False,
                transaction=attempt.transaction,
                error=str(exc),
                step=exc.step,
                cause=exc.cause,
            )

        self._pending = None
        self.cart.clear()
        result = CheckoutResult(ok=True, transaction=attempt.transaction)
        try:
            await self.catalog.refresh()
        except RemoteReadError as exc:
            logger.warning("Checkout %s committed but catalog refresh failed: %s", attempt.code, exc)
            result.refresh_error = str(exc)
        logger.info("Checkout %s completed", attempt.code)
        return result
