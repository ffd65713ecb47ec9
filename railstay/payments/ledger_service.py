from typing import Callable, List, Optional
from datetime import datetime, timedelta
from decimal import Decimal
from sqlalchemy import func
from sqlalchemy.orm import Session
import logging

from railstay.config import settings
from railstay.errors import (
    ValidationError, InvalidSessionError, InvalidTransactionStatusError,
    InsufficientFundsError, RefundError, NotFoundError, ConsistencyError
)
from railstay.models import new_uuid, User, Order, Transaction
from railstay.orders.schemas import OrderStatus
from railstay.orders.order_service import order_total, transition, parse_identifier, to_order_info
from railstay.inventory.allocation_service import InventoryAllocator
from railstay.payments.schemas import (
    TransactionStatus, TransactionKind, TransactionInfo, TransactionDetail
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

def to_money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENT)

def to_transaction_info(transaction: Transaction) -> TransactionInfo:
    return TransactionInfo(
        transaction_id=transaction.uuid,
        amount=to_money(transaction.amount),
        status=TransactionStatus(transaction.status)
    )

def to_transaction_detail(transaction: Transaction) -> TransactionDetail:
    return TransactionDetail(
        transaction_id=transaction.uuid,
        kind=TransactionKind(transaction.kind),
        amount=to_money(transaction.amount),
        status=TransactionStatus(transaction.status),
        atomic=transaction.atomic,
        refund_of=transaction.refund_of.uuid if transaction.refund_of else None,
        create_time=transaction.create_time,
        finish_time=transaction.finish_time,
        orders=[to_order_info(order) for order in transaction.orders]
    )


class TransactionLedger:
    """User balances as the sum of paid transactions.

    Purchases are debits (negative), recharges and refunds are credits
    (positive). A purchase only counts once it flips to paid, which happens
    after its orders have been allocated.
    """

    def __init__(self, db: Session, allocator: Optional[InventoryAllocator] = None):
        self.db = db
        self.allocator = allocator or InventoryAllocator(db)

    def get_transaction(self, transaction_uuid: str, user_id: int) -> Transaction:
        key = parse_identifier(transaction_uuid, "transaction_id")
        transaction = self.db.query(Transaction).filter(
            Transaction.uuid == key,
            Transaction.user_id == user_id
        ).first()
        if not transaction:
            raise NotFoundError("Transaction")
        return transaction

    def new_transaction(
        self,
        user_id: int,
        orders: List[Order],
        now: datetime,
        debit: bool = True,
        atomic: bool = True
    ) -> Transaction:
        """Open an unpaid transaction covering a group of unpaid orders"""
        for order in orders:
            if order.status != OrderStatus.UNPAID.value:
                raise ValidationError(f"Order {order.uuid} is already {order.status}")

        total = sum((order_total(order) for order in orders), Decimal("0.00"))
        transaction = Transaction(
            uuid=new_uuid(),
            user_id=user_id,
            kind=TransactionKind.PURCHASE.value,
            amount=-total if debit else total,
            status=TransactionStatus.UNPAID.value,
            atomic=atomic,
            create_time=now
        )
        for order in orders:
            order.pay_transaction = transaction

        self.db.add(transaction)
        self.db.add_all(orders)
        self.db.flush()
        return transaction

    def pay_transaction(
        self,
        user_id: int,
        transaction_uuid: str,
        allocate_group: Callable[[Transaction], List[Order]],
        now: datetime
    ) -> Transaction:
        """Capture an unpaid purchase.

        ``allocate_group`` reserves inventory for the transaction's orders and
        returns the orders that ended up held. The debit is captured for
        exactly those orders; an atomic group with any failure, or a group
        with nothing held, leaves the transaction failed and uncaptured.
        """
        user = self.db.query(User).filter(User.id == user_id).with_for_update().first()
        if not user:
            raise InvalidSessionError()

        transaction = self.get_transaction(transaction_uuid, user_id)
        if transaction.kind != TransactionKind.PURCHASE.value or transaction.status != TransactionStatus.UNPAID.value:
            raise InvalidTransactionStatusError(transaction.uuid, transaction.status, "payment")

        required = -to_money(transaction.amount) if transaction.amount < 0 else Decimal("0.00")
        available = self.balance(user_id)
        if available < required:
            raise InsufficientFundsError(transaction.uuid, available, required)

        orders = list(transaction.orders)
        held = allocate_group(transaction)

        if not held or (transaction.atomic and len(held) < len(orders)):
            transaction.status = TransactionStatus.FAILED.value
            transaction.finish_time = now
            logger.warning(
                "transaction %s failed: %d of %d order(s) allocated, nothing captured",
                transaction.uuid, len(held), len(orders)
            )
        else:
            if len(held) < len(orders):
                captured = sum((order_total(order) for order in held), Decimal("0.00"))
                transaction.amount = -captured if transaction.amount < 0 else captured
                logger.info(
                    "transaction %s partially allocated: %d of %d order(s), amount now %s",
                    transaction.uuid, len(held), len(orders), transaction.amount
                )
            transaction.status = TransactionStatus.PAID.value
            transaction.finish_time = now

        self.db.flush()
        return transaction

    def refund_transaction(
        self,
        user_id: int,
        original_uuid: str,
        orders: List[Order],
        now: datetime
    ) -> Transaction:
        """Refund settled orders of a paid purchase and release their inventory"""
        original = self.get_transaction(original_uuid, user_id)
        if original.kind != TransactionKind.PURCHASE.value:
            raise RefundError(f"A {original.kind} transaction cannot be refunded")
        if original.status != TransactionStatus.PAID.value:
            raise RefundError(f"Transaction {original.uuid} is not paid")
        if not orders:
            raise RefundError("No orders to refund")

        for order in orders:
            if order.pay_transaction_id != original.id:
                raise RefundError(f"Order {order.uuid} was not paid by transaction {original.uuid}")
            if order.status in (OrderStatus.ACTIVE.value, OrderStatus.COMPLETED.value):
                raise RefundError(f"Order {order.uuid} is already {order.status}")
            if order.status == OrderStatus.REFUNDED.value or order.refund_transaction_id is not None:
                raise RefundError(f"Order {order.uuid} is already refunded")
            if order.status != OrderStatus.PAID.value:
                raise RefundError(f"Order {order.uuid} is {order.status}")

        total = sum((order_total(order) for order in orders), Decimal("0.00"))
        refund = Transaction(
            uuid=new_uuid(),
            user_id=user_id,
            kind=TransactionKind.REFUND.value,
            amount=total if original.amount < 0 else -total,
            status=TransactionStatus.PAID.value,
            atomic=original.atomic,
            refund_of=original,
            create_time=now,
            finish_time=now
        )
        self.db.add(refund)

        for order in orders:
            self.allocator.release(self.allocator.handle_for(order))
            transition(order, OrderStatus.FAILED)
            transition(order, OrderStatus.REFUNDED)
            order.refund_transaction = refund

        self.db.flush()
        logger.info("refunded %s to user %s for %d order(s) of %s", total, user_id, len(orders), original.uuid)
        return refund

    def record_compensation(self, original: Transaction, orders: List[Order], now: datetime) -> Optional[Transaction]:
        """Write the refund row for orders compensated during settlement.

        Their debit was never captured, so the refund credits 0.00 and links
        each refunded order to its refunding transaction.
        """
        if not orders:
            return None

        for order in orders:
            if order.status != OrderStatus.REFUNDED.value or order.refund_transaction_id is not None:
                raise ConsistencyError(f"Order {order.uuid} is not awaiting a refund record ({order.status})")

        refund = Transaction(
            uuid=new_uuid(),
            user_id=original.user_id,
            kind=TransactionKind.REFUND.value,
            amount=Decimal("0.00"),
            status=TransactionStatus.PAID.value,
            atomic=original.atomic,
            refund_of=original,
            create_time=now,
            finish_time=now
        )
        self.db.add(refund)
        for order in orders:
            order.refund_transaction = refund

        self.db.flush()
        logger.info("recorded compensation refund %s for %d order(s) of %s", refund.uuid, len(orders), original.uuid)
        return refund

    def is_expired(self, transaction: Transaction, now: datetime) -> bool:
        """Whether an unpaid purchase has outlived the payment timeout"""
        cutoff = now - timedelta(minutes=settings.UNPAID_TRANSACTION_TIMEOUT_MINUTES)
        return (
            transaction.kind == TransactionKind.PURCHASE.value
            and transaction.status == TransactionStatus.UNPAID.value
            and transaction.create_time < cutoff
        )

    def expire_transaction(self, transaction: Transaction, now: datetime) -> None:
        """Fail an unpaid purchase and cancel its orders"""
        if transaction.status != TransactionStatus.UNPAID.value:
            raise InvalidTransactionStatusError(transaction.uuid, transaction.status, "expiry")

        transaction.status = TransactionStatus.FAILED.value
        transaction.finish_time = now
        for order in transaction.orders:
            transition(order, OrderStatus.CANCELLED)
        self.db.flush()

    def recharge(self, user_id: int, amount: Decimal, now: datetime) -> Transaction:
        """Credit the user's balance"""
        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError("Recharge amount must be positive")

        transaction = Transaction(
            uuid=new_uuid(),
            user_id=user_id,
            kind=TransactionKind.RECHARGE.value,
            amount=amount,
            status=TransactionStatus.PAID.value,
            atomic=True,
            create_time=now,
            finish_time=now
        )
        self.db.add(transaction)
        self.db.flush()
        logger.info("recharged %s for user %s", amount, user_id)
        return transaction

    def balance(self, user_id: int) -> Decimal:
        """Sum of the user's paid transactions"""
        total = self.db.query(func.sum(Transaction.amount)).filter(
            Transaction.user_id == user_id,
            Transaction.status == TransactionStatus.PAID.value
        ).scalar()
        return to_money(total)

    def history(self, user_id: int) -> List[Transaction]:
        """Transactions newest first"""
        return self.db.query(Transaction).filter(
            Transaction.user_id == user_id
        ).order_by(Transaction.create_time.desc(), Transaction.id.desc()).all()
