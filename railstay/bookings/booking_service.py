from typing import List, Dict, Optional
from datetime import datetime, timedelta
from sqlalchemy.orm import Session
import logging

from railstay.config import settings
from railstay.context import RequestContext
from railstay.errors import (
    AllocationError, ConsistencyError, EmptyOrderListError, InvalidSessionError, NotFoundError,
    TransactionExpiredError
)
from railstay.models import User, Order, Transaction
from railstay.orders.schemas import OrderType, OrderStatus, OrderCancelResponse
from railstay.orders.order_service import (
    OrderFactory, transition, advance_by_window, resource_key, parse_identifier, order_total
)
from railstay.inventory.allocation_service import InventoryAllocator
from railstay.payments.schemas import TransactionInfo, TransactionStatus, TransactionKind
from railstay.payments.ledger_service import TransactionLedger, to_transaction_info, to_money
from railstay.bookings.schemas import OrderOutcome, SettlementResult

logger = logging.getLogger(__name__)

class BookingService:
    """Turns purchase requests into paid, allocated orders.

    ``submit`` only builds orders and opens an unpaid transaction. Inventory
    is reserved in ``settle``, inside the payment, one database transaction
    per settlement.
    """

    def __init__(self, db: Session):
        self.db = db
        self.allocator = InventoryAllocator(db)
        self.ledger = TransactionLedger(db, self.allocator)
        self.factory = OrderFactory(db)

    def _require_user(self, ctx: RequestContext) -> User:
        user = self.db.get(User, ctx.user_id)
        if not user:
            raise InvalidSessionError()
        return user

    def submit(self, ctx: RequestContext, requests: List, atomic: bool = True) -> TransactionInfo:
        """Validate and price a group of order requests and open its transaction"""
        self._require_user(ctx)
        if not requests:
            raise EmptyOrderListError()

        orders: List[Order] = []
        for request in requests:
            orders.append(self.factory.build(ctx, request, orders))

        try:
            transaction = self.ledger.new_transaction(ctx.user_id, orders, now=ctx.now(), atomic=atomic)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "user %s submitted %d order(s) as transaction %s (%s, atomic=%s)",
            ctx.user_id, len(orders), transaction.uuid, transaction.amount, atomic
        )
        return to_transaction_info(transaction)

    def settle(self, ctx: RequestContext, transaction_uuid: str) -> SettlementResult:
        """Pay a submitted transaction and reserve inventory for its orders.

        In an atomic group the first allocation failure releases everything
        already held and refunds every order of the group. The transaction
        is recorded as failed and the allocation error re-raised. Refunded
        orders are linked to a zero-amount refund transaction.
        """
        self._require_user(ctx)
        self._reject_expired(ctx, transaction_uuid)
        errors: Dict[int, AllocationError] = {}
        group_failure: List[AllocationError] = []

        def allocate_group(transaction: Transaction) -> List[Order]:
            orders = sorted(transaction.orders, key=resource_key)
            for order in orders:
                if order.status != OrderStatus.UNPAID.value:
                    raise ConsistencyError(
                        f"Order {order.uuid} of unpaid transaction {transaction.uuid} is {order.status}"
                    )
                transition(order, OrderStatus.PAID)
            self.db.flush()

            held: List[tuple] = []
            for order in orders:
                try:
                    handle = self.allocator.reserve(order)
                except AllocationError as e:
                    errors[order.id] = e
                    logger.warning("allocation failed for order %s: %s", order.uuid, e)
                    if transaction.atomic:
                        group_failure.append(e)
                        self._compensate(orders, held)
                        return []
                    self._refund_unallocated(order)
                    continue
                held.append((order, handle))
            return [order for order, _ in held]

        try:
            transaction = self.ledger.pay_transaction(ctx.user_id, transaction_uuid, allocate_group, ctx.now())
            compensated = [
                order for order in transaction.orders
                if order.status == OrderStatus.REFUNDED.value and order.refund_transaction_id is None
            ]
            self.ledger.record_compensation(transaction, compensated, ctx.now())
            if transaction.status == TransactionStatus.PAID.value:
                for order in transaction.orders:
                    advance_by_window(order, ctx.now())
            self.db.commit()
        except ConsistencyError as e:
            self.db.rollback()
            logger.error("settlement of %s aborted: %s", transaction_uuid, e.message)
            raise
        except Exception:
            self.db.rollback()
            raise

        if group_failure:
            raise group_failure[0]

        outcomes = []
        for order in transaction.orders:
            error = errors.get(order.id)
            outcomes.append(OrderOutcome(
                order_id=order.uuid,
                order_type=OrderType(order.order_type),
                status=OrderStatus(order.status),
                error_code=error.code.value if error else None,
                error_message=error.message if error else None
            ))

        logger.info("transaction %s settled as %s", transaction.uuid, transaction.status)
        return SettlementResult(
            transaction_id=transaction.uuid,
            status=TransactionStatus(transaction.status),
            amount=to_money(transaction.amount),
            atomic=transaction.atomic,
            outcomes=outcomes
        )

    def _reject_expired(self, ctx: RequestContext, transaction_uuid: str) -> None:
        """Expire an unpaid purchase past the payment timeout instead of paying it"""
        transaction = self.ledger.get_transaction(transaction_uuid, ctx.user_id)
        if not self.ledger.is_expired(transaction, ctx.now()):
            return

        try:
            self.ledger.expire_transaction(transaction, ctx.now())
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("transaction %s expired before payment", transaction.uuid)
        raise TransactionExpiredError(transaction.uuid, settings.UNPAID_TRANSACTION_TIMEOUT_MINUTES)

    def _compensate(self, orders: List[Order], held: List[tuple]) -> None:
        """Undo an atomic group: release every handle, refund every order"""
        for order, handle in held:
            self.allocator.release(handle)
        for order in orders:
            self._refund_unallocated(order)
        logger.warning("compensated %d order(s), released %d handle(s)", len(orders), len(held))

    def _refund_unallocated(self, order: Order) -> None:
        transition(order, OrderStatus.FAILED)
        transition(order, OrderStatus.REFUNDED)

    def cancel_order(self, ctx: RequestContext, order_uuid: str) -> OrderCancelResponse:
        """User cancellation of a paid order: refund it and free its inventory"""
        self._require_user(ctx)
        key = parse_identifier(order_uuid, "order_id")
        order = self.db.query(Order).filter(Order.uuid == key, Order.user_id == ctx.user_id).first()
        if not order:
            raise NotFoundError("Order")
        if order.pay_transaction is None:
            raise NotFoundError("Transaction")

        try:
            refund = self.ledger.refund_transaction(ctx.user_id, order.pay_transaction.uuid, [order], ctx.now())
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("order %s cancelled by user %s", order.uuid, ctx.user_id)
        return OrderCancelResponse(
            order_id=order.uuid,
            status=OrderStatus(order.status),
            refund_transaction_id=refund.uuid,
            refunded_amount=order_total(order)
        )

    def list_transactions(self, ctx: RequestContext) -> List[Transaction]:
        self._require_user(ctx)
        return self.ledger.history(ctx.user_id)

    def process_expired_transactions(self, now: Optional[datetime] = None) -> int:
        """Fail unpaid purchases left past the payment timeout and cancel their orders"""
        now = now or datetime.now()
        cutoff = now - timedelta(minutes=settings.UNPAID_TRANSACTION_TIMEOUT_MINUTES)

        expired = self.db.query(Transaction).filter(
            Transaction.kind == TransactionKind.PURCHASE.value,
            Transaction.status == TransactionStatus.UNPAID.value,
            Transaction.create_time < cutoff
        ).all()

        for transaction in expired:
            self.ledger.expire_transaction(transaction, now)
        self.db.commit()

        if expired:
            logger.info("expired %d unpaid transaction(s)", len(expired))
        return len(expired)

    def advance_order_statuses(self, now: Optional[datetime] = None) -> int:
        """Move settled orders to active or completed as their windows pass"""
        now = now or datetime.now()
        orders = self.db.query(Order).filter(
            Order.status.in_([OrderStatus.PAID.value, OrderStatus.ACTIVE.value]),
            Order.active_time <= now
        ).all()

        advanced = sum(1 for order in orders if advance_by_window(order, now))
        self.db.commit()
        return advanced
