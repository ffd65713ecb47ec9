from decimal import Decimal

import pytest

from conftest import NOW
from railstay.errors import (
    InsufficientFundsError, InvalidTransactionStatusError, NotFoundError, RefundError, ValidationError
)
from railstay.models import OccupiedSeat, Transaction
from railstay.orders.schemas import OrderStatus
from railstay.payments.schemas import TransactionKind, TransactionStatus


def allocate_all(allocator):
    def _allocate(transaction):
        for order in transaction.orders:
            order.status = OrderStatus.PAID.value
            allocator.reserve(order)
        return list(transaction.orders)
    return _allocate


def test_balance_counts_only_paid_transactions(db, ledger, user, fund, submitted, make_train):
    fund(user, "100.00")
    transaction = submitted([make_train()])

    assert transaction.status == TransactionStatus.UNPAID.value
    assert transaction.amount == Decimal("-60.00")
    assert ledger.balance(user.id) == Decimal("100.00")


def test_pay_captures_debit(db, ledger, user, fund, submitted, make_train):
    fund(user, "200.00")
    transaction = submitted([make_train(), make_train(seat_type="first_class")])

    paid = ledger.pay_transaction(user.id, transaction.uuid, allocate_all(ledger.allocator), NOW)
    db.commit()

    assert paid.status == TransactionStatus.PAID.value
    assert paid.finish_time == NOW
    assert paid.amount == Decimal("-180.00")
    assert ledger.balance(user.id) == Decimal("20.00")


def test_pay_requires_funds(db, ledger, user, fund, submitted, make_train):
    fund(user, "50.00")
    transaction = submitted([make_train()])
    calls = []

    with pytest.raises(InsufficientFundsError):
        ledger.pay_transaction(user.id, transaction.uuid, lambda tx: calls.append(tx) or [], NOW)

    assert calls == []
    assert transaction.status == TransactionStatus.UNPAID.value


def test_pay_rejects_settled_transaction(db, ledger, user, fund, submitted, make_train):
    fund(user, "100.00")
    transaction = submitted([make_train()])
    ledger.pay_transaction(user.id, transaction.uuid, allocate_all(ledger.allocator), NOW)
    db.commit()

    with pytest.raises(InvalidTransactionStatusError):
        ledger.pay_transaction(user.id, transaction.uuid, allocate_all(ledger.allocator), NOW)


def test_pay_unknown_transaction(ledger, user):
    with pytest.raises(NotFoundError):
        ledger.pay_transaction(user.id, "00000000-0000-0000-0000-000000000000", lambda tx: [], NOW)


def test_atomic_failure_captures_nothing(db, ledger, user, fund, submitted, make_train):
    fund(user, "200.00")
    transaction = submitted([make_train(), make_train()])

    failed = ledger.pay_transaction(user.id, transaction.uuid, lambda tx: tx.orders[:1], NOW)
    db.commit()

    assert failed.status == TransactionStatus.FAILED.value
    assert failed.amount == Decimal("-120.00")
    assert ledger.balance(user.id) == Decimal("200.00")


def test_partial_success_rewrites_amount(db, ledger, user, fund, submitted, make_train):
    fund(user, "200.00")
    transaction = submitted([make_train(), make_train(seat_type="first_class")], atomic=False)
    cheap = min(transaction.orders, key=lambda order: order.unit_price)

    paid = ledger.pay_transaction(user.id, transaction.uuid, lambda tx: [cheap], NOW)
    db.commit()

    assert paid.status == TransactionStatus.PAID.value
    assert paid.amount == Decimal("-60.00")
    assert ledger.balance(user.id) == Decimal("140.00")


def test_refund_credits_and_releases(db, ledger, user, fund, submitted, make_train):
    fund(user, "200.00")
    transaction = submitted([make_train(amount=2)])
    ledger.pay_transaction(user.id, transaction.uuid, allocate_all(ledger.allocator), NOW)
    db.commit()
    order = transaction.orders[0]

    refund = ledger.refund_transaction(user.id, transaction.uuid, [order], NOW)
    db.commit()

    assert refund.kind == TransactionKind.REFUND.value
    assert refund.status == TransactionStatus.PAID.value
    assert refund.amount == Decimal("120.00")
    assert refund.refund_of.uuid == transaction.uuid
    assert order.status == OrderStatus.REFUNDED.value
    assert order.refund_transaction_id == refund.id
    assert db.query(OccupiedSeat).count() == 0
    assert ledger.balance(user.id) == Decimal("200.00")


def test_refund_never_references_unpaid_transaction(ledger, user, submitted, make_train):
    transaction = submitted([make_train()])

    with pytest.raises(RefundError):
        ledger.refund_transaction(user.id, transaction.uuid, list(transaction.orders), NOW)


def test_recharge_cannot_be_refunded(db, ledger, user):
    recharge = ledger.recharge(user.id, Decimal("10.00"), NOW)
    db.commit()

    with pytest.raises(RefundError):
        ledger.refund_transaction(user.id, recharge.uuid, [], NOW)


def test_refund_rejects_fulfilled_and_refunded_orders(db, ledger, user, fund, submitted, make_train):
    fund(user, "200.00")
    transaction = submitted([make_train(), make_train()])
    ledger.pay_transaction(user.id, transaction.uuid, allocate_all(ledger.allocator), NOW)
    db.commit()
    active, refundable = transaction.orders

    active.status = OrderStatus.ACTIVE.value
    db.commit()
    with pytest.raises(RefundError):
        ledger.refund_transaction(user.id, transaction.uuid, [active], NOW)

    ledger.refund_transaction(user.id, transaction.uuid, [refundable], NOW)
    db.commit()
    with pytest.raises(RefundError):
        ledger.refund_transaction(user.id, transaction.uuid, [refundable], NOW)


def test_recharge_must_be_positive(ledger, user):
    with pytest.raises(ValidationError):
        ledger.recharge(user.id, Decimal("0"), NOW)
    with pytest.raises(ValidationError):
        ledger.recharge(user.id, Decimal("-5"), NOW)


def test_history_newest_first(db, ledger, user, submitted, make_train):
    ledger.recharge(user.id, Decimal("10.00"), NOW)
    db.commit()
    purchase = submitted([make_train()])

    history = ledger.history(user.id)

    assert [tx.kind for tx in history] == [TransactionKind.PURCHASE.value, TransactionKind.RECHARGE.value]
    assert history[0].uuid == purchase.uuid
    assert db.query(Transaction).count() == 2
