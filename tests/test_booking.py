from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from conftest import DEPARTURE_DATE, NOW, create_user
from railstay.context import RequestContext
from railstay.errors import (
    CapacityExceededError, EmptyOrderListError, InsufficientFundsError, InvalidSessionError,
    InvalidTransactionStatusError, NotFoundError, RefundError, ResourceNotFoundError, TransactionExpiredError,
    UnknownResourceError
)
from railstay.models import OccupiedRoom, OccupiedSeat, Order, Transaction
from railstay.orders.schemas import OrderStatus
from railstay.payments.schemas import TransactionKind, TransactionStatus


def statuses(transaction):
    return [order.status for order in sorted(transaction.orders, key=lambda order: order.id)]


def test_submit_opens_unpaid_transaction_without_touching_inventory(db, booking, ctx, make_train, make_hotel, make_dish):
    info = booking.submit(ctx, [make_train(), make_hotel(nights=2), make_dish(train_order_index=0)])

    assert info.status == TransactionStatus.UNPAID
    assert info.amount == Decimal("-245.00")
    transaction = db.query(Transaction).filter(Transaction.uuid == info.transaction_id).one()
    assert statuses(transaction) == ["unpaid"] * 3
    assert db.query(OccupiedRoom).count() == 0
    assert db.query(OccupiedSeat).count() == 0


def test_submit_rejects_empty_list(booking, ctx):
    with pytest.raises(EmptyOrderListError):
        booking.submit(ctx, [])


def test_submit_requires_known_user(booking, ref, make_train):
    with pytest.raises(InvalidSessionError):
        booking.submit(RequestContext(user_id=9999, clock=lambda: NOW), [make_train()])


def test_submit_persists_nothing_when_any_request_is_invalid(db, booking, ctx, make_train, make_hotel):
    bad = make_hotel()
    bad.room_type_id = "00000000-0000-0000-0000-000000000000"

    with pytest.raises(UnknownResourceError):
        booking.submit(ctx, [make_train(), bad])

    assert db.query(Order).count() == 0
    assert db.query(Transaction).count() == 0


def test_settle_reserves_and_captures(db, booking, ledger, ctx, user, fund, submitted, make_train, make_dish):
    fund(user, "100.00")
    transaction = submitted([make_train(), make_dish(train_order_index=0)])

    result = booking.settle(ctx, transaction.uuid)

    assert result.status == TransactionStatus.PAID
    assert result.amount == Decimal("-85.00")
    assert [outcome.status for outcome in result.outcomes] == [OrderStatus.PAID, OrderStatus.PAID]
    assert all(outcome.error_code is None for outcome in result.outcomes)
    assert db.query(OccupiedSeat).count() == 1
    assert ledger.balance(user.id) == Decimal("15.00")


def test_settle_insufficient_funds_changes_nothing(db, booking, ledger, ctx, user, fund, submitted, make_train):
    fund(user, "10.00")
    transaction = submitted([make_train()])

    with pytest.raises(InsufficientFundsError):
        booking.settle(ctx, transaction.uuid)

    db.expire_all()
    assert transaction.status == TransactionStatus.UNPAID.value
    assert statuses(transaction) == ["unpaid"]
    assert db.query(OccupiedSeat).count() == 0


def test_settle_twice_rejected(booking, ctx, user, fund, submitted, make_train):
    fund(user, "100.00")
    transaction = submitted([make_train()])
    booking.settle(ctx, transaction.uuid)

    with pytest.raises(InvalidTransactionStatusError):
        booking.settle(ctx, transaction.uuid)


def test_atomic_group_rolls_back_on_full_hotel(db, booking, ledger, ctx, user, fund, submitted, make_train, make_hotel):
    other, other_traveler = create_user(db, "bob")
    other_ctx = RequestContext(user_id=other.id, clock=lambda: NOW)
    fund(other, "500.00")
    held = submitted([make_hotel(begin=DEPARTURE_DATE, nights=2, info=other_traveler)], context=other_ctx)
    booking.settle(other_ctx, held.uuid)

    fund(user, "500.00")
    transaction = submitted([make_train(), make_hotel(begin=DEPARTURE_DATE + timedelta(days=1), nights=2)])

    with pytest.raises(CapacityExceededError):
        booking.settle(ctx, transaction.uuid)

    db.expire_all()
    assert transaction.status == TransactionStatus.FAILED.value
    assert statuses(transaction) == ["refunded", "refunded"]
    assert db.query(OccupiedSeat).count() == 0
    assert db.query(OccupiedRoom).count() == 1
    assert ledger.balance(user.id) == Decimal("500.00")


def test_atomic_group_releases_seats_when_dish_fails(db, booking, ledger, ctx, user, fund, submitted, make_train, make_dish):
    fund(user, "500.00")
    transaction = submitted([make_train(), make_train(), make_dish(dish="curry", train_order_index=0)])

    with pytest.raises(ResourceNotFoundError):
        booking.settle(ctx, transaction.uuid)

    db.expire_all()
    assert transaction.status == TransactionStatus.FAILED.value
    assert statuses(transaction) == ["refunded"] * 3
    assert db.query(OccupiedSeat).count() == 0
    assert ledger.balance(user.id) == Decimal("500.00")


def test_compensated_orders_link_to_refund_record(db, booking, ledger, ctx, user, fund, submitted, make_train, make_dish):
    fund(user, "500.00")
    transaction = submitted([make_train(), make_train(), make_dish(dish="curry", train_order_index=0)])

    with pytest.raises(ResourceNotFoundError):
        booking.settle(ctx, transaction.uuid)

    db.expire_all()
    refunds = db.query(Transaction).filter(Transaction.kind == TransactionKind.REFUND.value).all()
    assert len(refunds) == 1
    refund = refunds[0]
    assert refund.refund_of_id == transaction.id
    assert refund.amount == Decimal("0.00")
    assert refund.status == TransactionStatus.PAID.value
    assert {order.refund_transaction_id for order in transaction.orders} == {refund.id}
    assert [order.train_detail.seat_id for order in transaction.orders if order.train_detail] == [None, None]
    assert ledger.balance(user.id) == Decimal("500.00")


def test_non_atomic_group_captures_successes_only(db, booking, ledger, ctx, user, fund, submitted, make_train, make_dish):
    fund(user, "500.00")
    transaction = submitted(
        [make_train(), make_dish(dish="curry", train_order_index=0), make_dish(train_order_index=0)],
        atomic=False
    )

    result = booking.settle(ctx, transaction.uuid)

    assert result.status == TransactionStatus.PAID
    assert result.amount == Decimal("-85.00")
    by_status = {outcome.status: outcome for outcome in result.outcomes}
    assert set(by_status) == {OrderStatus.PAID, OrderStatus.REFUNDED}
    assert by_status[OrderStatus.REFUNDED].error_code == "RESOURCE_NOT_FOUND"
    refunded = db.query(Order).filter(Order.uuid == by_status[OrderStatus.REFUNDED].order_id).one()
    assert refunded.refund_transaction.amount == Decimal("0.00")
    assert refunded.refund_transaction.refund_of_id == transaction.id
    assert ledger.balance(user.id) == Decimal("415.00")


def test_non_atomic_group_with_nothing_held_fails(db, booking, ledger, ctx, user, fund, submitted, make_train):
    fund(user, "500.00")
    blocker = submitted([make_train(seat_type="first_class", amount=2)])
    booking.settle(ctx, blocker.uuid)

    transaction = submitted([make_train(seat_type="first_class")], atomic=False)
    result = booking.settle(ctx, transaction.uuid)

    assert result.status == TransactionStatus.FAILED
    assert result.outcomes[0].error_code == "CAPACITY_EXCEEDED"
    assert ledger.balance(user.id) == Decimal("260.00")


def test_cancel_order_refunds_and_frees_seat(db, booking, ledger, ctx, user, fund, submitted, make_train):
    fund(user, "100.00")
    transaction = submitted([make_train()])
    booking.settle(ctx, transaction.uuid)
    order = transaction.orders[0]

    response = booking.cancel_order(ctx, order.uuid)

    assert response.status == OrderStatus.REFUNDED
    assert response.refunded_amount == Decimal("60.00")
    assert db.query(OccupiedSeat).count() == 0
    assert order.train_detail.seat_id is None
    assert ledger.balance(user.id) == Decimal("100.00")
    refund = db.query(Transaction).filter(Transaction.uuid == response.refund_transaction_id).one()
    assert refund.kind == TransactionKind.REFUND.value

    with pytest.raises(RefundError):
        booking.cancel_order(ctx, order.uuid)


def test_cancel_order_of_unpaid_transaction_rejected(booking, ctx, submitted, make_train):
    transaction = submitted([make_train()])

    with pytest.raises(RefundError):
        booking.cancel_order(ctx, transaction.orders[0].uuid)


def test_cancel_order_of_other_user_not_found(db, booking, user, fund, submitted, make_train):
    other, _ = create_user(db, "carol")
    fund(user, "100.00")
    order = submitted([make_train()]).orders[0]

    with pytest.raises(NotFoundError):
        booking.cancel_order(RequestContext(user_id=other.id, clock=lambda: NOW), order.uuid)


def test_expired_transactions_are_failed_and_orders_cancelled(db, booking, ctx, user, fund, submitted, make_train):
    fund(user, "100.00")
    transaction = submitted([make_train()])

    assert booking.process_expired_transactions(NOW + timedelta(minutes=5)) == 0
    assert booking.process_expired_transactions(NOW + timedelta(minutes=31)) == 1

    db.expire_all()
    assert transaction.status == TransactionStatus.FAILED.value
    assert statuses(transaction) == ["cancelled"]
    with pytest.raises(InvalidTransactionStatusError):
        booking.settle(ctx, transaction.uuid)


def test_settle_expires_transaction_past_payment_timeout(db, booking, ledger, user, fund, submitted, make_train):
    fund(user, "100.00")
    transaction = submitted([make_train()])
    late = RequestContext(user_id=user.id, clock=lambda: NOW + timedelta(minutes=31))

    with pytest.raises(TransactionExpiredError):
        booking.settle(late, transaction.uuid)

    db.expire_all()
    assert transaction.status == TransactionStatus.FAILED.value
    assert statuses(transaction) == ["cancelled"]
    assert db.query(OccupiedSeat).count() == 0
    assert ledger.balance(user.id) == Decimal("100.00")


def test_advance_order_statuses(db, booking, ctx, user, fund, submitted, make_train, make_dish):
    fund(user, "100.00")
    transaction = submitted([make_train(), make_dish(train_order_index=0)])
    booking.settle(ctx, transaction.uuid)

    assert booking.advance_order_statuses(datetime(2030, 1, 2, 9, 0)) == 2
    db.expire_all()
    assert statuses(transaction) == ["active", "active"]

    assert booking.advance_order_statuses(datetime(2030, 1, 2, 15, 0)) == 2
    db.expire_all()
    assert statuses(transaction) == ["completed", "completed"]
