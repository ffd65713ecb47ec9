from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List
from railstay.database import get_db
from railstay.context import RequestContext
from railstay.errors import DomainError
from railstay.http_errors import http_exception
from railstay.auth.dependencies import get_request_context
from railstay.bookings.schemas import SubmitOrdersRequest
from railstay.bookings.booking_service import BookingService
from railstay.orders.schemas import OrderCancelRequest, OrderCancelResponse
from railstay.payments.schemas import TransactionInfo, TransactionDetail
from railstay.payments.ledger_service import to_transaction_detail

router = APIRouter()

@router.post("/submit", response_model=TransactionInfo, status_code=status.HTTP_201_CREATED)
def submit_orders(
    request: SubmitOrdersRequest,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    """Validate a group of orders and open an unpaid transaction for it"""
    try:
        return BookingService(db).submit(ctx, request.orders, atomic=request.atomic)
    except DomainError as e:
        raise http_exception(e)

@router.get("/list", response_model=List[TransactionDetail])
def list_orders(
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    """Transactions of the current user with their orders, newest first"""
    try:
        transactions = BookingService(db).list_transactions(ctx)
        return [to_transaction_detail(transaction) for transaction in transactions]
    except DomainError as e:
        raise http_exception(e)

@router.post("/cancel", response_model=OrderCancelResponse)
def cancel_order(
    request: OrderCancelRequest,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    """Cancel a paid order and refund it to the balance"""
    try:
        return BookingService(db).cancel_order(ctx, request.order_id)
    except DomainError as e:
        raise http_exception(e)
