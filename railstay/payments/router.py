from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from railstay.database import get_db
from railstay.context import RequestContext
from railstay.errors import DomainError
from railstay.http_errors import http_exception
from railstay.auth.dependencies import get_current_user
from railstay.bookings.booking_service import BookingService
from railstay.bookings.schemas import SettlementResult
from railstay.payments.schemas import (
    PayRequest, RechargeRequest, PaymentPasswordRequest, BalanceInfo,
    TransactionInfo, TransactionDetail, MessageResponse
)
from railstay.payments.guard_service import PaymentPasswordGuard
from railstay.payments.ledger_service import TransactionLedger, to_transaction_info, to_transaction_detail

router = APIRouter()

@router.post("/pay/{transaction_id}", response_model=SettlementResult)
def pay(
    transaction_id: str,
    credentials: PayRequest,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Authorize and settle a submitted transaction"""
    try:
        PaymentPasswordGuard(db).authorize(
            current_user,
            user_password=credentials.user_password,
            payment_password=credentials.payment_password
        )
        return BookingService(db).settle(RequestContext(user_id=current_user.id), transaction_id)
    except DomainError as e:
        raise http_exception(e)

@router.post("/recharge", response_model=TransactionInfo)
def recharge(
    request: RechargeRequest,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Add money to the current user's balance"""
    ctx = RequestContext(user_id=current_user.id)
    try:
        transaction = TransactionLedger(db).recharge(ctx.user_id, request.amount, ctx.now())
        db.commit()
        return to_transaction_info(transaction)
    except DomainError as e:
        db.rollback()
        raise http_exception(e)

@router.get("/balance", response_model=BalanceInfo)
def get_balance(current_user = Depends(get_current_user), db: Session = Depends(get_db)):
    """Current balance: the sum of paid transactions"""
    return BalanceInfo(balance=TransactionLedger(db).balance(current_user.id))

@router.get("/transactions", response_model=List[TransactionDetail])
def transaction_history(current_user = Depends(get_current_user), db: Session = Depends(get_db)):
    """All transactions of the current user, newest first"""
    transactions = TransactionLedger(db).history(current_user.id)
    return [to_transaction_detail(transaction) for transaction in transactions]

@router.post("/payment-password", response_model=MessageResponse)
def set_payment_password(
    request: PaymentPasswordRequest,
    current_user = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Set or replace the payment password"""
    try:
        PaymentPasswordGuard(db).set_payment_password(
            current_user, request.user_password, request.payment_password
        )
        return MessageResponse(message="Payment password updated")
    except DomainError as e:
        raise http_exception(e)
