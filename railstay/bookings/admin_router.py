from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from railstay.database import get_db
from railstay.errors import DomainError
from railstay.http_errors import http_exception
from railstay.auth.dependencies import get_current_admin_user
from railstay.bookings.booking_service import BookingService
from railstay.bookings.schemas import SweepResult
from railstay.payments.guard_service import PaymentPasswordGuard
from railstay.payments.schemas import MessageResponse

router = APIRouter()

# Administrative Endpoints
@router.post("/cleanup-expired", response_model=SweepResult)
def cleanup_expired_transactions(admin_user = Depends(get_current_admin_user), db: Session = Depends(get_db)):
    """Fail unpaid purchases past the payment timeout (admin task)"""
    expired = BookingService(db).process_expired_transactions()
    return SweepResult(message="Cleanup completed", processed=expired)

@router.post("/advance-orders", response_model=SweepResult)
def advance_orders(admin_user = Depends(get_current_admin_user), db: Session = Depends(get_db)):
    """Move settled orders to active or completed (admin task)"""
    advanced = BookingService(db).advance_order_statuses()
    return SweepResult(message="Order statuses advanced", processed=advanced)

@router.post("/users/{user_id}/reset-payment-attempts", response_model=MessageResponse)
def reset_payment_attempts(
    user_id: int,
    admin_user = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """Unlock a user's payments after too many wrong payment passwords"""
    try:
        PaymentPasswordGuard(db).reset_attempts(user_id)
        return MessageResponse(message="Payment password attempts reset")
    except DomainError as e:
        raise http_exception(e)
