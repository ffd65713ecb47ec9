"""
Booking Module

Orchestrates a purchase from submission to settlement:

- submit: validate and price a group of orders, open an unpaid transaction
- settle: pay the transaction, reserve inventory order by order, compensate
  on failure (all-or-nothing for atomic groups)
- cancel: refund a paid order and free its inventory
- sweeps: expire unpaid transactions, advance orders through their windows

Key Components:
- booking_service.py: BookingService
- router.py: FastAPI endpoints under /orders
- admin_router.py: sweep and unlock endpoints under /admin
- schemas.py: submission and settlement models
"""

from .booking_service import BookingService
from .schemas import SubmitOrdersRequest, SettlementResult, OrderOutcome

__all__ = [
    "BookingService",
    "SubmitOrdersRequest",
    "SettlementResult",
    "OrderOutcome",
]
