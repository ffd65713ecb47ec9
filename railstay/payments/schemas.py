from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum

from railstay.orders.schemas import OrderInfo

class TransactionStatus(str, Enum):
    """Transaction status enumeration"""
    UNPAID = "unpaid"
    PAID = "paid"
    FAILED = "failed"

class TransactionKind(str, Enum):
    """What moved the money; the sign of the amount says which way"""
    PURCHASE = "purchase"
    RECHARGE = "recharge"
    REFUND = "refund"

class TransactionInfo(BaseModel):
    """Summary returned when a purchase is submitted"""
    transaction_id: str
    amount: Decimal
    status: TransactionStatus

class TransactionDetail(BaseModel):
    """Transaction with the orders it paid for"""
    transaction_id: str
    kind: TransactionKind
    amount: Decimal
    status: TransactionStatus
    atomic: bool
    refund_of: Optional[str] = None
    create_time: datetime
    finish_time: Optional[datetime] = None
    orders: List[OrderInfo] = []

class PayRequest(BaseModel):
    """Secondary authorization for a payment; one of the two is required"""
    user_password: Optional[str] = None
    payment_password: Optional[str] = None

class RechargeRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)

class PaymentPasswordRequest(BaseModel):
    user_password: str
    payment_password: str

class BalanceInfo(BaseModel):
    balance: Decimal

class MessageResponse(BaseModel):
    message: str
