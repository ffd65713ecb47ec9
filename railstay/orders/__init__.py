"""
Order Module

Orders are a tagged union: a common header (owner, traveler, status, price,
validity window) plus one payload per order type.

Key Components:
- schemas.py: order requests (discriminated on ``kind``), statuses and views
- order_service.py: order construction and validation, flat pricing, the
  order status state machine

Order lifecycle:
- unpaid -> paid -> active -> completed
- paid -> completed
- unpaid | paid -> cancelled
- paid -> failed -> refunded
"""

from .order_service import OrderFactory, transition, advance_by_window, order_total, to_order_info
from .schemas import (
    OrderType, OrderStatus, OrderRequest, OrderInfo,
    TrainOrderRequest, HotelOrderRequest, DishOrderRequest, TakeawayOrderRequest
)

__all__ = [
    "OrderFactory",
    "transition",
    "advance_by_window",
    "order_total",
    "to_order_info",
    "OrderType",
    "OrderStatus",
    "OrderRequest",
    "OrderInfo",
    "TrainOrderRequest",
    "HotelOrderRequest",
    "DishOrderRequest",
    "TakeawayOrderRequest",
]
