"""
Inventory Module

Reservation of finite inventory (hotel rooms per night, train seats per stop
range) for settled orders.

Key Components:
- allocation_service.py: InventoryAllocator with reserve / release and the
  read-only availability queries
- router.py: FastAPI endpoints for hotel room and seat availability
- schemas.py: availability views
"""

from .allocation_service import InventoryAllocator, OccupancyHandle
from .schemas import HotelRoomStatus, SeatStatus

__all__ = [
    "InventoryAllocator",
    "OccupancyHandle",
    "HotelRoomStatus",
    "SeatStatus",
]
