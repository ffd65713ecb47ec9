from typing import List, Optional, Dict, Any
from datetime import datetime, time
from decimal import Decimal
from sqlalchemy.orm import Session
import uuid
import logging

from railstay.config import settings
from railstay.context import RequestContext
from railstay.errors import (
    ValidationError, InvalidDateRangeError, UnknownResourceError,
    MalformedIdentifierError, InvalidOrderStatusError
)
from railstay.models import (
    new_uuid, Order, TrainOrderDetail, HotelOrderDetail, DishOrderDetail, TakeawayOrderDetail,
    PersonalInfo, TrainSchedule, ScheduleStop, SeatType, Seat, Station,
    Hotel, HotelRoomType, Dish, TakeawayDish, TakeawayShop
)
from railstay.orders.schemas import (
    OrderType, OrderStatus, OrderInfo,
    TrainOrderRequest, HotelOrderRequest, DishOrderRequest, TakeawayOrderRequest
)

logger = logging.getLogger(__name__)

# Allowed order status transitions; completed, refunded and cancelled are terminal
ORDER_TRANSITIONS = {
    OrderStatus.UNPAID: {OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.ACTIVE, OrderStatus.COMPLETED, OrderStatus.FAILED, OrderStatus.CANCELLED},
    OrderStatus.ACTIVE: {OrderStatus.COMPLETED},
    OrderStatus.FAILED: {OrderStatus.REFUNDED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.REFUNDED: set(),
    OrderStatus.CANCELLED: set(),
}

# Train orders a dish or takeaway item may still attach to
LIVE_PARENT_STATUSES = {OrderStatus.UNPAID, OrderStatus.PAID, OrderStatus.ACTIVE}

# Reservation order within a settlement group: seats before the items that depend on them
RESOURCE_RANK = {
    OrderType.TRAIN.value: 0,
    OrderType.HOTEL.value: 1,
    OrderType.DISH.value: 2,
    OrderType.TAKEAWAY.value: 3,
}

def parse_identifier(value: str, field: str) -> str:
    """Normalize an external UUID identifier"""
    try:
        return str(uuid.UUID(str(value)))
    except (TypeError, ValueError):
        raise MalformedIdentifierError(field)

def can_transition(current: str, target: str) -> bool:
    return OrderStatus(target) in ORDER_TRANSITIONS[OrderStatus(current)]

def transition(order: Order, target: OrderStatus) -> None:
    """Move an order along the lifecycle graph, rejecting anything else"""
    if not can_transition(order.status, target):
        raise InvalidOrderStatusError(order.uuid, order.status, OrderStatus(target).value)
    order.status = OrderStatus(target).value

def advance_by_window(order: Order, now: datetime) -> bool:
    """Move a settled order to active or completed according to its window.

    Returns True when the status changed.
    """
    if order.status not in (OrderStatus.PAID.value, OrderStatus.ACTIVE.value):
        return False

    if now >= order.complete_time:
        transition(order, OrderStatus.COMPLETED)
        return True
    if now >= order.active_time and order.status == OrderStatus.PAID.value:
        transition(order, OrderStatus.ACTIVE)
        return True
    return False

def order_total(order: Order) -> Decimal:
    return (Decimal(order.unit_price) * order.amount).quantize(Decimal("0.01"))

def resource_key(order: Order) -> tuple:
    """Deterministic reservation key: type rank, then contended resource id"""
    if order.order_type == OrderType.TRAIN.value:
        resource_id = order.train_detail.schedule_id
    elif order.order_type == OrderType.HOTEL.value:
        resource_id = order.hotel_detail.room_type_id
    elif order.order_type == OrderType.DISH.value:
        resource_id = order.dish_detail.dish_id
    else:
        resource_id = order.takeaway_detail.takeaway_dish_id
    return (RESOURCE_RANK[order.order_type], resource_id, order.id or 0)

def order_detail(order: Order) -> Dict[str, Any]:
    """Type-specific payload for the order view"""
    if order.order_type == OrderType.TRAIN.value:
        detail = order.train_detail
        return {
            "schedule_id": detail.schedule.uuid,
            "train_number": detail.schedule.train.number,
            "seat_type": detail.seat_type.name,
            "seat_id": detail.seat_id,
            "from_station_id": detail.from_station.uuid,
            "to_station_id": detail.to_station.uuid,
        }
    if order.order_type == OrderType.HOTEL.value:
        detail = order.hotel_detail
        return {
            "room_type_id": detail.room_type.uuid,
            "room_type": detail.room_type.type_name,
            "begin_date": detail.begin_date.isoformat(),
            "end_date": detail.end_date.isoformat(),
        }
    if order.order_type == OrderType.DISH.value:
        detail = order.dish_detail
        return {"dish_id": detail.dish.uuid, "dish": detail.dish.name, "train_order_id": detail.train_order.uuid}
    detail = order.takeaway_detail
    return {
        "takeaway_dish_id": detail.takeaway_dish.uuid,
        "takeaway_dish": detail.takeaway_dish.name,
        "train_order_id": detail.train_order.uuid,
    }

def to_order_info(order: Order) -> OrderInfo:
    return OrderInfo(
        order_id=order.uuid,
        order_type=OrderType(order.order_type),
        status=OrderStatus(order.status),
        personal_info_id=order.personal_info.uuid if order.personal_info else None,
        unit_price=order.unit_price,
        amount=order.amount,
        total_price=order_total(order),
        create_time=order.create_time,
        active_time=order.active_time,
        complete_time=order.complete_time,
        detail=order_detail(order)
    )


class OrderFactory:
    """Builds validated, priced, unpaid orders from purchase requests"""

    def __init__(self, db: Session):
        self.db = db

    def build(self, ctx: RequestContext, request, siblings: List[Order]) -> Order:
        """Build one order.

        ``siblings`` holds the orders already built for the same submission, in
        request order, so dish and takeaway requests can point at an earlier
        train request by index. Nothing is added to the session.
        """
        personal_info = self._get_personal_info(ctx.user_id, request.personal_info_id)

        if isinstance(request, TrainOrderRequest):
            order = self._build_train(ctx, request)
        elif isinstance(request, HotelOrderRequest):
            order = self._build_hotel(ctx, request)
        elif isinstance(request, DishOrderRequest):
            order = self._build_dish(ctx, request, siblings)
        elif isinstance(request, TakeawayOrderRequest):
            order = self._build_takeaway(ctx, request, siblings)
        else:
            raise ValidationError(f"Unsupported order request: {type(request).__name__}")

        order.uuid = new_uuid()
        order.user_id = ctx.user_id
        order.personal_info = personal_info
        order.personal_info_id = personal_info.id
        order.status = OrderStatus.UNPAID.value
        order.create_time = ctx.now()
        order.amount = request.amount

        if order.complete_time < order.active_time:
            raise InvalidDateRangeError("Order window ends before it begins")
        if order.unit_price < 0:
            raise ValidationError("Order price cannot be negative")

        logger.debug("built %s order for user %s, unit price %s x %s", order.order_type, ctx.user_id, order.unit_price, order.amount)
        return order

    # Lookups
    def _get_personal_info(self, user_id: int, personal_info_id: str) -> PersonalInfo:
        key = parse_identifier(personal_info_id, "personal_info_id")
        info = self.db.query(PersonalInfo).filter(
            PersonalInfo.uuid == key,
            PersonalInfo.user_id == user_id
        ).first()
        if not info:
            raise UnknownResourceError("Personal info", key)
        return info

    def _get_by_uuid(self, model, identifier: str, field: str, label: str):
        key = parse_identifier(identifier, field)
        obj = self.db.query(model).filter(model.uuid == key).first()
        if not obj:
            raise UnknownResourceError(label, key)
        return obj

    def _stop_for_station(self, stops: List[ScheduleStop], station: Station) -> Optional[ScheduleStop]:
        for stop in stops:
            if stop.station_id == station.id:
                return stop
        return None

    # Per-type builders
    def _build_train(self, ctx: RequestContext, request: TrainOrderRequest) -> Order:
        schedule = self._get_by_uuid(TrainSchedule, request.schedule_id, "schedule_id", "Train schedule")
        seat_type = self._get_by_uuid(SeatType, request.seat_type_id, "seat_type_id", "Seat type")
        if seat_type.train_id != schedule.train_id:
            raise UnknownResourceError("Seat type", seat_type.uuid)

        from_station = self._get_by_uuid(Station, request.from_station_id, "from_station_id", "Station")
        to_station = self._get_by_uuid(Station, request.to_station_id, "to_station_id", "Station")
        from_stop = self._stop_for_station(schedule.stops, from_station)
        to_stop = self._stop_for_station(schedule.stops, to_station)
        if from_stop is None:
            raise UnknownResourceError("Stop", from_station.uuid)
        if to_stop is None:
            raise UnknownResourceError("Stop", to_station.uuid)
        if from_stop.stop_order >= to_stop.stop_order:
            raise ValidationError("Stations are not in travel order for this schedule")

        if from_stop.departure_time <= ctx.now():
            raise InvalidDateRangeError("Train has already departed from the origin station")

        seat_id = None
        if request.seat_id is not None:
            seat = self.db.get(Seat, request.seat_id)
            if not seat or seat.seat_type_id != seat_type.id:
                raise UnknownResourceError("Seat", str(request.seat_id))
            if request.amount != 1:
                raise ValidationError("A concrete seat can only be booked once per order")
            seat_id = seat.id

        order = Order(
            order_type=OrderType.TRAIN.value,
            unit_price=seat_type.unit_price,
            active_time=from_stop.departure_time,
            complete_time=to_stop.arrival_time,
        )
        order.train_detail = TrainOrderDetail(
            schedule_id=schedule.id,
            seat_type_id=seat_type.id,
            seat_id=seat_id,
            from_station_id=from_station.id,
            to_station_id=to_station.id
        )
        return order

    def _build_hotel(self, ctx: RequestContext, request: HotelOrderRequest) -> Order:
        hotel = self._get_by_uuid(Hotel, request.hotel_id, "hotel_id", "Hotel")
        room_type = self._get_by_uuid(HotelRoomType, request.room_type_id, "room_type_id", "Room type")
        if room_type.hotel_id != hotel.id:
            raise UnknownResourceError("Room type", room_type.uuid)

        if request.begin_date >= request.end_date:
            raise InvalidDateRangeError("Check-out date must be after check-in date")
        nights = (request.end_date - request.begin_date).days
        if nights > settings.HOTEL_MAX_BOOKING_DAYS:
            raise InvalidDateRangeError(f"A stay cannot exceed {settings.HOTEL_MAX_BOOKING_DAYS} nights")
        if request.begin_date < ctx.now().date():
            raise InvalidDateRangeError("Check-in date is in the past")

        order = Order(
            order_type=OrderType.HOTEL.value,
            unit_price=Decimal(room_type.price_per_night) * nights,
            active_time=datetime.combine(request.begin_date, time.min),
            complete_time=datetime.combine(request.end_date, time.min),
        )
        order.hotel_detail = HotelOrderDetail(
            hotel_id=hotel.id,
            room_type_id=room_type.id,
            begin_date=request.begin_date,
            end_date=request.end_date
        )
        return order

    def _build_dish(self, ctx: RequestContext, request: DishOrderRequest, siblings: List[Order]) -> Order:
        dish = self._get_by_uuid(Dish, request.dish_id, "dish_id", "Dish")
        parent = self._resolve_parent(ctx, request, siblings)
        schedule = self.db.get(TrainSchedule, parent.train_detail.schedule_id)
        if dish.train_id != schedule.train_id:
            raise UnknownResourceError("Dish", dish.uuid)

        order = Order(
            order_type=OrderType.DISH.value,
            unit_price=dish.unit_price,
            active_time=parent.active_time,
            complete_time=parent.complete_time,
        )
        order.dish_detail = DishOrderDetail(dish_id=dish.id, train_order=parent)
        return order

    def _build_takeaway(self, ctx: RequestContext, request: TakeawayOrderRequest, siblings: List[Order]) -> Order:
        item = self._get_by_uuid(TakeawayDish, request.takeaway_dish_id, "takeaway_dish_id", "Takeaway dish")
        parent = self._resolve_parent(ctx, request, siblings)
        schedule = self.db.get(TrainSchedule, parent.train_detail.schedule_id)
        shop = self.db.get(TakeawayShop, item.shop_id)
        if shop.station_id not in {stop.station_id for stop in schedule.stops}:
            raise UnknownResourceError("Takeaway dish", item.uuid)

        order = Order(
            order_type=OrderType.TAKEAWAY.value,
            unit_price=item.unit_price,
            active_time=parent.active_time,
            complete_time=parent.complete_time,
        )
        order.takeaway_detail = TakeawayOrderDetail(takeaway_dish_id=item.id, train_order=parent)
        return order

    def _resolve_parent(self, ctx: RequestContext, request, siblings: List[Order]) -> Order:
        """Find the train order a dish or takeaway item rides on"""
        if (request.train_order_id is None) == (request.train_order_index is None):
            raise ValidationError("Exactly one of train_order_id or train_order_index is required")

        if request.train_order_index is not None:
            index = request.train_order_index
            if index >= len(siblings) or siblings[index].order_type != OrderType.TRAIN.value:
                raise ValidationError(f"train_order_index {index} does not refer to an earlier train order")
            return siblings[index]

        key = parse_identifier(request.train_order_id, "train_order_id")
        parent = self.db.query(Order).filter(
            Order.uuid == key,
            Order.user_id == ctx.user_id,
            Order.order_type == OrderType.TRAIN.value
        ).first()
        if not parent:
            raise UnknownResourceError("Train order", key)
        if OrderStatus(parent.status) not in LIVE_PARENT_STATUSES:
            raise ValidationError(f"Train order {key} is {parent.status}")
        return parent
