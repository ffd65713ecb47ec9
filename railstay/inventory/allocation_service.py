from typing import List, Dict, Tuple
from dataclasses import dataclass, field
from datetime import date, timedelta
from collections import defaultdict
from sqlalchemy.orm import Session
import logging

from railstay.errors import (
    CapacityExceededError, ResourceNotFoundError, UnknownResourceError, InvalidDateRangeError,
    ValidationError
)
from railstay.models import (
    Order, OccupiedRoom, OccupiedSeat, TrainOrderDetail, TrainSchedule, ScheduleStop, SeatType, Seat,
    Station, Hotel, HotelRoomType, Dish, TakeawayDish
)
from railstay.orders.schemas import OrderType
from railstay.orders.order_service import parse_identifier
from railstay.inventory.schemas import (
    HotelRoomStatus, RoomTypeAvailability, SeatStatus, SeatTypeAvailability
)

logger = logging.getLogger(__name__)

@dataclass
class OccupancyHandle:
    """Occupancy rows held on behalf of one order"""
    order_id: int
    order_uuid: str
    room_ids: List[int] = field(default_factory=list)
    seat_ids: List[int] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.room_ids and not self.seat_ids

def stay_nights(begin: date, end: date) -> List[date]:
    """Nights of the half-open range [begin, end)"""
    return [begin + timedelta(days=i) for i in range((end - begin).days)]

def stop_ranges_overlap(begin: int, end: int, other_begin: int, other_end: int) -> bool:
    return begin < other_end and other_begin < end


class InventoryAllocator:
    """Reserves and releases finite inventory for orders.

    Every reservation runs inside a savepoint with the contended resource row
    locked, so concurrent reservations of the same room type or schedule
    serialize while different resources proceed in parallel. Occupancy is
    always read from the database.
    """

    def __init__(self, db: Session):
        self.db = db

    def reserve(self, order: Order) -> OccupancyHandle:
        """Reserve inventory for an order or raise an AllocationError"""
        with self.db.begin_nested():
            if order.order_type == OrderType.TRAIN.value:
                handle = self._reserve_train(order)
            elif order.order_type == OrderType.HOTEL.value:
                handle = self._reserve_hotel(order)
            elif order.order_type == OrderType.DISH.value:
                handle = self._reserve_dish(order)
            elif order.order_type == OrderType.TAKEAWAY.value:
                handle = self._reserve_takeaway(order)
            else:
                raise ResourceNotFoundError(order.uuid, f"Order type {order.order_type}")

        logger.info(
            "reserved %s order %s: %d room(s), %d seat(s)",
            order.order_type, order.uuid, len(handle.room_ids), len(handle.seat_ids)
        )
        return handle

    def release(self, handle: OccupancyHandle) -> None:
        """Delete the occupancy rows of a handle and forget any assigned seat.

        Releasing twice is a no-op.
        """
        if handle.room_ids:
            self.db.query(OccupiedRoom).filter(
                OccupiedRoom.id.in_(handle.room_ids)
            ).delete(synchronize_session=False)
        if handle.seat_ids:
            self.db.query(OccupiedSeat).filter(
                OccupiedSeat.id.in_(handle.seat_ids)
            ).delete(synchronize_session=False)
            detail = self.db.get(TrainOrderDetail, handle.order_id)
            if detail is not None:
                detail.seat_id = None
        self.db.flush()
        logger.info("released occupancy of order %s", handle.order_uuid)

    def handle_for(self, order: Order) -> OccupancyHandle:
        """Rebuild the handle of an order from its stored occupancy rows"""
        room_ids = [row.id for row in self.db.query(OccupiedRoom.id).filter(OccupiedRoom.order_id == order.id)]
        seat_ids = [row.id for row in self.db.query(OccupiedSeat.id).filter(OccupiedSeat.order_id == order.id)]
        return OccupancyHandle(order_id=order.id, order_uuid=order.uuid, room_ids=room_ids, seat_ids=seat_ids)

    # Hotels
    def _reserve_hotel(self, order: Order) -> OccupancyHandle:
        detail = order.hotel_detail
        room_type = self.db.query(HotelRoomType).filter(
            HotelRoomType.id == detail.room_type_id,
            HotelRoomType.hotel_id == detail.hotel_id
        ).with_for_update().first()
        if not room_type:
            raise ResourceNotFoundError(order.uuid, "Room type")

        occupied = self._room_occupancy(room_type.id, detail.begin_date, detail.end_date)
        for night in stay_nights(detail.begin_date, detail.end_date):
            if occupied[night] + order.amount > room_type.capacity:
                raise CapacityExceededError(order.uuid, f"{room_type.type_name} is full on {night.isoformat()}")

        rows = [
            OccupiedRoom(
                order_id=order.id,
                hotel_id=detail.hotel_id,
                room_type_id=room_type.id,
                begin_date=detail.begin_date,
                end_date=detail.end_date,
                personal_info_id=order.personal_info_id
            )
            for _ in range(order.amount)
        ]
        self.db.add_all(rows)
        self.db.flush()
        return OccupancyHandle(order_id=order.id, order_uuid=order.uuid, room_ids=[row.id for row in rows])

    def _room_occupancy(self, room_type_id: int, begin: date, end: date) -> Dict[date, int]:
        """Rooms held per night of [begin, end)"""
        rows = self.db.query(OccupiedRoom).filter(
            OccupiedRoom.room_type_id == room_type_id,
            OccupiedRoom.begin_date < end,
            OccupiedRoom.end_date > begin
        ).all()

        occupied = defaultdict(int)
        for row in rows:
            for night in stay_nights(max(row.begin_date, begin), min(row.end_date, end)):
                occupied[night] += 1
        return occupied

    # Trains
    def _reserve_train(self, order: Order) -> OccupancyHandle:
        detail = order.train_detail
        schedule = self.db.query(TrainSchedule).filter(
            TrainSchedule.id == detail.schedule_id
        ).with_for_update().first()
        if not schedule:
            raise ResourceNotFoundError(order.uuid, "Train schedule")

        seat_type = self.db.get(SeatType, detail.seat_type_id)
        if not seat_type or seat_type.train_id != schedule.train_id:
            raise ResourceNotFoundError(order.uuid, "Seat type")

        begin, end = self._stop_range(schedule.id, detail.from_station_id, detail.to_station_id)
        if begin is None or end is None:
            raise ResourceNotFoundError(order.uuid, "Schedule stop")

        taken = self._taken_seat_ids(schedule.id, begin, end)
        if detail.seat_id is not None:
            seat = self.db.get(Seat, detail.seat_id)
            if not seat or seat.seat_type_id != seat_type.id:
                raise ResourceNotFoundError(order.uuid, "Seat")
            if seat.id in taken:
                raise CapacityExceededError(order.uuid, f"seat {seat.carriage}-{seat.row}{seat.location} is taken")
            chosen = [seat]
        else:
            free = [seat for seat in seat_type.seats if seat.id not in taken]
            if len(free) < order.amount:
                raise CapacityExceededError(order.uuid, f"{len(free)} {seat_type.name} seat(s) left")
            chosen = free[:order.amount]

        rows = [
            OccupiedSeat(
                order_id=order.id,
                schedule_id=schedule.id,
                seat_type_id=seat_type.id,
                seat_id=seat.id,
                begin_stop_order=begin,
                end_stop_order=end,
                personal_info_id=order.personal_info_id
            )
            for seat in chosen
        ]
        self.db.add_all(rows)
        if detail.seat_id is None and len(chosen) == 1:
            detail.seat_id = chosen[0].id
        self.db.flush()
        return OccupancyHandle(order_id=order.id, order_uuid=order.uuid, seat_ids=[row.id for row in rows])

    def _stop_range(self, schedule_id: int, from_station_id: int, to_station_id: int) -> Tuple:
        stops = {
            stop.station_id: stop.stop_order
            for stop in self.db.query(ScheduleStop).filter(ScheduleStop.schedule_id == schedule_id)
        }
        return stops.get(from_station_id), stops.get(to_station_id)

    def _taken_seat_ids(self, schedule_id: int, begin: int, end: int) -> set:
        """Seats held on a stop range overlapping [begin, end)"""
        rows = self.db.query(OccupiedSeat.seat_id).filter(
            OccupiedSeat.schedule_id == schedule_id,
            OccupiedSeat.begin_stop_order < end,
            OccupiedSeat.end_stop_order > begin
        )
        return {row.seat_id for row in rows}

    # Dishes & takeaway
    def _reserve_dish(self, order: Order) -> OccupancyHandle:
        detail = order.dish_detail
        dish = self.db.get(Dish, detail.dish_id)
        if not dish or not dish.on_sale:
            raise ResourceNotFoundError(order.uuid, "Dish")
        self._require_parent_seat(order, detail.train_order_id)
        return OccupancyHandle(order_id=order.id, order_uuid=order.uuid)

    def _reserve_takeaway(self, order: Order) -> OccupancyHandle:
        detail = order.takeaway_detail
        item = self.db.get(TakeawayDish, detail.takeaway_dish_id)
        if not item or not item.on_sale:
            raise ResourceNotFoundError(order.uuid, "Takeaway dish")
        self._require_parent_seat(order, detail.train_order_id)
        return OccupancyHandle(order_id=order.id, order_uuid=order.uuid)

    def _require_parent_seat(self, order: Order, train_order_id: int) -> None:
        held = self.db.query(OccupiedSeat.id).filter(OccupiedSeat.order_id == train_order_id).first()
        if held is None:
            raise CapacityExceededError(order.uuid, "the train order holds no seat")

    # Availability queries (snapshot reads, no locks)
    def hotel_room_status(self, hotel_id: str, begin: date, end: date) -> HotelRoomStatus:
        key = parse_identifier(hotel_id, "hotel_id")
        hotel = self.db.query(Hotel).filter(Hotel.uuid == key).first()
        if not hotel:
            raise UnknownResourceError("Hotel", key)
        if begin >= end:
            raise InvalidDateRangeError("Check-out date must be after check-in date")

        room_types = []
        for room_type in sorted(hotel.room_types, key=lambda rt: rt.id):
            occupied = self._room_occupancy(room_type.id, begin, end)
            peak = max(occupied.values(), default=0)
            room_types.append(RoomTypeAvailability(
                room_type_id=room_type.uuid,
                type_name=room_type.type_name,
                capacity=room_type.capacity,
                remaining=max(room_type.capacity - peak, 0),
                price=room_type.price_per_night
            ))

        return HotelRoomStatus(
            hotel_id=hotel.uuid,
            hotel_name=hotel.name,
            begin_date=begin,
            end_date=end,
            room_types=room_types
        )

    def seat_status(self, schedule_id: str, from_station_id: str, to_station_id: str) -> SeatStatus:
        key = parse_identifier(schedule_id, "schedule_id")
        schedule = self.db.query(TrainSchedule).filter(TrainSchedule.uuid == key).first()
        if not schedule:
            raise UnknownResourceError("Train schedule", key)

        stations = {}
        for field_name, identifier in (("from_station_id", from_station_id), ("to_station_id", to_station_id)):
            station_key = parse_identifier(identifier, field_name)
            station = self.db.query(Station).filter(Station.uuid == station_key).first()
            if not station:
                raise UnknownResourceError("Station", station_key)
            stations[field_name] = station

        begin, end = self._stop_range(schedule.id, stations["from_station_id"].id, stations["to_station_id"].id)
        if begin is None or end is None:
            raise UnknownResourceError("Stop", f"{from_station_id} -> {to_station_id}")
        if begin >= end:
            raise ValidationError("Stations are not in travel order for this schedule")

        taken = self._taken_seat_ids(schedule.id, begin, end)
        seat_types = []
        for seat_type in sorted(schedule.train.seat_types, key=lambda st: st.id):
            seat_ids = {seat.id for seat in seat_type.seats}
            seat_types.append(SeatTypeAvailability(
                seat_type_id=seat_type.uuid,
                name=seat_type.name,
                capacity=len(seat_ids),
                remaining=len(seat_ids - taken),
                price=seat_type.unit_price
            ))

        return SeatStatus(
            schedule_id=schedule.uuid,
            train_number=schedule.train.number,
            from_station_id=stations["from_station_id"].uuid,
            to_station_id=stations["to_station_id"].uuid,
            seat_types=seat_types
        )
