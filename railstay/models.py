import uuid

from sqlalchemy import Column, Integer, BigInteger, String, Boolean, DateTime, Date, ForeignKey, Numeric, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from railstay.database import Base

# SQLite only auto-increments INTEGER primary keys
IdType = BigInteger().with_variant(Integer, "sqlite")

def new_uuid() -> str:
    return str(uuid.uuid4())

# ================================
# Users & Travelers
# ================================
class User(Base):
    __tablename__ = "users"

    id = Column(IdType, primary_key=True, index=True)
    username = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    hashed_payment_password = Column(String(255))
    wrong_payment_password_tried = Column(Integer, nullable=False, default=0)
    is_admin = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    personal_infos = relationship("PersonalInfo", back_populates="user")
    transactions = relationship("Transaction", back_populates="user")

class PersonalInfo(Base):
    __tablename__ = "personal_infos"

    id = Column(IdType, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, nullable=False, default=new_uuid, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    identity_card_id = Column(String(64), nullable=False)
    is_default = Column(Boolean, default=False)
    created_at = Column(DateTime, server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="personal_infos")

# ================================
# Train Reference Data
# ================================
class Station(Base):
    __tablename__ = "stations"

    id = Column(IdType, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, nullable=False, default=new_uuid, index=True)
    name = Column(String(255), nullable=False, index=True)

class Train(Base):
    __tablename__ = "trains"

    id = Column(IdType, primary_key=True, index=True)
    number = Column(String(32), unique=True, nullable=False, index=True)

    # Relationships
    seat_types = relationship("SeatType", back_populates="train")
    schedules = relationship("TrainSchedule", back_populates="train")
    dishes = relationship("Dish", back_populates="train")

class TrainSchedule(Base):
    __tablename__ = "train_schedules"

    id = Column(IdType, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, nullable=False, default=new_uuid, index=True)
    train_id = Column(BigInteger, ForeignKey("trains.id"), nullable=False, index=True)
    departure_date = Column(Date, nullable=False, index=True)

    # Relationships
    train = relationship("Train", back_populates="schedules")
    stops = relationship("ScheduleStop", back_populates="schedule", order_by="ScheduleStop.stop_order")

class ScheduleStop(Base):
    __tablename__ = "schedule_stops"
    __table_args__ = (UniqueConstraint("schedule_id", "stop_order"),)

    id = Column(IdType, primary_key=True, index=True)
    schedule_id = Column(BigInteger, ForeignKey("train_schedules.id"), nullable=False, index=True)
    station_id = Column(BigInteger, ForeignKey("stations.id"), nullable=False)
    stop_order = Column(Integer, nullable=False)
    arrival_time = Column(DateTime, nullable=False)
    departure_time = Column(DateTime, nullable=False)

    # Relationships
    schedule = relationship("TrainSchedule", back_populates="stops")
    station = relationship("Station")

class SeatType(Base):
    __tablename__ = "seat_types"

    id = Column(IdType, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, nullable=False, default=new_uuid, index=True)
    train_id = Column(BigInteger, ForeignKey("trains.id"), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)

    # Relationships
    train = relationship("Train", back_populates="seat_types")
    seats = relationship("Seat", back_populates="seat_type", order_by="Seat.id")

class Seat(Base):
    __tablename__ = "seats"

    id = Column(IdType, primary_key=True, index=True)
    seat_type_id = Column(BigInteger, ForeignKey("seat_types.id"), nullable=False, index=True)
    carriage = Column(Integer, nullable=False)
    row = Column(Integer, nullable=False)
    location = Column(String(1), nullable=False)

    # Relationships
    seat_type = relationship("SeatType", back_populates="seats")

# ================================
# Hotel Reference Data
# ================================
class Hotel(Base):
    __tablename__ = "hotels"

    id = Column(IdType, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, nullable=False, default=new_uuid, index=True)
    name = Column(String(255), nullable=False)

    # Relationships
    room_types = relationship("HotelRoomType", back_populates="hotel")

class HotelRoomType(Base):
    __tablename__ = "hotel_room_types"

    id = Column(IdType, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, nullable=False, default=new_uuid, index=True)
    hotel_id = Column(BigInteger, ForeignKey("hotels.id"), nullable=False, index=True)
    type_name = Column(String(100), nullable=False)
    capacity = Column(Integer, nullable=False)
    price_per_night = Column(Numeric(12, 2), nullable=False)

    # Relationships
    hotel = relationship("Hotel", back_populates="room_types")

# ================================
# Onboard Dishes & Takeaway
# ================================
class Dish(Base):
    __tablename__ = "dishes"

    id = Column(IdType, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, nullable=False, default=new_uuid, index=True)
    train_id = Column(BigInteger, ForeignKey("trains.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    on_sale = Column(Boolean, nullable=False, default=True)

    # Relationships
    train = relationship("Train", back_populates="dishes")

class TakeawayShop(Base):
    __tablename__ = "takeaway_shops"

    id = Column(IdType, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, nullable=False, default=new_uuid, index=True)
    station_id = Column(BigInteger, ForeignKey("stations.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)

    # Relationships
    station = relationship("Station")
    dishes = relationship("TakeawayDish", back_populates="shop")

class TakeawayDish(Base):
    __tablename__ = "takeaway_dishes"

    id = Column(IdType, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, nullable=False, default=new_uuid, index=True)
    shop_id = Column(BigInteger, ForeignKey("takeaway_shops.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    on_sale = Column(Boolean, nullable=False, default=True)

    # Relationships
    shop = relationship("TakeawayShop", back_populates="dishes")

# ================================
# Transactions
# ================================
class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(IdType, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, nullable=False, default=new_uuid, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    kind = Column(String(20), nullable=False, default='purchase')
    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), nullable=False, default='unpaid', index=True)
    atomic = Column(Boolean, nullable=False, default=True)
    refund_of_id = Column(BigInteger, ForeignKey("transactions.id"))
    create_time = Column(DateTime, nullable=False)
    finish_time = Column(DateTime)

    # Relationships
    user = relationship("User", back_populates="transactions")
    orders = relationship("Order", back_populates="pay_transaction", foreign_keys="Order.pay_transaction_id", order_by="Order.id")
    refund_of = relationship("Transaction", remote_side=[id])

# ================================
# Orders (header + per-type payload)
# ================================
class Order(Base):
    __tablename__ = "orders"

    id = Column(IdType, primary_key=True, index=True)
    uuid = Column(String(36), unique=True, nullable=False, default=new_uuid, index=True)
    order_type = Column(String(20), nullable=False, index=True)
    status = Column(String(20), nullable=False, default='unpaid', index=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    personal_info_id = Column(BigInteger, ForeignKey("personal_infos.id"), nullable=False)
    create_time = Column(DateTime, nullable=False)
    active_time = Column(DateTime, nullable=False)
    complete_time = Column(DateTime, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    amount = Column(Integer, nullable=False)
    pay_transaction_id = Column(BigInteger, ForeignKey("transactions.id"), index=True)
    refund_transaction_id = Column(BigInteger, ForeignKey("transactions.id"))

    # Relationships
    personal_info = relationship("PersonalInfo")
    pay_transaction = relationship("Transaction", back_populates="orders", foreign_keys=[pay_transaction_id])
    refund_transaction = relationship("Transaction", foreign_keys=[refund_transaction_id])
    train_detail = relationship("TrainOrderDetail", uselist=False, back_populates="order", foreign_keys="TrainOrderDetail.order_id")
    hotel_detail = relationship("HotelOrderDetail", uselist=False, back_populates="order")
    dish_detail = relationship("DishOrderDetail", uselist=False, back_populates="order", foreign_keys="DishOrderDetail.order_id")
    takeaway_detail = relationship("TakeawayOrderDetail", uselist=False, back_populates="order", foreign_keys="TakeawayOrderDetail.order_id")

class TrainOrderDetail(Base):
    __tablename__ = "train_order_details"

    order_id = Column(BigInteger, ForeignKey("orders.id"), primary_key=True)
    schedule_id = Column(BigInteger, ForeignKey("train_schedules.id"), nullable=False, index=True)
    seat_type_id = Column(BigInteger, ForeignKey("seat_types.id"), nullable=False)
    seat_id = Column(BigInteger, ForeignKey("seats.id"))
    from_station_id = Column(BigInteger, ForeignKey("stations.id"), nullable=False)
    to_station_id = Column(BigInteger, ForeignKey("stations.id"), nullable=False)

    # Relationships
    order = relationship("Order", back_populates="train_detail", foreign_keys=[order_id])
    schedule = relationship("TrainSchedule")
    seat_type = relationship("SeatType")
    from_station = relationship("Station", foreign_keys=[from_station_id])
    to_station = relationship("Station", foreign_keys=[to_station_id])

class HotelOrderDetail(Base):
    __tablename__ = "hotel_order_details"

    order_id = Column(BigInteger, ForeignKey("orders.id"), primary_key=True)
    hotel_id = Column(BigInteger, ForeignKey("hotels.id"), nullable=False, index=True)
    room_type_id = Column(BigInteger, ForeignKey("hotel_room_types.id"), nullable=False)
    begin_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)

    # Relationships
    order = relationship("Order", back_populates="hotel_detail")
    room_type = relationship("HotelRoomType")

class DishOrderDetail(Base):
    __tablename__ = "dish_order_details"

    order_id = Column(BigInteger, ForeignKey("orders.id"), primary_key=True)
    train_order_id = Column(BigInteger, ForeignKey("orders.id"), nullable=False, index=True)
    dish_id = Column(BigInteger, ForeignKey("dishes.id"), nullable=False)

    # Relationships
    order = relationship("Order", back_populates="dish_detail", foreign_keys=[order_id])
    train_order = relationship("Order", foreign_keys=[train_order_id])
    dish = relationship("Dish")

class TakeawayOrderDetail(Base):
    __tablename__ = "takeaway_order_details"

    order_id = Column(BigInteger, ForeignKey("orders.id"), primary_key=True)
    train_order_id = Column(BigInteger, ForeignKey("orders.id"), nullable=False, index=True)
    takeaway_dish_id = Column(BigInteger, ForeignKey("takeaway_dishes.id"), nullable=False)

    # Relationships
    order = relationship("Order", back_populates="takeaway_detail", foreign_keys=[order_id])
    train_order = relationship("Order", foreign_keys=[train_order_id])
    takeaway_dish = relationship("TakeawayDish")

# ================================
# Occupancy Records
# ================================
class OccupiedRoom(Base):
    __tablename__ = "occupied_rooms"

    id = Column(IdType, primary_key=True, index=True)
    order_id = Column(BigInteger, ForeignKey("orders.id"), nullable=False, index=True)
    hotel_id = Column(BigInteger, ForeignKey("hotels.id"), nullable=False)
    room_type_id = Column(BigInteger, ForeignKey("hotel_room_types.id"), nullable=False, index=True)
    begin_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=False, index=True)
    personal_info_id = Column(BigInteger, ForeignKey("personal_infos.id"), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

class OccupiedSeat(Base):
    __tablename__ = "occupied_seats"

    id = Column(IdType, primary_key=True, index=True)
    order_id = Column(BigInteger, ForeignKey("orders.id"), nullable=False, index=True)
    schedule_id = Column(BigInteger, ForeignKey("train_schedules.id"), nullable=False, index=True)
    seat_type_id = Column(BigInteger, ForeignKey("seat_types.id"), nullable=False)
    seat_id = Column(BigInteger, ForeignKey("seats.id"), nullable=False, index=True)
    begin_stop_order = Column(Integer, nullable=False)
    end_stop_order = Column(Integer, nullable=False)
    personal_info_id = Column(BigInteger, ForeignKey("personal_infos.id"), nullable=False)
    created_at = Column(DateTime, server_default=func.now())
