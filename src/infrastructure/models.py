"""
SQLAlchemy ORM models  (maps to PostgreSQL).

Tables
------
* ``users``     -- registered passengers
* ``vehicles``  -- shared vehicles; ``is_available`` is the flag claimed
                   by compare-and-set during dispatch
* ``rides``     -- one row per successfully dispatched group
* ``bookings``  -- individual ride requests, PENDING until confirmed

Indexes
-------
* **B-Tree** on ``bookings.status`` and ``vehicles.is_available`` -- the two
  predicates every matching cycle filters on.
* **B-Tree** on ``user_id``, ``ride_id``, ``idempotency_key`` for API
  look-ups.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)

from .database import Base
from src.domain.enums import BookingStatus, RideStatus


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class VehicleModel(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    capacity = Column(Integer, default=3, nullable=False)
    current_lat = Column(Float, nullable=True)
    current_lng = Column(Float, nullable=True)
    is_available = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_vehicles_available", "is_available"),)


class RideModel(Base):
    __tablename__ = "rides"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False)
    status = Column(Enum(RideStatus), default=RideStatus.MATCHED, nullable=False)
    total_distance = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_rides_vehicle", "vehicle_id"),)


class BookingModel(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    dropoff_lat = Column(Float, nullable=False)
    dropoff_lng = Column(Float, nullable=False)
    pickup_time = Column(DateTime(timezone=True), nullable=False)
    passengers = Column(Integer, default=1, nullable=False)

    status = Column(
        Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False
    )
    fare = Column(Integer, nullable=False)
    ride_id = Column(Integer, ForeignKey("rides.id"), nullable=True)
    idempotency_key = Column(String(64), unique=True, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_bookings_status", "status"),
        Index("idx_bookings_user", "user_id"),
        Index("idx_bookings_ride", "ride_id"),
    )
