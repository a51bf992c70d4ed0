"""
SQLAlchemy ORM models  (maps to PostgreSQL + PostGIS).

Tables
------
* ``stations``      -- pick-up / drop-off stations
* ``trip_charges``  -- every payment-gateway charge attempt

Indexes
-------
* **GIST** on ``stations.location`` for spatial look-ups.
* **B-Tree** on ``trip_charges.user_id`` and ``trip_charges.kind`` for
  per-user billing history.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    Index,
    Integer,
    String,
    func,
)
from geoalchemy2 import Geometry

from .database import Base
from rental.domain.enums import ChargeKind


class StationModel(Base):
    __tablename__ = "stations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    address = Column(String(400), nullable=False, default="")

    # Stored as PostGIS geometry for spatial indexing
    location = Column(Geometry("POINT", srid=4326), nullable=True)

    # Also stored as plain floats for fast reads (avoids ST_X / ST_Y)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)

    wait_time_minutes = Column(Integer, nullable=True)
    available_spots = Column(Integer, nullable=True)
    total_spots = Column(Integer, nullable=True)
    max_power_kw = Column(Float, nullable=True)
    virtual_car = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_stations_location", "location", postgresql_using="gist"),
        Index("idx_stations_active", "is_active"),
    )


class TripChargeModel(Base):
    __tablename__ = "trip_charges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(128), nullable=False)
    kind = Column(Enum(ChargeKind), nullable=False)
    amount_cents = Column(Integer, nullable=False)
    success = Column(Boolean, nullable=False)
    transaction_id = Column(String(128), nullable=True)
    card_last4 = Column(String(4), nullable=True)
    error = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_trip_charges_user", "user_id"),
        Index("idx_trip_charges_kind", "kind"),
    )
