"""
market/store.py -- SQLAlchemy-backed persistence layer for the AutoMarket catalogue.

Uses SQLAlchemy Core (not ORM) so the domain dataclasses in market/models.py
remain the authoritative domain representation. Swapping SQLite for
PostgreSQL is a connection string change, not a rewrite.

Pattern: Repository + Data Mapper. MarketStore is the repository (one clean
interface per entity). The _row_to_* functions are the mappers. Route
handlers never touch SQL directly.

Document-shaped fields (features, image_urls) are stored as JSON arrays in
TEXT columns and decoded by the mappers.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = MarketStore("sqlite:///automarket.db")
    vehicle_id = store.create_vehicle(vehicle)
    store.list_vehicles(status="available")
    store.delete_vehicle(vehicle_id)
    store.close()
"""

import json
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Float, Integer, MetaData, String, Table, Text, create_engine, event, func, select, text
from sqlalchemy.engine import Engine

from market.models import Auction, Inquiry, Vehicle

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_vehicles = Table(
    "vehicles",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("make", String(100), nullable=False),
    Column("model", String(100), nullable=False),
    Column("year", Integer, nullable=False),
    Column("price", Float, nullable=False),
    Column("mileage", String(50), nullable=False),
    Column("exterior_color", String(50)),
    Column("interior_color", String(50)),
    Column("engine", String(100)),
    Column("transmission", String(50)),
    Column("fuel_type", String(50)),
    Column("description", Text),
    Column("engine_sound", Text),
    Column("features", Text),  # JSON array
    Column("image_urls", Text),  # JSON array
    Column("status", String(30), nullable=False, server_default="available"),
    Column("is_featured", Integer, nullable=False, server_default="0"),  # boolean stored as 0/1
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("seq", Integer, nullable=False),  # insertion order, breaks created_at ties
)

_auctions = Table(
    "auctions",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("vehicle_id", String(32), nullable=False),
    Column("start_time", String(32), nullable=False),
    Column("end_time", String(32), nullable=False),
    Column("starting_bid", Float, nullable=False),
    Column("current_highest_bid", Float, nullable=False, server_default="0"),
    Column("status", String(20), nullable=False, server_default="pending"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("seq", Integer, nullable=False),  # insertion order, breaks created_at ties
)

_inquiries = Table(
    "inquiries",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("email", String(320), nullable=False),
    Column("subject", String(255)),
    Column("message", Text, nullable=False),
    Column("status", String(20), nullable=False, server_default="New"),
    Column("response", Text),
    Column("user_id", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("seq", Integer, nullable=False),  # insertion order, breaks created_at ties
)

# Columns holding JSON arrays; serialized on every write path.
_VEHICLE_LIST_FIELDS = ("features", "image_urls")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex


def _next_seq(conn, table: Table) -> int:
    """Next insertion sequence number for table, read on the inserting connection."""
    return (conn.execute(select(func.max(table.c.seq))).scalar() or 0) + 1


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode (SQLite only). Set per-connection."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class MarketStore:
    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Return True if the store answers a trivial query."""
        with self.engine.connect() as conn:
            return conn.execute(text("SELECT 1")).scalar() == 1

    # ------------------------------------------------------------------
    # Vehicles
    # ------------------------------------------------------------------

    def create_vehicle(self, vehicle: Vehicle) -> str:
        """Insert a new vehicle and return its generated id."""
        vehicle_id = _new_id()
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _vehicles.insert().values(
                    id=vehicle_id,
                    make=vehicle.make,
                    model=vehicle.model,
                    year=vehicle.year,
                    price=vehicle.price,
                    mileage=vehicle.mileage,
                    exterior_color=vehicle.exterior_color,
                    interior_color=vehicle.interior_color,
                    engine=vehicle.engine,
                    transmission=vehicle.transmission,
                    fuel_type=vehicle.fuel_type,
                    description=vehicle.description,
                    engine_sound=vehicle.engine_sound,
                    features=json.dumps(vehicle.features),
                    image_urls=json.dumps(vehicle.image_urls),
                    status=vehicle.status,
                    is_featured=1 if vehicle.is_featured else 0,
                    created_at=now,
                    updated_at=now,
                    seq=_next_seq(conn, _vehicles),
                )
            )
            conn.commit()
        return vehicle_id

    def get_vehicle(self, vehicle_id: str) -> Optional[Vehicle]:
        """Fetch a single vehicle by id. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_vehicles.select().where(_vehicles.c.id == vehicle_id)).fetchone()
        return _row_to_vehicle(row) if row is not None else None

    def list_vehicles(
        self,
        status: Optional[str] = None,
        featured: Optional[bool] = None,
        limit: Optional[int] = None,
    ) -> list[Vehicle]:
        """Return vehicles newest first, optionally filtered by status and featured flag."""
        query = _vehicles.select()
        if status is not None:
            query = query.where(_vehicles.c.status == status)
        if featured is not None:
            query = query.where(_vehicles.c.is_featured == (1 if featured else 0))
        query = query.order_by(_vehicles.c.created_at.desc(), _vehicles.c.seq.desc())
        if limit is not None:
            query = query.limit(limit)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_vehicle(r) for r in rows]

    def update_vehicle(self, vehicle_id: str, **fields) -> bool:
        """Update any subset of vehicle columns.

        features and image_urls must be passed as list[str]; is_featured as
        bool. This method serializes them before writing.

        Returns True if a row was updated, False if vehicle_id was not found.
        """
        for name in _VEHICLE_LIST_FIELDS:
            if name in fields:
                fields[name] = json.dumps(fields[name])
        if "is_featured" in fields:
            fields["is_featured"] = 1 if fields["is_featured"] else 0
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_vehicles.update().where(_vehicles.c.id == vehicle_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_vehicle(self, vehicle_id: str) -> bool:
        """Delete a vehicle. Returns True if deleted, False if not found.

        Auctions that reference the vehicle are left in place (soft reference).
        """
        with self.engine.connect() as conn:
            result = conn.execute(_vehicles.delete().where(_vehicles.c.id == vehicle_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Auctions
    # ------------------------------------------------------------------

    def create_auction(self, auction: Auction) -> str:
        """Insert a new auction and return its generated id."""
        auction_id = _new_id()
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _auctions.insert().values(
                    id=auction_id,
                    vehicle_id=auction.vehicle_id,
                    start_time=auction.start_time,
                    end_time=auction.end_time,
                    starting_bid=auction.starting_bid,
                    current_highest_bid=auction.current_highest_bid,
                    status=auction.status,
                    created_at=now,
                    updated_at=now,
                    seq=_next_seq(conn, _auctions),
                )
            )
            conn.commit()
        return auction_id

    def get_auction(self, auction_id: str) -> Optional[Auction]:
        with self.engine.connect() as conn:
            row = conn.execute(_auctions.select().where(_auctions.c.id == auction_id)).fetchone()
        return _row_to_auction(row) if row is not None else None

    def list_auctions(self, status: Optional[str] = None) -> list[Auction]:
        """Return auctions newest first, optionally filtered by status."""
        query = _auctions.select()
        if status is not None:
            query = query.where(_auctions.c.status == status)
        query = query.order_by(_auctions.c.created_at.desc(), _auctions.c.seq.desc())
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_auction(r) for r in rows]

    def update_auction(self, auction_id: str, **fields) -> bool:
        """Update any subset of auction columns. Returns False if not found."""
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_auctions.update().where(_auctions.c.id == auction_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_auction(self, auction_id: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_auctions.delete().where(_auctions.c.id == auction_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Inquiries
    # ------------------------------------------------------------------

    def create_inquiry(self, inquiry: Inquiry) -> str:
        """Insert a new inquiry and return its generated id."""
        inquiry_id = _new_id()
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _inquiries.insert().values(
                    id=inquiry_id,
                    name=inquiry.name,
                    email=inquiry.email,
                    subject=inquiry.subject,
                    message=inquiry.message,
                    status=inquiry.status,
                    response=inquiry.response,
                    user_id=inquiry.user_id,
                    created_at=now,
                    updated_at=now,
                    seq=_next_seq(conn, _inquiries),
                )
            )
            conn.commit()
        return inquiry_id

    def get_inquiry(self, inquiry_id: str) -> Optional[Inquiry]:
        with self.engine.connect() as conn:
            row = conn.execute(_inquiries.select().where(_inquiries.c.id == inquiry_id)).fetchone()
        return _row_to_inquiry(row) if row is not None else None

    def list_inquiries(self) -> list[Inquiry]:
        """Return all inquiries newest first. Admin-only operation."""
        with self.engine.connect() as conn:
            query = _inquiries.select().order_by(_inquiries.c.created_at.desc(), _inquiries.c.seq.desc())
            rows = conn.execute(query).fetchall()
        return [_row_to_inquiry(r) for r in rows]

    def update_inquiry(self, inquiry_id: str, **fields) -> bool:
        """Update status and/or response. Returns False if not found."""
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_inquiries.update().where(_inquiries.c.id == inquiry_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_inquiry(self, inquiry_id: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_inquiries.delete().where(_inquiries.c.id == inquiry_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern -- DB row -> domain dataclass)
# ---------------------------------------------------------------------------


def _row_to_vehicle(row) -> Vehicle:
    return Vehicle(
        id=row.id,
        make=row.make,
        model=row.model,
        year=row.year,
        price=row.price,
        mileage=row.mileage,
        exterior_color=row.exterior_color,
        interior_color=row.interior_color,
        engine=row.engine,
        transmission=row.transmission,
        fuel_type=row.fuel_type,
        description=row.description,
        engine_sound=row.engine_sound,
        features=json.loads(row.features) if row.features else [],
        image_urls=json.loads(row.image_urls) if row.image_urls else [],
        status=row.status,
        is_featured=bool(row.is_featured),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_auction(row) -> Auction:
    return Auction(
        id=row.id,
        vehicle_id=row.vehicle_id,
        start_time=row.start_time,
        end_time=row.end_time,
        starting_bid=row.starting_bid,
        current_highest_bid=row.current_highest_bid or 0.0,
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_inquiry(row) -> Inquiry:
    return Inquiry(
        id=row.id,
        name=row.name,
        email=row.email,
        subject=row.subject,
        message=row.message,
        status=row.status,
        response=row.response,
        user_id=row.user_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
