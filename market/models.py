"""
market/models.py -- Domain dataclasses for the AutoMarket catalogue.

These are pure data containers with zero logic. Persistence lives in
market/store.py; validation of incoming data lives in api/models.py.

id is None before the record is written to the store. Timestamps are ISO 8601
UTC strings set by the store.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class VehicleStatus(str, Enum):
    available = "available"
    auctioning = "auctioning"
    sold = "sold"
    pending_inspection = "pending_inspection"


class AuctionStatus(str, Enum):
    pending = "pending"
    active = "active"
    closed = "closed"


class InquiryStatus(str, Enum):
    new = "New"
    read = "Read"
    responded = "Responded"


@dataclass
class Vehicle:
    """A vehicle listing.

    mileage is free text ("42,000 km") because sellers quote it in whatever
    unit the car's odometer uses.
    """

    make: str
    model: str
    year: int
    price: float
    mileage: str
    exterior_color: Optional[str] = None
    interior_color: Optional[str] = None
    engine: Optional[str] = None
    transmission: Optional[str] = None
    fuel_type: Optional[str] = None
    description: Optional[str] = None
    engine_sound: Optional[str] = None  # URL of an audio clip
    features: list[str] = field(default_factory=list)
    image_urls: list[str] = field(default_factory=list)
    status: str = VehicleStatus.available.value
    is_featured: bool = False
    id: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Auction:
    """An auction record for one vehicle.

    vehicle_id is a soft reference: the route checks the vehicle exists when
    the auction is created, nothing keeps them in sync afterwards.
    current_highest_bid stays at 0 until a bidding feature writes to it.
    """

    vehicle_id: str
    start_time: str  # ISO 8601
    end_time: str  # ISO 8601
    starting_bid: float
    current_highest_bid: float = 0.0
    status: str = AuctionStatus.pending.value
    id: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Inquiry:
    """A customer question sent to the marketplace staff."""

    name: str
    email: str
    message: str
    subject: Optional[str] = None
    status: str = InquiryStatus.new.value
    response: Optional[str] = None
    user_id: Optional[str] = None  # submitting principal
    id: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""
