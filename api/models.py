"""
API request and response models for AutoMarket REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
market/models.py, which own the internal domain representation. Route
handlers map between the two.

Wire format: camelCase field names (vehicleId, startTime, imageUrls).
populate_by_name=True means JSON bodies may also use the snake_case names.

Separation of concerns: domain models = stored truth; api/ models = API contract.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from auth.models import User
from auth.policy import Role, UserStatus
from market.models import Auction, AuctionStatus, Inquiry, InquiryStatus, Vehicle, VehicleStatus

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

_MIN_YEAR = 1900
_MAX_YEAR = 2100


class CamelModel(BaseModel):
    """Base for every wire model: camelCase aliases, snake_case accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Error envelope returned on every 4xx/5xx response."""

    model_config = ConfigDict(frozen=True)

    error: str
    code: str
    detail: Optional[str] = None


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Auth and users
# ---------------------------------------------------------------------------


class RegisterRequest(CamelModel):
    """Request body for POST /api/auth/register.

    role is optional. Anything other than "user" is only honoured for the
    very first account or when the caller is an authenticated admin.
    """

    username: str = Field(min_length=1, max_length=100)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=320)
    password: str = Field(min_length=1, max_length=128)
    role: Optional[Role] = None


class LoginRequest(CamelModel):
    email: str = Field(min_length=1, max_length=320)
    password: str = Field(min_length=1, max_length=128)


class UserResponse(CamelModel):
    """Public view of a principal. The password hash is never part of it."""

    model_config = ConfigDict(frozen=True)

    id: str
    username: str
    email: str
    role: str
    status: str
    created_at: Optional[str] = None

    @classmethod
    def from_entity(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            role=user.role,
            status=user.status,
            created_at=user.created_at or None,
        )


class AuthResponse(CamelModel):
    """Response for POST /api/auth/register and POST /api/auth/login."""

    model_config = ConfigDict(frozen=True)

    token: str
    user: UserResponse


class ProfileUpdate(CamelModel):
    """Request body for PUT /api/users/me. Every field is optional."""

    username: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN, max_length=320)
    password: Optional[str] = Field(default=None, min_length=1, max_length=128)


class RoleUpdate(CamelModel):
    role: Role


class StatusUpdate(CamelModel):
    status: UserStatus


# ---------------------------------------------------------------------------
# Vehicles
# ---------------------------------------------------------------------------


class _VehicleFields(CamelModel):
    @field_validator("mileage", mode="before", check_fields=False)
    @classmethod
    def mileage_as_text(cls, value):
        """Accept numeric mileage from JSON clients; store it as text."""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class VehicleCreate(_VehicleFields):
    """Fields of POST /api/vehicles (multipart form or JSON).

    imageUrls lists images that are already hosted; uploaded files are
    appended after them.
    """

    make: str = Field(min_length=1, max_length=100)
    model: str = Field(min_length=1, max_length=100)
    year: int = Field(ge=_MIN_YEAR, le=_MAX_YEAR)
    price: float = Field(gt=0)
    mileage: str = Field(min_length=1, max_length=50)
    exterior_color: Optional[str] = Field(default=None, max_length=50)
    interior_color: Optional[str] = Field(default=None, max_length=50)
    engine: Optional[str] = Field(default=None, max_length=100)
    transmission: Optional[str] = Field(default=None, max_length=50)
    fuel_type: Optional[str] = Field(default=None, max_length=50)
    description: Optional[str] = Field(default=None, max_length=5000)
    engine_sound: Optional[str] = Field(default=None, max_length=500)
    features: list[str] = Field(default_factory=list, max_length=50)
    image_urls: list[str] = Field(default_factory=list, max_length=20)
    status: VehicleStatus = VehicleStatus.available
    is_featured: bool = False

    def to_entity(self, uploaded_urls: list[str]) -> Vehicle:
        return Vehicle(
            make=self.make,
            model=self.model,
            year=self.year,
            price=self.price,
            mileage=self.mileage,
            exterior_color=self.exterior_color,
            interior_color=self.interior_color,
            engine=self.engine,
            transmission=self.transmission,
            fuel_type=self.fuel_type,
            description=self.description,
            engine_sound=self.engine_sound,
            features=list(self.features),
            image_urls=list(self.image_urls) + list(uploaded_urls),
            status=self.status.value,
            is_featured=self.is_featured,
        )


class VehicleUpdate(_VehicleFields):
    """Request body for PUT /api/vehicles/{id}. Only the fields sent are changed."""

    make: Optional[str] = Field(default=None, min_length=1, max_length=100)
    model: Optional[str] = Field(default=None, min_length=1, max_length=100)
    year: Optional[int] = Field(default=None, ge=_MIN_YEAR, le=_MAX_YEAR)
    price: Optional[float] = Field(default=None, gt=0)
    mileage: Optional[str] = Field(default=None, min_length=1, max_length=50)
    exterior_color: Optional[str] = Field(default=None, max_length=50)
    interior_color: Optional[str] = Field(default=None, max_length=50)
    engine: Optional[str] = Field(default=None, max_length=100)
    transmission: Optional[str] = Field(default=None, max_length=50)
    fuel_type: Optional[str] = Field(default=None, max_length=50)
    description: Optional[str] = Field(default=None, max_length=5000)
    engine_sound: Optional[str] = Field(default=None, max_length=500)
    features: Optional[list[str]] = Field(default=None, max_length=50)
    image_urls: Optional[list[str]] = Field(default=None, max_length=20)
    status: Optional[VehicleStatus] = None
    is_featured: Optional[bool] = None


class VehicleResponse(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    make: str
    model: str
    year: int
    price: float
    mileage: str
    exterior_color: Optional[str]
    interior_color: Optional[str]
    engine: Optional[str]
    transmission: Optional[str]
    fuel_type: Optional[str]
    description: Optional[str]
    engine_sound: Optional[str]
    features: list[str]
    image_urls: list[str]
    status: str
    is_featured: bool
    created_at: str
    updated_at: str

    @classmethod
    def from_entity(cls, vehicle: Vehicle) -> "VehicleResponse":
        """Build a VehicleResponse from a stored Vehicle.

        Factory Method -- the mapping lives beside the output model rather
        than in every route handler.
        """
        return cls(
            id=vehicle.id,
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
            features=vehicle.features,
            image_urls=vehicle.image_urls,
            status=vehicle.status,
            is_featured=vehicle.is_featured,
            created_at=vehicle.created_at,
            updated_at=vehicle.updated_at,
        )


# ---------------------------------------------------------------------------
# Auctions
# ---------------------------------------------------------------------------


class AuctionCreate(CamelModel):
    """Request body for POST /api/auctions.

    Naive timestamps are taken as UTC. endTime must be strictly after startTime.
    """

    vehicle_id: str = Field(min_length=1, max_length=64)
    start_time: datetime
    end_time: datetime
    starting_bid: float = Field(gt=0)
    status: AuctionStatus = AuctionStatus.pending

    @model_validator(mode="after")
    def check_window(self) -> "AuctionCreate":
        self.start_time = _as_utc(self.start_time)
        self.end_time = _as_utc(self.end_time)
        if self.end_time <= self.start_time:
            raise ValueError("endTime must be after startTime.")
        return self

    def to_entity(self) -> Auction:
        return Auction(
            vehicle_id=self.vehicle_id,
            start_time=self.start_time.isoformat(),
            end_time=self.end_time.isoformat(),
            starting_bid=self.starting_bid,
            status=self.status.value,
        )


class AuctionUpdate(CamelModel):
    """Request body for PUT /api/auctions/{id}.

    When only one of startTime/endTime is sent, the route checks the window
    against the stored value of the other.
    """

    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    starting_bid: Optional[float] = Field(default=None, gt=0)
    status: Optional[AuctionStatus] = None

    @model_validator(mode="after")
    def check_window(self) -> "AuctionUpdate":
        if self.start_time is not None:
            self.start_time = _as_utc(self.start_time)
        if self.end_time is not None:
            self.end_time = _as_utc(self.end_time)
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValueError("endTime must be after startTime.")
        return self


class AuctionResponse(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    vehicle_id: str
    start_time: str
    end_time: str
    starting_bid: float
    current_highest_bid: float
    status: str
    created_at: str
    updated_at: str

    @classmethod
    def from_entity(cls, auction: Auction) -> "AuctionResponse":
        return cls(
            id=auction.id,
            vehicle_id=auction.vehicle_id,
            start_time=auction.start_time,
            end_time=auction.end_time,
            starting_bid=auction.starting_bid,
            current_highest_bid=auction.current_highest_bid,
            status=auction.status,
            created_at=auction.created_at,
            updated_at=auction.updated_at,
        )


# ---------------------------------------------------------------------------
# Inquiries
# ---------------------------------------------------------------------------


class InquiryCreate(CamelModel):
    """Request body for POST /api/inquiries."""

    name: str = Field(min_length=1, max_length=255)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=320)
    subject: Optional[str] = Field(default=None, max_length=255)
    message: str = Field(min_length=1, max_length=5000)

    def to_entity(self, user_id: str) -> Inquiry:
        return Inquiry(
            name=self.name,
            email=self.email,
            subject=self.subject,
            message=self.message,
            user_id=user_id,
        )


class InquiryStatusUpdate(CamelModel):
    """Request body for PUT /api/inquiries/{id}/status."""

    status: InquiryStatus
    response: Optional[str] = Field(default=None, max_length=5000)


class UserSummary(CamelModel):
    """Submitter details embedded in admin inquiry views."""

    model_config = ConfigDict(frozen=True)

    id: str
    username: str
    email: str


class InquiryResponse(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str
    subject: Optional[str]
    message: str
    status: str
    response: Optional[str]
    user_id: Optional[str]
    user: Optional[UserSummary] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_entity(cls, inquiry: Inquiry, submitter: Optional[User] = None) -> "InquiryResponse":
        """Build an InquiryResponse, embedding the submitter when it is known."""
        user = None
        if submitter is not None:
            user = UserSummary(id=submitter.id, username=submitter.username, email=submitter.email)
        return cls(
            id=inquiry.id,
            name=inquiry.name,
            email=inquiry.email,
            subject=inquiry.subject,
            message=inquiry.message,
            status=inquiry.status,
            response=inquiry.response,
            user_id=inquiry.user_id,
            user=user,
            created_at=inquiry.created_at,
            updated_at=inquiry.updated_at,
        )
