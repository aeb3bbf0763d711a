"""Core data models for the CampusNest unlock client."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, List, Optional, TypeVar


@dataclass(frozen=True)
class Price:
    amount: float = 0
    period: str = "month"
    currency: str = "KES"
    negotiable: bool = False


@dataclass(frozen=True)
class Measure:
    """A numeric value with a unit, e.g. a distance or a floor size."""

    value: Optional[float] = None
    unit: str = ""

    def display(self, fallback: str = "N/A") -> str:
        if self.value is None:
            return fallback
        value = int(self.value) if float(self.value).is_integer() else self.value
        return f"{value} {self.unit}".strip()


@dataclass(frozen=True)
class Location:
    area: str = "Unknown Area"
    nearest_campus: str = ""
    distance_from_campus: Measure = field(default_factory=lambda: Measure(unit="km"))


@dataclass(frozen=True)
class Specifications:
    bedrooms: int = 0
    bathrooms: int = 0
    property_type: str = "Apartment"
    size: Measure = field(default_factory=lambda: Measure(unit="sqm"))
    furnished: str = ""


@dataclass(frozen=True)
class Availability:
    vacancies: int = 0
    available_from: str = "Available Now"
    status: str = "available"


@dataclass(frozen=True)
class GpsCoordinates:
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def is_set(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass(frozen=True)
class Caretaker:
    name: str = ""
    phone: str = ""
    alternative_phone: str = ""
    whatsapp: str = ""
    available_hours: str = ""


@dataclass(frozen=True)
class Premium:
    """Premium block; always present, ``redacted`` tells real values from placeholders."""

    exact_address: str
    gps_coordinates: GpsCoordinates
    caretaker: Caretaker
    landmarks: tuple = ()
    redacted: bool = False


@dataclass(frozen=True)
class PropertyRecord:
    """Canonical view of a property, independent of the source document shape."""

    property_id: str
    title: str
    description: str
    price: Price
    location: Location
    specifications: Specifications
    availability: Availability
    premium: Premium
    amenities: tuple = ()
    images: tuple = ()
    is_featured: bool = False
    unlocked_hint: Optional[bool] = None
    locked: bool = True


@dataclass(frozen=True)
class EntitlementGrant:
    """A viewer's durable right to see one property's premium fields."""

    viewer_id: str
    property_id: str
    unlocked_at: str
    payment_reference: str


class SessionStatus(str, Enum):
    INITIATED = "initiated"
    AWAITING_RETURN = "awaiting_return"
    VERIFYING = "verifying"
    VERIFIED = "verified"
    FAILED = "failed"


@dataclass
class PaymentSession:
    """One payment attempt, keyed by the provider-issued reference."""

    reference: str
    property_id: str
    viewer_id: str
    status: SessionStatus
    authorization_url: str
    created_at: str
    updated_at: str
    failure_reason: str | None = None
    # property id named by the verify response, if any
    verified_property_id: str | None = None


@dataclass(frozen=True)
class InitiateResult:
    reference: str | None
    authorization_url: str | None
    already_unlocked: bool = False


@dataclass(frozen=True)
class VerifyResult:
    """Parsed verification response from the marketplace API."""

    unlocked: bool
    property_id: str | None
    message: str = ""


class ReconcilerState(str, Enum):
    AWAITING_REFERENCE = "awaiting_reference"
    VERIFYING = "verifying"
    VERIFIED = "verified"
    FAILED = "failed"


@dataclass(frozen=True)
class CallbackOutcome:
    """Terminal result of one callback reconciliation."""

    state: ReconcilerState
    route: str
    message: str
    reference: str | None = None
    property_id: str | None = None
    grant: EntitlementGrant | None = None
    error: Exception | None = None
    retryable: bool = False

    @property
    def verified(self) -> bool:
        return self.state is ReconcilerState.VERIFIED


TAdded = TypeVar("TAdded")
TRemoved = TypeVar("TRemoved")


@dataclass
class DiffResult(Generic[TAdded, TRemoved]):
    """Holds the result of comparing two item sets."""

    added: List[TAdded]
    removed: List[TRemoved]
    unchanged: List[TAdded]


def utc_now() -> str:
    """Current UTC time as an ISO 8601 string."""
    return dt.datetime.now(dt.timezone.utc).isoformat()
