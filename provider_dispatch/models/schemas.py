"""Data classes and schemas for offers, job records and claims."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from pydantic import BaseModel, ConfigDict, Field, AliasChoices, PrivateAttr, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import ValidationError
from ..utils.geo import haversine_km, format_distance, eta_minutes
from .enums import ClaimOutcome, JobStatus


@dataclass
class CircuitBreakerConfig:
    """Circuit breaker configuration."""
    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    half_open_max_calls: int = 3


@dataclass
class RetryConfig:
    """Retry configuration."""
    max_attempts: int = 10
    base_delay: float = 1.0
    max_delay: float = 5.0
    exponential_base: float = 2.0


@dataclass(frozen=True)
class OfferDistance:
    """Distance and travel estimate from a provider to a customer."""
    distance_km: float
    distance_formatted: str
    eta_minutes: int


class CustomerLocation(BaseModel):
    """Customer address as sent with an offer."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    pincode: Optional[str] = None
    city: Optional[str] = None

    @field_validator("pincode", mode="before")
    @classmethod
    def _pincode_as_text(cls, value):
        return None if value is None else str(value)

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _lenient_coordinate(cls, value):
        if value is None or value == "":
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class JobOffer(BaseModel):
    """An inbound candidate booking pushed by the dispatch server.

    The platform sends the same concept under several field names depending on
    whether the booking came from the consultation or the home-services flow,
    so every field accepts each spelling seen on the wire.
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = Field(default=None, validation_alias=AliasChoices("consultationId", "id", "bookingId"))
    customer_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("customerId", "patientId"))
    customer_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("customerName", "patientName"))
    customer_phone: Optional[str] = Field(default=None, validation_alias=AliasChoices("customerPhone", "patientPhone"))
    service_type: Optional[str] = Field(default=None, validation_alias=AliasChoices("serviceType", "service_type"))
    problem: Optional[str] = Field(default=None, validation_alias=AliasChoices("problem", "symptoms", "description"))
    scheduled_time: Optional[datetime] = Field(default=None, validation_alias=AliasChoices("scheduledTime", "scheduled_time"))
    fee: Optional[float] = Field(default=None, validation_alias=AliasChoices("consultationFee", "serviceFee", "fee"))
    customer_address: Optional[CustomerLocation] = Field(
        default=None, validation_alias=AliasChoices("customerAddress", "patientAddress")
    )

    _raw: Dict[str, Any] = PrivateAttr(default_factory=dict)

    @field_validator("id", "customer_id", "customer_phone", mode="before")
    @classmethod
    def _identifier_as_text(cls, value):
        if value is None or value == "":
            return None
        return str(value)

    @field_validator("customer_name", "service_type", "problem", mode="before")
    @classmethod
    def _lenient_text(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value if isinstance(value, str) else None

    @field_validator("fee", mode="before")
    @classmethod
    def _lenient_fee(cls, value):
        if value is None or value == "":
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    @field_validator("scheduled_time", mode="before")
    @classmethod
    def _lenient_time(cls, value):
        return parse_timestamp(value)

    @field_validator("customer_address", mode="before")
    @classmethod
    def _address_from_text(cls, value):
        if isinstance(value, str):
            return {"address": value}
        if value is not None and not isinstance(value, (dict, CustomerLocation)):
            return None
        return value

    @classmethod
    def from_payload(cls, payload: Any) -> "JobOffer":
        """Build an offer from a raw event payload, keeping the payload."""
        if isinstance(payload, JobOffer):
            return payload
        if not isinstance(payload, dict):
            raise ValidationError("Offer payload must be an object", field="payload")
        try:
            offer = cls.model_validate(payload)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid offer payload: {_first_error(e)}", field="payload") from e
        offer._raw = dict(payload)
        return offer

    @property
    def raw(self) -> Dict[str, Any]:
        return self._raw

    def require_id(self) -> str:
        if not self.id or not self.id.strip():
            raise ValidationError("Consultation ID not found in booking data", field="id")
        return self.id

    def distance_from(self, latitude: float, longitude: float) -> Optional[OfferDistance]:
        """Distance and ETA from the given provider position, if the customer location is known."""
        if not self.customer_address or not self.customer_address.has_coordinates:
            return None
        distance = haversine_km(latitude, longitude, self.customer_address.latitude, self.customer_address.longitude)
        return OfferDistance(
            distance_km=distance,
            distance_formatted=format_distance(distance),
            eta_minutes=eta_minutes(distance),
        )

    def summary(self) -> Dict[str, Any]:
        return {
            "offer_id": self.id,
            "customer_name": self.customer_name,
            "service_type": self.service_type,
        }


class ProviderProfile(BaseModel):
    """Provider display details denormalized onto an accepted job."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: Optional[str] = Field(default=None, validation_alias=AliasChoices("name", "providerName"))
    phone: Optional[str] = Field(default=None, validation_alias=AliasChoices("phoneNumber", "phone"))
    email: Optional[str] = None
    specialization: Optional[str] = Field(default=None, validation_alias=AliasChoices("specialization", "specialty"))
    rating: float = 0.0
    profile_image: Optional[str] = Field(default=None, validation_alias=AliasChoices("profileImage", "profile_image"))
    address: Optional[Any] = None

    @field_validator("rating", mode="before")
    @classmethod
    def _lenient_rating(cls, value):
        try:
            return float(value) if value is not None else 0.0
        except (TypeError, ValueError):
            return 0.0

    @field_validator("name", "phone", "email", "specialization", "profile_image", mode="before")
    @classmethod
    def _text_or_none(cls, value):
        if value is None or value == "":
            return None
        if isinstance(value, (str, int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @classmethod
    def from_any(cls, value: Any) -> Optional["ProviderProfile"]:
        if value is None or isinstance(value, ProviderProfile):
            return value
        try:
            return cls.model_validate(value)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid provider profile: {_first_error(e)}", field="provider_profile") from e

    @property
    def display_name(self) -> str:
        return self.name or "Provider"

    def claim_fields(self) -> Dict[str, Any]:
        """Fields written to the job record alongside the claim."""
        return {
            "providerName": self.name or "",
            "providerPhone": self.phone or "",
            "providerEmail": self.email or "",
            "providerSpecialization": self.specialization or "",
            "providerRating": self.rating,
            "providerImage": self.profile_image or "",
            "providerAddress": self.address,
        }


@dataclass
class JobRecord:
    """Durable job/consultation entity as held by the shared store."""
    id: str
    status: str = JobStatus.PENDING.value
    provider_id: Optional[str] = None
    customer_id: Optional[str] = None
    service_type: Optional[str] = None
    provider_details: Dict[str, Any] = field(default_factory=dict)
    rejection_reason: Optional[str] = None
    updated_at: Optional[datetime] = None
    version: int = 1

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "JobRecord":
        """Build a record from a camelCase document as stored by the mobile apps."""
        details = {k: v for k, v in data.items() if k.startswith("provider") and k != "providerId"}
        return cls(
            id=doc_id,
            status=data.get("status") or JobStatus.PENDING.value,
            provider_id=data.get("providerId") or data.get("doctorId"),
            customer_id=data.get("customerId") or data.get("patientId"),
            service_type=data.get("serviceType"),
            provider_details=details,
            rejection_reason=data.get("rejectionReason"),
            updated_at=parse_timestamp(data.get("updatedAt")),
            version=int(data.get("version") or 1),
        )


@dataclass
class ClaimAttempt:
    """Outcome of a single atomic claim against the store."""
    outcome: ClaimOutcome
    record: Optional[JobRecord] = None


@dataclass
class ClaimResult:
    """Successful accept of an offer."""
    job_id: str
    provider_id: str
    already_owned: bool = False
    record: Optional[JobRecord] = None


def _first_error(error: PydanticValidationError) -> str:
    """Compact "field: message" text for the first pydantic error."""
    details = error.errors()
    if not details:
        return str(error)
    first = details[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "value"
    return f"{location}: {first.get('msg', 'invalid')}"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse the loosely formatted timestamps the platform sends.

    Accepts datetimes, ISO-8601 strings (with or without a trailing ``Z``),
    epoch milliseconds and Firestore-style ``{"_seconds": ...}`` maps.
    Anything else yields ``None``.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, dict):
        seconds = value.get("_seconds", value.get("seconds"))
        if seconds is None:
            return None
        try:
            return datetime.fromtimestamp(float(seconds), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return None
    return None
