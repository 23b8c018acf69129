"""
Pydantic Models - request payloads and status enums

Field names are snake_case in Python and camelCase on the wire
(serialize with `to_payload()`).
"""

from datetime import date, datetime, time, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel


# ============================================================
# Enums
# ============================================================

class BookingStatus(str, Enum):
    """Vaccination booking lifecycle."""
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


class OrderStatus(str, Enum):
    """Shop order lifecycle."""
    PENDING = "pending"
    APPROVED = "approved"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


# ============================================================
# Wire models
# ============================================================

class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class PatientInfo(WireModel):
    """Pet owner details (step 2 of the booking form)."""
    name: str
    phone_number: str
    city: str
    address: str
    special_instructions: str = ""


class DogInfo(WireModel):
    """Pet details (step 3 of the booking form)."""
    name: str
    breed: str
    behaviour: str


class VaccineDose(WireModel):
    name: str
    dose_number: int = 1


class VaccinationBookingCreate(WireModel):
    """Body of POST /api/vaccinations."""
    patient: PatientInfo
    dog: DogInfo
    vaccines: List[VaccineDose]
    total_amount: float = 0
    user_email: str
    appointment_date: date
    appointment_time: str
    vaccination_center: str

    @field_serializer("appointment_date")
    def _serialize_date(self, value: date) -> str:
        # Midnight UTC, e.g. "2026-11-01T00:00:00Z"
        return datetime.combine(value, time.min, tzinfo=timezone.utc).isoformat().replace("+00:00", "Z")


class OrderCustomer(WireModel):
    name: str
    phone_number: str
    city: str
    colony: str
    order_notes: str = ""


class OrderLine(WireModel):
    name: str
    quantity: int = Field(ge=1)
    price: float = Field(ge=0)
    product_id: Optional[str] = None


class OrderCreate(WireModel):
    """Body of POST /api/orders; `total` and `total_amount` always agree."""
    customer: OrderCustomer
    products: List[OrderLine]
    total: float
    total_amount: float
    user_email: str
