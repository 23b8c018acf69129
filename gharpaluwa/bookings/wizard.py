"""
Vaccination booking wizard.

Three-step form behind the "Schedule Vaccination" button:

    APPOINTMENT -> OWNER -> PET -> SUBMITTED

Forward moves are gated by per-step field checks; back moves are allowed
from OWNER and PET. Submission posts the composed booking and ends the
wizard; a failed submission stays on PET with the server's message.
"""

import time as _time
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import IntEnum
from typing import Any, Mapping, Optional, Union

from gharpaluwa.config import DEFAULT_VACCINATION_CENTER
from gharpaluwa.errors import (
    ERROR_APPOINTMENT_REQUIRED,
    ERROR_EMAIL_UNAVAILABLE,
    ERROR_FIELDS_REQUIRED,
    ERROR_INVALID_PHONE,
    ERROR_LOGIN_REQUIRED_BOOKING,
    ERROR_OWNER_INFO_REQUIRED,
    AuthenticationRequiredError,
    FormValidationError,
    WizardStateError,
)
from gharpaluwa.logging import get_logger, sanitize_id_for_logging, sanitize_string_for_logging
from gharpaluwa.models import DogInfo, PatientInfo, VaccinationBookingCreate, VaccineDose
from gharpaluwa.services.api_client import GharPaluwaClient, record_id
from gharpaluwa.services.money import to_float
from gharpaluwa.services.scope import RequestScope
from gharpaluwa.utils.validators import is_valid_booking_phone, missing_fields, resolve_user_email

logger = get_logger(__name__)

DateInput = Union[date, str, None]


class BookingStep(IntEnum):
    APPOINTMENT = 1
    OWNER = 2
    PET = 3
    SUBMITTED = 4


@dataclass
class BookingForm:
    """Raw form values as typed by the user."""
    appointment_date: DateInput = None
    appointment_time: str = ""
    patient_name: str = ""
    phone_number: str = ""
    city: str = ""
    address: str = ""
    special_instructions: str = ""
    dog_name: str = ""
    dog_breed: str = ""
    dog_behaviour: str = ""

    def required_fields(self) -> list[tuple[str, Any]]:
        """(label, value) for every required field, in form order."""
        return [
            ("Appointment Date", self.appointment_date),
            ("Appointment Time", self.appointment_time),
            ("Patient Name", self.patient_name),
            ("Phone Number", self.phone_number),
            ("City", self.city),
            ("Address", self.address),
            ("Dog Name", self.dog_name),
            ("Dog Breed", self.dog_breed),
            ("Dog Behaviour", self.dog_behaviour),
        ]


@dataclass
class BookingConfirmation:
    """What the confirmation page shows after a successful booking."""
    booking_id: str
    details: dict
    record: dict = field(default_factory=dict)

    @property
    def reference(self) -> str:
        return self.booking_id[-8:]


def parse_appointment_date(value: DateInput) -> date:
    """Accept a date, a datetime, or an ISO "YYYY-MM-DD" string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise FormValidationError(
            f"Invalid appointment date: {value!r}", missing_fields=["Appointment Date"]
        ) from None


class BookingWizard:
    """
    State machine for one booking modal.

    The wizard owns a RequestScope: close() cancels a submission still in
    flight, and the late response is discarded.
    """

    def __init__(
        self,
        client: GharPaluwaClient,
        product_name: str,
        product_price: Any = 0,
        vaccination_center: str = DEFAULT_VACCINATION_CENTER,
    ):
        self.client = client
        self.product_name = product_name
        self.product_price = product_price
        self.vaccination_center = vaccination_center

        self.form = BookingForm()
        self.step = BookingStep.APPOINTMENT
        self.is_open = False
        self.is_submitting = False
        self.user_email: Optional[str] = None
        self._scope = RequestScope(f"booking:{product_name}")

    # ---- lifecycle ----

    def _ensure_active(self) -> None:
        if self.step == BookingStep.SUBMITTED:
            raise WizardStateError("Booking already submitted")
        if not self.is_open:
            raise WizardStateError("Booking form is not open")

    def open(self, user: Optional[Mapping[str, Any]]) -> None:
        """
        Open the modal for a logged-in user.

        Raises:
            AuthenticationRequiredError: no user is logged in
        """
        if self.step == BookingStep.SUBMITTED:
            raise WizardStateError("Booking already submitted")
        if not user:
            raise AuthenticationRequiredError(ERROR_LOGIN_REQUIRED_BOOKING)

        self.user_email = resolve_user_email(user)
        if self.user_email is None:
            logger.error("No valid email found in user record")

        display_name = user.get("displayName")
        if display_name and not self.form.patient_name:
            self.form.patient_name = display_name

        if self._scope.cancelled:
            self._scope = RequestScope(f"booking:{self.product_name}")
        self.is_open = True

    def close(self) -> None:
        """Close the modal: cancel a pending submission and go back to step 1."""
        self._scope.cancel()
        self.is_open = False
        self.is_submitting = False
        if self.step != BookingStep.SUBMITTED:
            self.step = BookingStep.APPOINTMENT

    def reset(self) -> None:
        """Clear every field and return to step 1."""
        self.form = BookingForm()
        if self.step != BookingStep.SUBMITTED:
            self.step = BookingStep.APPOINTMENT

    # ---- field entry ----

    def set_appointment(self, appointment_date: DateInput, appointment_time: str) -> None:
        self._ensure_active()
        self.form.appointment_date = appointment_date
        self.form.appointment_time = appointment_time

    def set_owner(
        self,
        name: str,
        phone_number: str,
        city: str,
        address: str,
        special_instructions: str = "",
    ) -> None:
        self._ensure_active()
        self.form.patient_name = name
        self.form.phone_number = phone_number
        self.form.city = city
        self.form.address = address
        self.form.special_instructions = special_instructions

    def set_pet(self, name: str, breed: str, behaviour: str) -> None:
        self._ensure_active()
        self.form.dog_name = name
        self.form.dog_breed = breed
        self.form.dog_behaviour = behaviour

    # ---- navigation ----

    def validate_step(self, step: Optional[BookingStep] = None) -> None:
        """
        Check the fields of one step.

        Raises:
            FormValidationError: with the labels of the missing fields
        """
        step = step or self.step
        form = self.form
        if step == BookingStep.APPOINTMENT:
            missing = missing_fields(form.required_fields()[:2])
            if missing:
                raise FormValidationError(ERROR_APPOINTMENT_REQUIRED, missing)
            parse_appointment_date(form.appointment_date)
        elif step == BookingStep.OWNER:
            missing = missing_fields(form.required_fields()[2:6])
            if missing:
                raise FormValidationError(ERROR_OWNER_INFO_REQUIRED, missing)
            if not is_valid_booking_phone(form.phone_number):
                raise FormValidationError(ERROR_INVALID_PHONE, ["Phone Number"])

    def next_step(self) -> BookingStep:
        self._ensure_active()
        if self.step == BookingStep.PET:
            raise WizardStateError("Last step: submit the booking instead")
        self.validate_step()
        self.step = BookingStep(self.step + 1)
        return self.step

    def previous_step(self) -> BookingStep:
        self._ensure_active()
        if self.step not in (BookingStep.OWNER, BookingStep.PET):
            raise WizardStateError("Already on the first step")
        self.step = BookingStep(self.step - 1)
        return self.step

    # ---- submission ----

    def build_payload(self) -> VaccinationBookingCreate:
        """
        Validate every field and compose the booking request.

        Raises:
            FormValidationError: missing fields or bad phone number
        """
        form = self.form
        missing = missing_fields(form.required_fields())
        if missing:
            raise FormValidationError(f"{ERROR_FIELDS_REQUIRED}: {', '.join(missing)}", missing)
        if not is_valid_booking_phone(form.phone_number):
            raise FormValidationError(ERROR_INVALID_PHONE, ["Phone Number"])
        if not self.user_email:
            raise AuthenticationRequiredError(ERROR_EMAIL_UNAVAILABLE)

        return VaccinationBookingCreate(
            patient=PatientInfo(
                name=form.patient_name,
                phone_number=form.phone_number,
                city=form.city,
                address=form.address,
                special_instructions=form.special_instructions,
            ),
            dog=DogInfo(name=form.dog_name, breed=form.dog_breed, behaviour=form.dog_behaviour),
            vaccines=[VaccineDose(name=self.product_name, dose_number=1)],
            total_amount=to_float(self.product_price),
            user_email=self.user_email,
            appointment_date=parse_appointment_date(form.appointment_date),
            appointment_time=form.appointment_time,
            vaccination_center=self.vaccination_center,
        )

    async def submit(self) -> BookingConfirmation:
        """
        Post the booking.

        Raises:
            WizardStateError: not on the last step, or a submission is in flight
            FormValidationError / AuthenticationRequiredError: before any request
            ApiError: the server refused or could not be reached (stays on PET)
            RequestCancelledError: the modal was closed while waiting
        """
        self._ensure_active()
        if self.step != BookingStep.PET:
            raise WizardStateError("Complete all steps before submitting")
        if self.is_submitting:
            raise WizardStateError("Booking is already being submitted")

        payload = self.build_payload().to_payload()

        self.is_submitting = True
        try:
            record = await self._scope.run(self.client.create_booking(payload))
        except Exception as e:
            logger.error(
                f"Vaccination booking failed for {sanitize_string_for_logging(self.product_name)}: {e}"
            )
            raise
        finally:
            self.is_submitting = False

        booking_id = record_id(record) or str(int(_time.time() * 1000))
        confirmation = BookingConfirmation(
            booking_id=booking_id,
            details={**payload, "bookingId": booking_id},
            record=record if isinstance(record, dict) else {},
        )
        logger.info(f"Vaccination booking successful: {sanitize_id_for_logging(booking_id)}")

        self.reset()
        self.step = BookingStep.SUBMITTED
        self.is_open = False
        return confirmation


__all__ = [
    "BookingConfirmation",
    "BookingForm",
    "BookingStep",
    "BookingWizard",
    "parse_appointment_date",
]
