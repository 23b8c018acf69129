"""Vaccination bookings: the booking wizard and booking management."""
from .centers import VACCINATION_CENTERS, VaccinationCenter, get_center
from .manager import BookingDetails, BookingManager, filter_bookings
from .wizard import BookingConfirmation, BookingForm, BookingStep, BookingWizard

__all__ = [
    "VACCINATION_CENTERS",
    "BookingConfirmation",
    "BookingDetails",
    "BookingForm",
    "BookingManager",
    "BookingStep",
    "BookingWizard",
    "VaccinationCenter",
    "filter_bookings",
    "get_center",
]
