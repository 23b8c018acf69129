"""Vaccination center directory shown on booking confirmations."""
from dataclasses import dataclass
from typing import Optional

from gharpaluwa.config import DEFAULT_VACCINATION_CENTER


@dataclass(frozen=True)
class VaccinationCenter:
    name: str
    address: str
    coordinates: tuple[float, float]
    phone: str
    hours: str


VACCINATION_CENTERS: dict[str, VaccinationCenter] = {
    "Main Center": VaccinationCenter(
        name="Main Center",
        address="Radhe Radhe, Bhaktapur",
        coordinates=(27.7172, 85.3240),
        phone="+977-1-4123456",
        hours="9:00 AM - 5:00 PM",
    ),
}


def get_center(name: Optional[str]) -> Optional[VaccinationCenter]:
    """Look up a center; bookings without one use the default center."""
    return VACCINATION_CENTERS.get(name or DEFAULT_VACCINATION_CENTER)
