from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from typing import Iterable, Optional

from ambulance_dispatch.models import Coordinates


@dataclass
class Hospital:
    id: int
    name: str
    location: Coordinates
    capacity: int
    current_occupancy: int
    emergency_beds: int
    available_emergency_beds: int
    specialties: list[str] = field(default_factory=list)
    status: str = "operational"
    contact_number: str = ""


DEFAULT_HOSPITALS = [
    Hospital(1, "Korle Bu Teaching Hospital", Coordinates(5.5447, -0.2315), 2000, 1650, 50, 12,
             ["Cardiology", "Neurology", "Trauma", "ICU"], contact_number="+233-30-2665401"),
    Hospital(2, "37 Military Hospital", Coordinates(5.5731, -0.1864), 400, 320, 25, 8,
             ["Emergency Medicine", "Surgery", "Orthopedics"], contact_number="+233-30-2776111"),
    Hospital(3, "Ridge Hospital", Coordinates(5.5731, -0.1969), 200, 180, 15, 3,
             ["General Medicine", "Pediatrics", "Maternity"], contact_number="+233-30-2225441"),
    Hospital(4, "Tema General Hospital", Coordinates(5.6698, -0.0166), 300, 240, 20, 7,
             ["Emergency Medicine", "Surgery", "Internal Medicine"], contact_number="+233-30-3202441"),
    Hospital(5, "La General Hospital", Coordinates(5.5731, -0.1664), 150, 135, 12, 2,
             ["General Medicine", "Emergency Care"], contact_number="+233-30-2777441"),
]


class HospitalRegistry:
    """Mock hospital directory; only emergency bed counts change."""

    def __init__(self, hospitals: Iterable[Hospital] = DEFAULT_HOSPITALS) -> None:
        self._hospitals: dict[int, Hospital] = {h.id: replace(h, specialties=list(h.specialties)) for h in hospitals}
        self._lock = threading.Lock()

    def list_hospitals(self) -> list[Hospital]:
        with self._lock:
            return [replace(h) for h in self._hospitals.values()]

    def adjust_beds(self, hospital_id: int, delta: int) -> Optional[Hospital]:
        """Shift available emergency beds by ``delta``, never below zero or above the total."""
        with self._lock:
            hospital = self._hospitals.get(hospital_id)
            if hospital is None:
                return None
            beds = hospital.available_emergency_beds + delta
            hospital.available_emergency_beds = max(0, min(hospital.emergency_beds, beds))
            return replace(hospital)
