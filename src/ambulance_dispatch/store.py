from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional

from ambulance_dispatch.models import (
    Ambulance,
    AmbulanceStatus,
    Coordinates,
    DispatchRecord,
    EmergencyCall,
    EquipmentLevel,
    utcnow,
)

# Accra, Ghana
DEFAULT_BASE = Coordinates(5.6037, -0.1870)

SEED_UNITS = [
    (1, 0.01, 0.01, EquipmentLevel.ADVANCED, AmbulanceStatus.AVAILABLE),
    (2, -0.015, 0.005, EquipmentLevel.BASIC, AmbulanceStatus.AVAILABLE),
    (3, 0.02, -0.005, EquipmentLevel.CRITICAL, AmbulanceStatus.TRANSPORTING),
    (4, 0.005, -0.01, EquipmentLevel.ADVANCED, AmbulanceStatus.AVAILABLE),
    (5, -0.01, -0.005, EquipmentLevel.BASIC, AmbulanceStatus.EN_ROUTE),
]


class DispatchStore:
    """Owns the fleet, call and dispatch collections for one process.

    Entities reference each other by id only. The store does no locking;
    callers serialize access.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self.clock = clock
        self.ambulances: dict[int, Ambulance] = {}
        self.calls: dict[int, EmergencyCall] = {}
        self.dispatches: dict[int, DispatchRecord] = {}
        self._ids = {"ambulance": 1, "call": 1, "dispatch": 1}

    def next_id(self, kind: str) -> int:
        value = self._ids[kind]
        self._ids[kind] = value + 1
        return value

    def seed_if_empty(self, base: Coordinates = DEFAULT_BASE) -> list[Ambulance]:
        if self.ambulances:
            return []
        seeded = []
        for index, dlat, dlng, level, status in SEED_UNITS:
            ambulance = Ambulance(
                id=self.next_id("ambulance"),
                vehicle_id=f"GH-AMB-{100 + index}",
                status=status,
                location=Coordinates(base.latitude + dlat, base.longitude + dlng),
                equipment_level=level,
                crew_size=2 + (index % 2),
                last_updated=self.clock(),
            )
            self.ambulances[ambulance.id] = ambulance
            seeded.append(ambulance)
        return seeded

    def upsert_ambulance(
        self,
        vehicle_id: str,
        status: AmbulanceStatus,
        location: Coordinates,
        equipment_level: EquipmentLevel,
        crew_size: int,
        ambulance_id: Optional[int] = None,
    ) -> tuple[Ambulance, bool]:
        """Replace the ambulance with ``ambulance_id`` or add a new one.

        Returns the stored ambulance and whether it was created. An id that
        is not yet known is kept as given.
        """
        created = ambulance_id is None or ambulance_id not in self.ambulances
        if ambulance_id is None:
            ambulance_id = self.next_id("ambulance")
        elif ambulance_id >= self._ids["ambulance"]:
            self._ids["ambulance"] = ambulance_id + 1

        ambulance = Ambulance(
            id=ambulance_id,
            vehicle_id=vehicle_id,
            status=status,
            location=location,
            equipment_level=equipment_level,
            crew_size=crew_size,
            last_updated=self.clock(),
        )
        self.ambulances[ambulance.id] = ambulance
        return ambulance, created

    def move_ambulance(self, ambulance_id: int, location: Coordinates) -> Ambulance:
        ambulance = self.ambulances[ambulance_id]
        ambulance.location = location
        ambulance.last_updated = self.clock()
        return ambulance

    def create_call(
        self,
        location: Coordinates,
        severity_level: int,
        caller_phone: Optional[str] = None,
        address: Optional[str] = None,
    ) -> EmergencyCall:
        call = EmergencyCall(
            id=self.next_id("call"),
            location=location,
            severity_level=severity_level,
            call_time=self.clock(),
            caller_phone=caller_phone,
            address=address,
        )
        self.calls[call.id] = call
        return call

    def add_dispatch(self, dispatch: DispatchRecord) -> DispatchRecord:
        self.dispatches[dispatch.id] = dispatch
        return dispatch

    def dispatch_for_call(self, call_id: int) -> Optional[DispatchRecord]:
        """Most recent dispatch record serving ``call_id``."""
        matches = [d for d in self.dispatches.values() if d.call_id == call_id]
        return matches[-1] if matches else None

    def fleet_snapshot(self) -> list[Ambulance]:
        return [replace(amb) for amb in self.ambulances.values()]
