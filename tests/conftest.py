from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from ambulance_dispatch.events import EventBus
from ambulance_dispatch.models import Event
from ambulance_dispatch.schemas import AmbulanceUpsert, CallCreate
from ambulance_dispatch.store import DispatchStore
from ambulance_dispatch.system import DispatchSystem


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> datetime:
        self.current = self.current + timedelta(seconds=seconds)
        return self.current


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def system(clock: FakeClock) -> DispatchSystem:
    return DispatchSystem(store=DispatchStore(clock=clock), bus=EventBus())


@pytest.fixture
def received(system: DispatchSystem) -> list[Event]:
    events: list[Event] = []
    system.bus.subscribe(events.append)
    return events


def ambulance_payload(vehicle_id: str, lat: float, lng: float, level: str = "advanced",
                      status: str = "available", crew_size: int = 2, id: int | None = None) -> AmbulanceUpsert:
    return AmbulanceUpsert(
        id=id,
        vehicle_id=vehicle_id,
        status=status,
        location={"latitude": lat, "longitude": lng},
        equipment_level=level,
        crew_size=crew_size,
    )


def call_payload(lat: float = 5.6037, lng: float = -0.1870, severity: int = 1, **extra) -> CallCreate:
    return CallCreate(location={"latitude": lat, "longitude": lng}, severity_level=severity, **extra)
