from __future__ import annotations

import logging
import random
import threading
import time
from datetime import datetime
from typing import Optional

from ambulance_dispatch import config
from ambulance_dispatch.models import Coordinates, EmergencyCall, Event
from ambulance_dispatch.schemas import CallCreate, CoordinatesIn
from ambulance_dispatch.store import DEFAULT_BASE
from ambulance_dispatch.system import DispatchSystem

logger = logging.getLogger(__name__)

KM_PER_DEGREE = 111.0

SAMPLE_ADDRESSES = [
    "Osu, Accra",
    "Tema Station",
    "Kaneshie Market",
    "Legon University",
    "Kotoka Airport",
    "Madina",
    "Dansoman",
    "East Legon",
    "Spintex Road",
]


class FleetSimulator:
    """Periodic driver that stands in for real vehicles and callers.

    Each tick jitters every ambulance, publishes a heartbeat and advances
    assigned calls one step. Calls are generated every ``call_interval``
    seconds. ``tick`` and ``generate_call`` can be called directly with
    synthetic time; ``start`` runs them on a background thread.
    """

    def __init__(
        self,
        system: DispatchSystem,
        tick_seconds: float = config.SIM_TICK_SECONDS,
        call_interval: float = config.SIM_CALL_INTERVAL_SECONDS,
        jitter_degrees: float = config.SIM_JITTER_DEGREES,
        call_radius_km: float = config.SIM_CALL_RADIUS_KM,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.system = system
        self.tick_seconds = tick_seconds
        self.call_interval = call_interval
        self.jitter_degrees = jitter_degrees
        self.call_radius_km = call_radius_km
        self.rng = rng or random.Random()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _jitter(self) -> float:
        return (self.rng.random() - 0.5) * self.jitter_degrees

    def tick(self, now: Optional[datetime] = None) -> list[Event]:
        for ambulance in self.system.list_ambulances():
            moved = Coordinates(
                ambulance.location.latitude + self._jitter(),
                ambulance.location.longitude + self._jitter(),
            )
            self.system.move_ambulance(ambulance.id, moved)
        self.system.publish_tick(now)
        return self.system.progress_calls(now)

    def random_nearby(self, center: Coordinates) -> Coordinates:
        spread = self.call_radius_km / KM_PER_DEGREE
        latitude = center.latitude + (self.rng.random() - 0.5) * 2 * spread
        longitude = center.longitude + (self.rng.random() - 0.5) * 2 * spread
        return Coordinates(max(-90.0, min(90.0, latitude)), max(-180.0, min(180.0, longitude)))

    def generate_call(self) -> EmergencyCall:
        fleet = self.system.list_ambulances()
        center = fleet[0].location if fleet else DEFAULT_BASE
        location = self.random_nearby(center)
        return self.system.intake_call(
            CallCreate(
                location=CoordinatesIn(latitude=location.latitude, longitude=location.longitude),
                severity_level=self.rng.randint(1, 4),
                address=self.rng.choice(SAMPLE_ADDRESSES),
            )
        )

    def _run(self) -> None:
        next_call_at = time.monotonic() + self.call_interval
        while not self._stop.wait(self.tick_seconds):
            self.tick()
            if time.monotonic() >= next_call_at:
                self.generate_call()
                next_call_at = time.monotonic() + self.call_interval

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="fleet-simulator", daemon=True)
        self._thread.start()
        logger.info("Simulator started (tick %.1fs, new call every %.1fs)", self.tick_seconds, self.call_interval)

    def stop(self, timeout: float = 1.0) -> None:
        if self._thread is None:
            return
        self._stop.set()
        self._thread.join(timeout=timeout)
        self._thread = None
        logger.info("Simulator stopped")
