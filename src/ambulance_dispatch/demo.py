from __future__ import annotations

import logging

from ambulance_dispatch import config
from ambulance_dispatch.schemas import CallCreate, CoordinatesIn
from ambulance_dispatch.system import DispatchSystem


def main() -> None:
    logging.basicConfig(level=config.LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")

    system = DispatchSystem()
    system.seed_fleet()

    call = system.intake_call(
        CallCreate(
            location=CoordinatesIn(latitude=5.6037, longitude=-0.1870),
            severity_level=1,
            address="Osu, Accra",
        )
    )

    print("=== Ambulance Dispatch Decision ===")
    print(f"Call {call.id}: severity {call.severity_level} at {call.address}")
    print("\nCandidates:")
    for item in system.candidates(call.id):
        print(
            f" - {item.ambulance.vehicle_id} ({item.ambulance.equipment_level.value}, "
            f"{item.ambulance.status.value}): score={item.score.total:.3f}, "
            f"distance={item.score.distance_km:.2f} km, ETA={item.score.travel_minutes:.1f} min"
        )

    outcome = system.dispatch_call(call.id)
    print(f"\nDispatched {outcome.ambulance.vehicle_id} (dispatch #{outcome.dispatch.id}).")

    for _ in range(2):
        system.progress_calls()
    record = system.list_dispatches()[0]
    print(f"Call status: {system.get_call(call.id).status.value}; response time {record.response_time_seconds}s")


if __name__ == "__main__":
    main()
