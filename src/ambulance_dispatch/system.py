from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import Optional

from ambulance_dispatch import lifecycle
from ambulance_dispatch.errors import CallNotFound, InvalidCallState, NoAmbulanceAvailable
from ambulance_dispatch.events import EventBus
from ambulance_dispatch.intelligence import DispatchIntelligenceEngine
from ambulance_dispatch.models import (
    Ambulance,
    CallStatus,
    Coordinates,
    DispatchOutcome,
    DispatchRecord,
    EmergencyCall,
    Event,
    EventType,
    Selection,
)
from ambulance_dispatch.schemas import AmbulanceUpsert, CallCreate
from ambulance_dispatch.store import DispatchStore

logger = logging.getLogger(__name__)


def _snapshot(event: Event) -> Event:
    if isinstance(event.payload, datetime):
        return event
    return Event(event.type, replace(event.payload))


class DispatchSystem:
    """Coordinates intake, ambulance selection and call progression.

    All reads and writes of the store go through one re-entrant lock, so two
    dispatch attempts for the same call cannot both succeed. Events are
    copies of the affected entities, published while the lock is held so
    subscribers see them in the order the mutations happened. Listeners must
    not block.
    """

    def __init__(
        self,
        store: Optional[DispatchStore] = None,
        bus: Optional[EventBus] = None,
        engine: Optional[DispatchIntelligenceEngine] = None,
    ) -> None:
        self.store = store or DispatchStore()
        self.bus = bus or EventBus()
        self.engine = engine or DispatchIntelligenceEngine()
        self._lock = threading.RLock()

    def now(self) -> datetime:
        return self.store.clock()

    def _emit(self, events: list[Event]) -> None:
        # called with the lock held so subscribers see events in mutation order
        for event in events:
            self.bus.publish(event)

    def seed_fleet(self) -> list[Ambulance]:
        with self._lock:
            seeded = self.store.seed_if_empty()
            self._emit([_snapshot(Event(EventType.AMBULANCE_CREATED, amb)) for amb in seeded])
        if seeded:
            logger.info("Seeded fleet with %d ambulances", len(seeded))
        return [replace(amb) for amb in seeded]

    def list_ambulances(self) -> list[Ambulance]:
        with self._lock:
            return self.store.fleet_snapshot()

    def list_calls(self) -> list[EmergencyCall]:
        with self._lock:
            return [replace(call) for call in self.store.calls.values()]

    def list_dispatches(self) -> list[DispatchRecord]:
        with self._lock:
            return [replace(d) for d in self.store.dispatches.values()]

    def get_call(self, call_id: int) -> EmergencyCall:
        with self._lock:
            return replace(self._require_call(call_id))

    def _require_call(self, call_id: int) -> EmergencyCall:
        call = self.store.calls.get(call_id)
        if call is None:
            raise CallNotFound(call_id)
        return call

    def intake_call(self, data: CallCreate) -> EmergencyCall:
        with self._lock:
            call = self.store.create_call(
                location=data.location.to_model(),
                severity_level=data.severity_level,
                caller_phone=data.caller_phone,
                address=data.address,
            )
            event = _snapshot(Event(EventType.CALL_CREATED, call))
            self._emit([event])
        logger.info("Call %s received (severity %s)", call.id, call.severity_level)
        return event.payload

    def upsert_ambulance(self, data: AmbulanceUpsert) -> Ambulance:
        with self._lock:
            ambulance, created = self.store.upsert_ambulance(
                vehicle_id=data.vehicle_id,
                status=data.status,
                location=data.location.to_model(),
                equipment_level=data.equipment_level,
                crew_size=data.crew_size,
                ambulance_id=data.id,
            )
            kind = EventType.AMBULANCE_CREATED if created else EventType.AMBULANCE_UPDATED
            event = _snapshot(Event(kind, ambulance))
            self._emit([event])
        return event.payload

    def move_ambulance(self, ambulance_id: int, location: Coordinates) -> Ambulance:
        with self._lock:
            ambulance = self.store.move_ambulance(ambulance_id, location)
            event = _snapshot(Event(EventType.AMBULANCE_UPDATED, ambulance))
            self._emit([event])
        return event.payload

    def candidates(self, call_id: int, limit: Optional[int] = None) -> list[Selection]:
        with self._lock:
            call = replace(self._require_call(call_id))
            fleet = self.store.fleet_snapshot()
        return self.engine.rank_ambulances(fleet, call, limit=limit)

    def dispatch_call(self, call_id: int) -> DispatchOutcome:
        with self._lock:
            call = self._require_call(call_id)
            if call.status != CallStatus.PENDING:
                logger.warning("Dispatch rejected: call %s is %s", call_id, call.status.value)
                raise InvalidCallState(call_id, call.status.value, CallStatus.PENDING.value)
            open_dispatch = self.store.dispatch_for_call(call_id)
            if open_dispatch is not None and lifecycle.is_active(open_dispatch):
                raise InvalidCallState(call_id, call.status.value, "no active dispatch")

            selection = self.engine.select_best_ambulance(self.store.fleet_snapshot(), call)
            if selection is None:
                logger.warning("Dispatch rejected: no ambulance available for call %s", call_id)
                raise NoAmbulanceAvailable(call_id)

            dispatch = lifecycle.assign_call(
                call,
                ambulance_id=selection.ambulance.id,
                dispatch_id=self.store.next_id("dispatch"),
                now=self.now(),
                distance_km=round(selection.score.distance_km, 3),
            )
            self.store.add_dispatch(dispatch)
            events = [
                _snapshot(Event(EventType.CALL_UPDATED, call)),
                _snapshot(Event(EventType.DISPATCH_CREATED, dispatch)),
            ]
            self._emit(events)

        logger.info(
            "Dispatched %s to call %s (score %.3f, %.2f km)",
            selection.ambulance.vehicle_id,
            call_id,
            selection.score.total,
            selection.score.distance_km,
        )
        return DispatchOutcome(dispatch=events[1].payload, ambulance=selection.ambulance, score=selection.score)

    def cancel_call(self, call_id: int) -> EmergencyCall:
        with self._lock:
            call = self._require_call(call_id)
            if call.status not in (CallStatus.PENDING, CallStatus.ASSIGNED):
                raise InvalidCallState(call_id, call.status.value, "pending or assigned")
            events = lifecycle.cancel_call(call, self.store.dispatch_for_call(call_id), self.now())
            events = [_snapshot(event) for event in events]
            self._emit(events)
        logger.info("Call %s cancelled", call_id)
        return events[0].payload

    def record_arrival(self, call_id: int) -> DispatchRecord:
        with self._lock:
            call = self._require_call(call_id)
            dispatch = self.store.dispatch_for_call(call_id)
            if dispatch is None or call.status not in (CallStatus.ASSIGNED, CallStatus.EN_ROUTE):
                raise InvalidCallState(call_id, call.status.value, "assigned or en_route")
            lifecycle.record_arrival(dispatch, self.now())
            event = _snapshot(Event(EventType.DISPATCH_UPDATED, dispatch))
            self._emit([event])
        logger.info("Ambulance %s arrived for call %s", dispatch.ambulance_id, call_id)
        return event.payload

    def progress_calls(self, now: Optional[datetime] = None) -> list[Event]:
        """Run one progression step over every call and return what changed."""
        with self._lock:
            now = now or self.now()
            events: list[Event] = []
            for call in self.store.calls.values():
                if call.status not in (CallStatus.ASSIGNED, CallStatus.EN_ROUTE):
                    continue
                changed = lifecycle.progress_call(call, self.store.dispatch_for_call(call.id), now)
                events.extend(_snapshot(event) for event in changed)
            self._emit(events)
        return events

    def publish_tick(self, now: Optional[datetime] = None) -> Event:
        with self._lock:
            event = Event(EventType.TICK, now or self.now())
            self._emit([event])
        return event
