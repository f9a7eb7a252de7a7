"""State machine for emergency calls and the dispatch records that serve them.

Calls move ``pending -> assigned -> en_route -> completed`` and may be
cancelled while pending or assigned. Dispatch records move
``dispatched -> arrived -> completed``; ``arrived`` may be skipped.

The functions here mutate only the entities handed to them and take the
current time as an argument, so a scheduler or a test can drive them with
synthetic time.
"""
from __future__ import annotations

import math
from datetime import datetime
from typing import Optional

from ambulance_dispatch.errors import InvalidTransition
from ambulance_dispatch.models import (
    CallStatus,
    DispatchRecord,
    DispatchStatus,
    EmergencyCall,
    Event,
    EventType,
)

CALL_TRANSITIONS: dict[CallStatus, frozenset[CallStatus]] = {
    CallStatus.PENDING: frozenset({CallStatus.ASSIGNED, CallStatus.CANCELLED}),
    CallStatus.ASSIGNED: frozenset({CallStatus.EN_ROUTE, CallStatus.CANCELLED}),
    CallStatus.EN_ROUTE: frozenset({CallStatus.COMPLETED}),
    CallStatus.COMPLETED: frozenset(),
    CallStatus.CANCELLED: frozenset(),
}

DISPATCH_TRANSITIONS: dict[DispatchStatus, frozenset[DispatchStatus]] = {
    DispatchStatus.DISPATCHED: frozenset({DispatchStatus.ARRIVED, DispatchStatus.COMPLETED}),
    DispatchStatus.ARRIVED: frozenset({DispatchStatus.COMPLETED}),
    DispatchStatus.COMPLETED: frozenset(),
}


def is_terminal(call: EmergencyCall) -> bool:
    return not CALL_TRANSITIONS[call.status]


def is_active(dispatch: DispatchRecord) -> bool:
    return dispatch.status != DispatchStatus.COMPLETED


def transition_call(call: EmergencyCall, target: CallStatus) -> EmergencyCall:
    if target not in CALL_TRANSITIONS[call.status]:
        raise InvalidTransition(f"call {call.id}", call.status.value, target.value)
    call.status = target
    return call


def transition_dispatch(dispatch: DispatchRecord, target: DispatchStatus) -> DispatchRecord:
    current = dispatch.status or DispatchStatus.DISPATCHED
    if target not in DISPATCH_TRANSITIONS[current]:
        raise InvalidTransition(f"dispatch {dispatch.id}", current.value, target.value)
    dispatch.status = target
    return dispatch


def response_time_seconds(dispatch_time: datetime, arrival_time: datetime) -> int:
    # half-up rounding, not Python's round-half-even
    return int(math.floor((arrival_time - dispatch_time).total_seconds() + 0.5))


def assign_call(
    call: EmergencyCall,
    ambulance_id: int,
    dispatch_id: int,
    now: datetime,
    distance_km: Optional[float] = None,
) -> DispatchRecord:
    """Mark ``call`` assigned and return the dispatch record that serves it."""
    transition_call(call, CallStatus.ASSIGNED)
    call.assigned_ambulance_id = ambulance_id
    return DispatchRecord(
        id=dispatch_id,
        call_id=call.id,
        ambulance_id=ambulance_id,
        dispatch_time=now,
        distance_traveled_km=distance_km,
        status=DispatchStatus.DISPATCHED,
    )


def record_arrival(dispatch: DispatchRecord, now: datetime) -> DispatchRecord:
    transition_dispatch(dispatch, DispatchStatus.ARRIVED)
    dispatch.arrival_time = now
    dispatch.response_time_seconds = response_time_seconds(dispatch.dispatch_time, now)
    return dispatch


def complete_dispatch(dispatch: DispatchRecord, now: datetime) -> DispatchRecord:
    transition_dispatch(dispatch, DispatchStatus.COMPLETED)
    if dispatch.arrival_time is None:
        dispatch.arrival_time = now
    dispatch.completion_time = now
    dispatch.response_time_seconds = response_time_seconds(dispatch.dispatch_time, dispatch.arrival_time)
    return dispatch


def cancel_call(call: EmergencyCall, dispatch: Optional[DispatchRecord], now: datetime) -> list[Event]:
    """Cancel a pending or assigned call and close its open dispatch record.

    The closed record keeps no arrival time or response time.
    """
    transition_call(call, CallStatus.CANCELLED)
    events = [Event(EventType.CALL_UPDATED, call)]
    if dispatch is not None and is_active(dispatch):
        transition_dispatch(dispatch, DispatchStatus.COMPLETED)
        dispatch.completion_time = now
        events.append(Event(EventType.DISPATCH_UPDATED, dispatch))
    return events


def progress_call(call: EmergencyCall, dispatch: Optional[DispatchRecord], now: datetime) -> list[Event]:
    """Advance one call by a single simulated step.

    There is no arrival signal from the ambulance in the simulation: an
    assigned call is assumed en route on the next step and completed on the
    one after.
    """
    if call.status == CallStatus.ASSIGNED:
        transition_call(call, CallStatus.EN_ROUTE)
        return [Event(EventType.CALL_UPDATED, call)]

    if call.status == CallStatus.EN_ROUTE:
        transition_call(call, CallStatus.COMPLETED)
        events = [Event(EventType.CALL_UPDATED, call)]
        if dispatch is not None and dispatch.completion_time is None:
            complete_dispatch(dispatch, now)
            events.append(Event(EventType.DISPATCH_UPDATED, dispatch))
        return events

    return []
