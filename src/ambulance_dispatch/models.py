from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AmbulanceStatus(str, Enum):
    AVAILABLE = "available"
    EN_ROUTE = "en_route"
    AT_SCENE = "at_scene"
    TRANSPORTING = "transporting"
    OUT_OF_SERVICE = "out_of_service"


class EquipmentLevel(str, Enum):
    BASIC = "basic"
    ADVANCED = "advanced"
    CRITICAL = "critical"


class CallStatus(str, Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    EN_ROUTE = "en_route"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DispatchStatus(str, Enum):
    DISPATCHED = "dispatched"
    ARRIVED = "arrived"
    COMPLETED = "completed"


class EventType(str, Enum):
    AMBULANCE_CREATED = "ambulance_created"
    AMBULANCE_UPDATED = "ambulance_updated"
    CALL_CREATED = "call_created"
    CALL_UPDATED = "call_updated"
    DISPATCH_CREATED = "dispatch_created"
    DISPATCH_UPDATED = "dispatch_updated"
    TICK = "tick"


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float


@dataclass
class Ambulance:
    id: int
    vehicle_id: str
    status: AmbulanceStatus
    location: Coordinates
    equipment_level: EquipmentLevel
    crew_size: int
    last_updated: datetime = field(default_factory=utcnow)


@dataclass
class EmergencyCall:
    id: int
    location: Coordinates
    severity_level: int
    call_time: datetime = field(default_factory=utcnow)
    status: CallStatus = CallStatus.PENDING
    caller_phone: Optional[str] = None
    address: Optional[str] = None
    assigned_ambulance_id: Optional[int] = None


@dataclass
class DispatchRecord:
    id: int
    call_id: int
    ambulance_id: int
    dispatch_time: datetime
    arrival_time: Optional[datetime] = None
    completion_time: Optional[datetime] = None
    distance_traveled_km: Optional[float] = None
    response_time_seconds: Optional[int] = None
    status: Optional[DispatchStatus] = DispatchStatus.DISPATCHED


@dataclass(frozen=True)
class ScoreBreakdown:
    total: float
    distance_km: float
    travel_minutes: float
    distance: float
    travel_time: float
    capability: float
    availability: float


@dataclass(frozen=True)
class Selection:
    ambulance: Ambulance
    score: ScoreBreakdown


@dataclass(frozen=True)
class DispatchOutcome:
    dispatch: DispatchRecord
    ambulance: Ambulance
    score: ScoreBreakdown


@dataclass(frozen=True)
class Event:
    type: EventType
    payload: Union[Ambulance, EmergencyCall, DispatchRecord, datetime]

    @property
    def entity_key(self) -> str:
        if self.type is EventType.TICK:
            return "now"
        return self.type.value.split("_", 1)[0]

    def to_dict(self) -> dict:
        return {"type": self.type.value, self.entity_key: self.payload}
