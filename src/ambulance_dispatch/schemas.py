"""Intake schemas. Descriptors that fail here never reach the dispatch core."""
from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from ambulance_dispatch.models import AmbulanceStatus, Coordinates, EquipmentLevel


class CoordinatesIn(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    def to_model(self) -> Coordinates:
        return Coordinates(latitude=self.latitude, longitude=self.longitude)


class AmbulanceUpsert(BaseModel):
    id: Optional[int] = Field(default=None, gt=0)
    vehicle_id: str = Field(..., min_length=1)
    status: AmbulanceStatus
    location: CoordinatesIn
    equipment_level: EquipmentLevel
    crew_size: int = Field(..., ge=1, le=6)


class CallCreate(BaseModel):
    location: CoordinatesIn
    severity_level: Literal[1, 2, 3, 4]
    caller_phone: Optional[str] = Field(default=None, min_length=3, max_length=20)
    address: Optional[str] = None


class DispatchRequest(BaseModel):
    call_id: int = Field(..., gt=0)


class BedUpdate(BaseModel):
    hospital_id: int
    bed_update: int
