from __future__ import annotations

import logging
import math
from typing import Iterable, Optional

from ambulance_dispatch.models import (
    Ambulance,
    AmbulanceStatus,
    Coordinates,
    EmergencyCall,
    EquipmentLevel,
    ScoreBreakdown,
    Selection,
)

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0

MAX_DISTANCE_KM = 30.0
MAX_TRAVEL_MINUTES = 45.0
BASE_SPEED_KMH = 40.0
MAX_CONGESTION = 0.5
CONGESTION_DISTANCE_KM = 60.0

EQUIPMENT_WEIGHT = {
    EquipmentLevel.BASIC: 1,
    EquipmentLevel.ADVANCED: 2,
    EquipmentLevel.CRITICAL: 3,
}

# severity 1 is the most severe call and needs critical equipment
REQUIRED_WEIGHT = {1: 3, 2: 2, 3: 1, 4: 1}

AVAILABILITY_WEIGHT = {
    AmbulanceStatus.AVAILABLE: 1.0,
    AmbulanceStatus.EN_ROUTE: 0.3,
    AmbulanceStatus.AT_SCENE: 0.3,
    AmbulanceStatus.TRANSPORTING: 0.1,
    AmbulanceStatus.OUT_OF_SERVICE: 0.0,
}

SCORE_WEIGHTS = {
    "distance": 0.40,
    "travel_time": 0.25,
    "capability": 0.20,
    "availability": 0.15,
}


class DispatchIntelligenceEngine:
    """Scores ambulances against an emergency call and picks the one to send.

    Every method is a pure function of its arguments; the engine holds no
    fleet state of its own.
    """

    @staticmethod
    def haversine_km(origin: Coordinates, target: Coordinates) -> float:
        lat1, lon1 = math.radians(origin.latitude), math.radians(origin.longitude)
        lat2, lon2 = math.radians(target.latitude), math.radians(target.longitude)
        dlat = lat2 - lat1
        dlon = lon2 - lon1

        h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
        # floating point can push h a hair past 1 for antipodal points
        return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(max(0.0, h))))

    @staticmethod
    def distance_score(km: float) -> float:
        capped = min(MAX_DISTANCE_KM, max(0.0, km))
        return 1 - capped / MAX_DISTANCE_KM

    @staticmethod
    def estimate_travel_minutes(km: float) -> float:
        """Mock traffic model: 40 km/h with a congestion factor between 1.0 and 1.5."""
        base_minutes = (km / BASE_SPEED_KMH) * 60
        factor = 1.0 + min(MAX_CONGESTION, km / CONGESTION_DISTANCE_KM)
        return base_minutes * factor

    @staticmethod
    def travel_time_score(minutes: float) -> float:
        capped = min(MAX_TRAVEL_MINUTES, max(0.0, minutes))
        return 1 - capped / MAX_TRAVEL_MINUTES

    @staticmethod
    def capability_score(equipment_level: EquipmentLevel, severity_level: int) -> float:
        diff = EQUIPMENT_WEIGHT[EquipmentLevel(equipment_level)] - REQUIRED_WEIGHT[severity_level]
        if diff >= 0:
            return 1.0
        if diff == -1:
            return 0.5
        return 0.0

    @staticmethod
    def availability_score(status: AmbulanceStatus) -> float:
        return AVAILABILITY_WEIGHT[AmbulanceStatus(status)]

    def score_ambulance(self, ambulance: Ambulance, location: Coordinates, severity_level: int) -> ScoreBreakdown:
        km = self.haversine_km(ambulance.location, location)
        minutes = self.estimate_travel_minutes(km)
        distance = self.distance_score(km)
        travel_time = self.travel_time_score(minutes)
        capability = self.capability_score(ambulance.equipment_level, severity_level)
        availability = self.availability_score(ambulance.status)

        total = (
            distance * SCORE_WEIGHTS["distance"]
            + travel_time * SCORE_WEIGHTS["travel_time"]
            + capability * SCORE_WEIGHTS["capability"]
            + availability * SCORE_WEIGHTS["availability"]
        )
        return ScoreBreakdown(
            total=total,
            distance_km=km,
            travel_minutes=minutes,
            distance=distance,
            travel_time=travel_time,
            capability=capability,
            availability=availability,
        )

    @staticmethod
    def eligible(fleet: Iterable[Ambulance]) -> list[Ambulance]:
        return [amb for amb in fleet if amb.status != AmbulanceStatus.OUT_OF_SERVICE]

    def select_best_ambulance(self, fleet: Iterable[Ambulance], call: EmergencyCall) -> Optional[Selection]:
        best: Optional[Selection] = None
        for ambulance in self.eligible(fleet):
            score = self.score_ambulance(ambulance, call.location, call.severity_level)
            logger.debug("call %s: %s scored %.4f", call.id, ambulance.vehicle_id, score.total)
            # strict comparison keeps the first candidate on ties
            if best is None or score.total > best.score.total:
                best = Selection(ambulance=ambulance, score=score)
        return best

    def rank_ambulances(
        self,
        fleet: Iterable[Ambulance],
        call: EmergencyCall,
        limit: Optional[int] = None,
    ) -> list[Selection]:
        ranked = [
            Selection(ambulance=amb, score=self.score_ambulance(amb, call.location, call.severity_level))
            for amb in self.eligible(fleet)
        ]
        ranked.sort(key=lambda item: item.score.total, reverse=True)
        return ranked if limit is None else ranked[:limit]
