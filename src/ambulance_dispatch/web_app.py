from __future__ import annotations

import asyncio
import json
import logging
from typing import AsyncIterator, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from ambulance_dispatch import config
from ambulance_dispatch.errors import CallNotFound, DispatchError
from ambulance_dispatch.events import EventBus
from ambulance_dispatch.hospitals import HospitalRegistry
from ambulance_dispatch.models import Event
from ambulance_dispatch.schemas import AmbulanceUpsert, BedUpdate, CallCreate, DispatchRequest
from ambulance_dispatch.simulator import FleetSimulator
from ambulance_dispatch.system import DispatchSystem

logger = logging.getLogger(__name__)


def format_sse(event: Event) -> str:
    return f"data: {json.dumps(jsonable_encoder(event.to_dict()))}\n\n"


def _http_error(exc: DispatchError) -> HTTPException:
    status_code = 404 if isinstance(exc, CallNotFound) else 409
    return HTTPException(status_code=status_code, detail=str(exc))


def _offer(queue: asyncio.Queue, event: Event) -> None:
    try:
        queue.put_nowait(event)
    except asyncio.QueueFull:
        logger.debug("SSE client too slow, dropping %s event", event.type.value)


async def event_stream(
    request: Request,
    bus: EventBus,
    keepalive: float = config.SSE_KEEPALIVE_SECONDS,
    queue_size: int = config.SSE_QUEUE_SIZE,
) -> AsyncIterator[str]:
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
    # publishers may run on the simulator thread
    subscription = bus.subscribe(lambda event: loop.call_soon_threadsafe(_offer, queue, event))
    try:
        yield f"retry: {config.SSE_RETRY_MILLISECONDS}\n\n"
        while not await request.is_disconnected():
            try:
                event = await asyncio.wait_for(queue.get(), timeout=keepalive)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            yield format_sse(event)
    finally:
        subscription.unsubscribe()


def create_app(
    system: Optional[DispatchSystem] = None,
    simulator: Optional[FleetSimulator] = None,
    hospitals: Optional[HospitalRegistry] = None,
    seed_fleet: bool = config.SEED_FLEET,
) -> FastAPI:
    system = system or DispatchSystem()
    hospitals = hospitals or HospitalRegistry()

    app = FastAPI(title="Ambulance Dispatch")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.system = system
    app.state.simulator = simulator

    @app.on_event("startup")
    def startup() -> None:
        if seed_fleet:
            system.seed_fleet()
        if simulator is not None:
            simulator.start()

    @app.on_event("shutdown")
    def shutdown() -> None:
        if simulator is not None:
            simulator.stop()

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/api/ambulances")
    def list_ambulances():
        return system.list_ambulances()

    @app.post("/api/ambulances")
    def upsert_ambulance(payload: AmbulanceUpsert):
        return system.upsert_ambulance(payload)

    @app.get("/api/calls")
    def list_calls():
        return system.list_calls()

    @app.post("/api/calls")
    def create_call(payload: CallCreate):
        return system.intake_call(payload)

    @app.post("/api/calls/{call_id}/cancel")
    def cancel_call(call_id: int):
        try:
            return system.cancel_call(call_id)
        except DispatchError as exc:
            raise _http_error(exc) from exc

    @app.post("/api/calls/{call_id}/arrival")
    def record_arrival(call_id: int):
        try:
            return system.record_arrival(call_id)
        except DispatchError as exc:
            raise _http_error(exc) from exc

    @app.get("/api/calls/{call_id}/candidates")
    def call_candidates(call_id: int, limit: int = 3):
        try:
            ranked = system.candidates(call_id, limit=limit)
        except DispatchError as exc:
            raise _http_error(exc) from exc
        return [
            {
                "ambulance_id": item.ambulance.id,
                "vehicle_id": item.ambulance.vehicle_id,
                "score": round(item.score.total, 4),
                "distance_km": round(item.score.distance_km, 2),
                "eta_minutes": round(item.score.travel_minutes, 1),
                "breakdown": item.score,
            }
            for item in ranked
        ]

    @app.get("/api/dispatch")
    def list_dispatches():
        return system.list_dispatches()

    @app.post("/api/dispatch")
    def dispatch(payload: DispatchRequest):
        try:
            outcome = system.dispatch_call(payload.call_id)
        except DispatchError as exc:
            raise _http_error(exc) from exc
        return {"dispatch": outcome.dispatch, "ambulance": outcome.ambulance, "score": outcome.score}

    @app.get("/api/events")
    def events(request: Request):
        return StreamingResponse(
            event_stream(request, system.bus),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache, no-transform", "Connection": "keep-alive"},
        )

    @app.get("/api/hospitals")
    def list_hospitals():
        return hospitals.list_hospitals()

    @app.post("/api/hospitals")
    def update_hospital_beds(payload: BedUpdate):
        hospital = hospitals.adjust_beds(payload.hospital_id, payload.bed_update)
        if hospital is None:
            raise HTTPException(status_code=404, detail="Hospital not found")
        return {"success": True, "hospital": hospital}

    return app


def build_default_app() -> FastAPI:
    system = DispatchSystem()
    simulator = FleetSimulator(system) if config.SIMULATOR_ENABLED else None
    return create_app(system=system, simulator=simulator)


def run(host: str = config.HOST, port: int = config.PORT) -> None:
    logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logger.info("Ambulance dispatch running on http://%s:%s", host, port)
    uvicorn.run(build_default_app(), host=host, port=port, log_level=config.LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
