from __future__ import annotations


class DispatchError(Exception):
    """Base class for failures surfaced by the dispatch core."""


class CallNotFound(DispatchError):
    def __init__(self, call_id: int) -> None:
        super().__init__(f"Call {call_id} not found")
        self.call_id = call_id


class NoAmbulanceAvailable(DispatchError):
    def __init__(self, call_id: int) -> None:
        super().__init__(f"No ambulance available for call {call_id}")
        self.call_id = call_id


class InvalidTransition(DispatchError):
    def __init__(self, entity: str, current: str, target: str) -> None:
        super().__init__(f"Cannot move {entity} from {current} to {target}")
        self.entity = entity
        self.current = current
        self.target = target


class InvalidCallState(DispatchError):
    def __init__(self, call_id: int, status: str, expected: str) -> None:
        super().__init__(f"Call {call_id} is {status}, expected {expected}")
        self.call_id = call_id
        self.status = status
