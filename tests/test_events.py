from datetime import datetime, timezone

from ambulance_dispatch.events import EventBus
from ambulance_dispatch.models import Coordinates, EmergencyCall, Event, EventType

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _call_event() -> Event:
    call = EmergencyCall(id=1, location=Coordinates(5.6, -0.19), severity_level=2, call_time=NOW)
    return Event(EventType.CALL_CREATED, call)


def test_subscribers_only_see_events_while_registered() -> None:
    bus = EventBus()
    early: list[Event] = []
    late: list[Event] = []

    subscription = bus.subscribe(early.append)
    bus.publish(Event(EventType.TICK, NOW))
    bus.subscribe(late.append)
    bus.publish(_call_event())
    subscription.unsubscribe()
    bus.publish(Event(EventType.TICK, NOW))

    assert [event.type for event in early] == [EventType.TICK, EventType.CALL_CREATED]
    assert [event.type for event in late] == [EventType.CALL_CREATED, EventType.TICK]
    assert bus.subscriber_count == 1


def test_failing_listener_does_not_block_others(caplog) -> None:
    bus = EventBus()
    received: list[Event] = []

    def broken(event: Event) -> None:
        raise RuntimeError("socket closed")

    bus.subscribe(broken)
    bus.subscribe(received.append)
    bus.publish(Event(EventType.TICK, NOW))

    assert len(received) == 1
    assert "Listener failed on tick event" in caplog.text


def test_subscription_as_context_manager() -> None:
    bus = EventBus()
    received: list[Event] = []
    with bus.subscribe(received.append):
        bus.publish(Event(EventType.TICK, NOW))
    bus.publish(Event(EventType.TICK, NOW))

    assert len(received) == 1
    assert bus.subscriber_count == 0


def test_event_payload_keys() -> None:
    assert Event(EventType.TICK, NOW).to_dict() == {"type": "tick", "now": NOW}
    payload = _call_event().to_dict()
    assert payload["type"] == "call_created"
    assert payload["call"].id == 1
    assert Event(EventType.DISPATCH_UPDATED, None).entity_key == "dispatch"
    assert Event(EventType.AMBULANCE_CREATED, None).entity_key == "ambulance"
