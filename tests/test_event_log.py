import pytest

from islandsim.events import EventLog, UnknownEventError
from islandsim.schemas import Event, EventType, Weather


def _append(log: EventLog, world, event_type=EventType.MOVE, **fields) -> Event:
    event = Event(id=log.next_event_id(), type=event_type, tick=world.time, **fields)
    return log.log_event(event, world)


def test_events_chain_to_their_predecessor(make_world):
    log = EventLog()
    world = make_world()

    first = _append(log, world)
    second = _append(log, world)
    third = _append(log, world, parent_event_id=first.id)

    assert first.parent_event_id is None
    assert second.parent_event_id == first.id
    assert third.parent_event_id == first.id
    assert [event.id for event in log] == ["evt_000001", "evt_000002", "evt_000003"]
    assert log.last == third
    assert len(log) == 3


def test_duplicate_ids_are_rejected(make_world):
    log = EventLog()
    world = make_world()
    event = _append(log, world)

    with pytest.raises(ValueError):
        log.log_event(Event(id=event.id, type=EventType.MOVE, tick=0), world)


def test_snapshot_is_isolated_from_later_mutation(make_world):
    log = EventLog()
    world = make_world()
    event = _append(log, world)

    world.weather = Weather.RAIN
    world.time = 5

    snapshot = log.jump_to(event.id)
    assert snapshot.weather == Weather.SUN
    assert snapshot.time == 0

    snapshot.weather = Weather.RAIN
    assert log.jump_to(event.id).weather == Weather.SUN


def test_jump_to_leaves_log_untouched(make_world):
    log = EventLog()
    world = make_world()
    first = _append(log, world)
    _append(log, world)

    log.jump_to(first.id)

    assert len(log) == 2


def test_branch_from_truncates_and_never_reuses_ids(make_world):
    log = EventLog()
    world = make_world()
    first = _append(log, world)
    world.time = 1
    second = _append(log, world)
    _append(log, world)

    restored = log.branch_from(first.id)

    assert restored.time == 0
    assert [event.id for event in log] == [first.id]
    assert second.id not in log
    with pytest.raises(UnknownEventError):
        log.snapshot(second.id)

    fresh = _append(log, restored)
    assert fresh.id == "evt_000004"
    assert fresh.parent_event_id == first.id


def test_unknown_ids_raise(make_world):
    log = EventLog()

    with pytest.raises(UnknownEventError) as info:
        log.jump_to("evt_999999")
    assert info.value.event_id == "evt_999999"
    with pytest.raises(UnknownEventError):
        log.branch_from("missing")
    with pytest.raises(UnknownEventError):
        log.get("missing")


def test_copy_is_independent(make_world):
    log = EventLog()
    world = make_world()
    first = _append(log, world)
    _append(log, world)

    clone = log.copy()
    log.branch_from(first.id)

    assert len(clone) == 2
    assert len(log) == 1
    assert clone.next_event_id() == log.next_event_id()


def test_events_at_tick(make_world):
    log = EventLog()
    world = make_world()
    _append(log, world)
    world.time = 2
    later = _append(log, world, event_type=EventType.WEATHER_CHANGE)

    assert log.events_at_tick(2) == [later]
    assert log.get(later.id) == later
