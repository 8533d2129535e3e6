import re
from types import SimpleNamespace

from playroom.core.registry import RoomRegistry
from playroom.core.results import fail, ok
from playroom.core.room import BaseRoom
from playroom.core.scheduler import ManualScheduler
from playroom.core.turns import advance_turn


class FakeRoom:
    def __init__(self, room_id, created_at=0.0, empty=False, ended=False):
        self.id = room_id
        self.created_at = created_at
        self.empty = empty
        self.ended = ended
        self.closed = False

    def is_empty(self):
        return self.empty

    def is_ended(self):
        return self.ended

    def close(self):
        self.closed = True


def test_results_shape():
    assert ok() == {"success": True}
    assert ok(roomId="x") == {"success": True, "roomId": "x"}
    assert fail("Nope", needsSuit=True) == {"success": False, "error": "Nope", "needsSuit": True}


def test_manual_scheduler_fires_in_time_order():
    scheduler = ManualScheduler()
    fired = []
    scheduler.call_later(2, fired.append, "b")
    scheduler.call_later(1, fired.append, "a")

    assert scheduler.advance(1) == 1
    assert fired == ["a"]
    scheduler.advance(1)
    assert fired == ["a", "b"]
    assert scheduler.now() == 2


def test_manual_scheduler_cancel_and_nested_callbacks():
    scheduler = ManualScheduler()
    fired = []
    handle = scheduler.call_later(1, fired.append, "cancelled")
    handle.cancel()
    scheduler.call_later(1, lambda: scheduler.call_later(1, fired.append, "nested"))

    scheduler.advance(3)
    assert fired == ["nested"]
    assert scheduler.pending == 0


def test_failing_callback_does_not_stop_others(caplog):
    scheduler = ManualScheduler()
    fired = []

    def boom():
        raise RuntimeError("boom")

    scheduler.call_later(1, boom)
    scheduler.call_later(2, fired.append, "after")
    scheduler.advance(5)
    assert fired == ["after"]
    assert "failed" in caplog.text


def test_room_timer_dropped_after_state_change():
    scheduler = ManualScheduler()
    room = BaseRoom("room_1", "Test", "host", scheduler)
    fired = []

    room.schedule("tick", 5, fired.append, "stale")
    room._set_state("playing")
    scheduler.advance(5)
    assert fired == []

    room.schedule("tick", 5, fired.append, "fresh")
    assert room.has_timer("tick")
    scheduler.advance(5)
    assert fired == ["fresh"]


def test_room_schedule_replaces_same_key_and_close_cancels():
    scheduler = ManualScheduler()
    room = BaseRoom("room_1", "Test", "host", scheduler)
    fired = []

    room.schedule("tick", 5, fired.append, 1)
    room.schedule("tick", 5, fired.append, 2)
    room.schedule("other", 5, fired.append, 3)
    room.close()
    scheduler.advance(10)
    assert fired == []


def test_registry_ids_and_lookup():
    scheduler = ManualScheduler()
    registry = RoomRegistry("room", scheduler)
    room = registry.create(lambda room_id: FakeRoom(room_id))

    assert re.match(r"^room_\d+_[0-9a-f]{9}$", room.id)
    assert registry.get(room.id) is room
    assert registry.get("room_missing") is None
    assert registry.delete("room_missing") is False
    assert registry.delete(room.id) is True
    assert room.closed
    assert len(registry) == 0


def test_registry_sweep_thresholds():
    scheduler = ManualScheduler()
    registry = RoomRegistry("shed", scheduler)
    empty = registry.create(lambda room_id: FakeRoom(room_id, empty=True))
    ended = registry.create(lambda room_id: FakeRoom(room_id, ended=True))
    active = registry.create(lambda room_id: FakeRoom(room_id))

    assert registry.sweep(now=299) == []
    assert registry.sweep(now=301) == [empty.id]
    assert registry.sweep(now=899) == []
    assert registry.sweep(now=901) == [ended.id]
    assert registry.list() == [active]


def test_registry_sweeper_rearms():
    scheduler = ManualScheduler()
    registry = RoomRegistry("room", scheduler)
    room = registry.create(lambda room_id: FakeRoom(room_id, empty=True))

    registry.start_sweeper(60)
    scheduler.advance(240)
    assert room.id in registry
    scheduler.advance(120)
    assert room.id not in registry
    assert scheduler.pending == 1

    registry.stop_sweeper()
    assert scheduler.pending == 0


def test_advance_turn_direction_and_skips():
    seats = [SimpleNamespace(connected=True) for _ in range(4)]
    index = advance_turn(seats, 0, -1)
    assert index == 3
    assert advance_turn(seats, index, -1) == 2

    seats[1].connected = False
    assert advance_turn(seats, 0, 1) == 2
    assert advance_turn([], 0, 1) == 0
