import pytest

from slay import CausalityError, Event, EventKind, Tick


def test_pop_order_follows_time(queue):
    for time in (30.0, 10.0, 20.0):
        queue.schedule_at(time, "n", EventKind.ARRIVAL)

    times = [queue.pop_next().time for _ in range(3)]
    assert times == [10.0, 20.0, 30.0]
    assert queue.now() == 30.0


def test_equal_times_pop_in_insertion_order(queue):
    for target in ("a", "b", "c", "d", "e"):
        queue.schedule_at(10.0, target, EventKind.ARRIVAL)

    popped = [queue.pop_next() for _ in range(5)]
    assert [e.target for e in popped] == ["a", "b", "c", "d", "e"]
    assert [e.sequence for e in popped] == sorted(e.sequence for e in popped)


def test_clock_moves_only_on_pop(queue):
    queue.schedule_at(100.0, "n", EventKind.TIMEOUT)
    assert queue.now() == 0.0
    assert queue.peek().time == 100.0
    assert queue.now() == 0.0

    queue.pop_next()
    assert queue.now() == 100.0
    assert queue.current_time == 100.0


def test_scheduling_in_the_past_raises(queue):
    queue.schedule_at(10.0, "n", EventKind.ARRIVAL)
    queue.pop_next()

    with pytest.raises(CausalityError) as excinfo:
        queue.schedule_at(5.0, "n", EventKind.ARRIVAL)
    assert excinfo.value.time == 5.0
    assert excinfo.value.now == 10.0

    with pytest.raises(CausalityError):
        queue.schedule(-1.0, "n", EventKind.ARRIVAL)


def test_relative_schedule_uses_current_time(queue):
    queue.schedule_at(50.0, "n", EventKind.ARRIVAL)
    queue.pop_next()
    event = queue.schedule(25.0, "n", EventKind.TIMEOUT, "c:1")
    assert event.time == 75.0
    assert event.payload == "c:1"


def test_empty_queue_and_counters(queue):
    assert queue.pop_next() is None
    assert queue.peek() is None
    assert queue.is_empty()

    queue.schedule(1.0, "n", EventKind.STATS_TICK, Tick(100.0))
    queue.schedule(2.0, "n", EventKind.STATS_TICK, Tick(100.0))
    assert queue.size == 2
    assert queue.total_events == 2

    queue.clear()
    assert queue.size == 0
    assert queue.total_events == 2


def test_events_compare_on_time_and_sequence_only():
    first = Event(1.0, 0, "z", EventKind.TIMEOUT)
    second = Event(1.0, 1, "a", EventKind.ARRIVAL)
    assert first < second
    assert Event(0.5, 9, "z", EventKind.TIMEOUT) < first
