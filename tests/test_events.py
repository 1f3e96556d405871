import logging
import threading

import pytest

from retrybill.events import Event, EventBus


def test_push_and_next_event():
    bus = EventBus()
    bus.push("newUserOrder", {"id": 1})
    assert bus.next_event(timeout=1) == Event("newUserOrder", {"id": 1})


def test_next_event_times_out():
    bus = EventBus()
    with pytest.raises(TimeoutError):
        bus.next_event(timeout=0.05)


def test_push_many_stops_at_missing_data():
    bus = EventBus()
    events = [Event("a", 1), Event("b", None), Event("c", 3)]
    assert bus.push_many(events, delay=0) == 1
    assert bus.next_event(timeout=1) == Event("a", 1)
    with pytest.raises(TimeoutError):
        bus.next_event(timeout=0.05)


def test_push_many_keeps_order():
    bus = EventBus()
    events = [Event("a", 1), Event("b", 2)]
    assert bus.push_many(events, delay=0) == 2
    assert [bus.next_event(timeout=1), bus.next_event(timeout=1)] == events


def test_dispatch_calls_subscribers():
    bus = EventBus()
    seen = []
    bus.subscribe("newUserOrder", seen.append)
    event = Event("newUserOrder", "order")
    assert bus.dispatch(event) == 1
    assert seen == [event]


def test_dispatch_unknown_event():
    assert EventBus().dispatch(Event("unknown", 1)) == 0


def test_registration_is_logged(caplog):
    bus = EventBus()
    with caplog.at_level(logging.INFO, logger="retrybill.events"):
        assert bus.dispatch(Event("newRegisterUser", "user")) == 1
    assert "registration" in caplog.text


def test_run_dispatches_until_stopped():
    bus = EventBus()
    stop = threading.Event()
    received = []

    def handler(event):
        received.append(event)
        stop.set()

    bus.subscribe("ping", handler)
    worker = threading.Thread(target=bus.run, args=(stop,), daemon=True)
    worker.start()
    bus.push("ping", 1)
    worker.join(timeout=2)
    assert not worker.is_alive()
    assert received == [Event("ping", 1)]