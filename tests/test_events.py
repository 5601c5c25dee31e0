"""Tests for progress events and the in-process broker."""

import json
import threading

from subsmith.core.events import (
    BLUEPRINT_READY,
    COMPLETED,
    FAILED,
    PROGRESS,
    EventBroker,
    ProgressEvent,
)


def test_event_constructors():
    assert ProgressEvent.progress("Indexing").to_dict() == {
        "type": PROGRESS,
        "payload": {"stage": "Indexing"},
    }
    assert ProgressEvent.blueprint_ready({"glossary": []}).type == BLUEPRINT_READY
    assert ProgressEvent.completed("1\n...").payload == {"result": "1\n..."}
    assert ProgressEvent.failed("boom").payload == {"error": "boom"}


def test_terminal_events():
    assert ProgressEvent.completed("x").is_terminal
    assert ProgressEvent.failed("x").is_terminal
    assert not ProgressEvent.progress("x").is_terminal
    assert not ProgressEvent.blueprint_ready({}).is_terminal


def test_to_json_keeps_unicode():
    data = json.loads(ProgressEvent.completed("سلام").to_json())
    assert data == {"type": COMPLETED, "payload": {"result": "سلام"}}
    assert "سلام" in ProgressEvent.completed("سلام").to_json()


def test_publish_without_subscribers_is_noop(broker):
    broker.publish("nobody", ProgressEvent.progress("x"))
    assert broker.subscriber_count("nobody") == 0


def test_subscriber_receives_only_its_topic(broker):
    sub_a = broker.subscribe("a")
    sub_b = broker.subscribe("b")
    broker.publish("a", ProgressEvent.progress("for a"))

    assert sub_a.get(timeout=1).payload["stage"] == "for a"
    assert sub_b.get(timeout=0.01) is None


def test_no_replay_for_late_subscribers(broker):
    broker.publish("job", ProgressEvent.progress("early"))
    sub = broker.subscribe("job")
    broker.publish("job", ProgressEvent.progress("late"))
    assert sub.get(timeout=1).payload["stage"] == "late"
    assert sub.get(timeout=0.01) is None


def test_iteration_stops_after_terminal_event(broker):
    sub = broker.subscribe("job")
    for event in (
        ProgressEvent.progress("one"),
        ProgressEvent.progress("two"),
        ProgressEvent.failed("boom"),
        ProgressEvent.progress("after"),
    ):
        broker.publish("job", event)

    types = [event.type for event in sub]
    assert types == [PROGRESS, PROGRESS, FAILED]
    assert sub.closed
    assert broker.subscriber_count("job") == 0


def test_close_removes_listener(broker):
    with broker.subscribe("job") as sub:
        assert broker.subscriber_count("job") == 1
    assert sub.closed
    assert broker.subscriber_count("job") == 0
    # Closed handles ignore further events
    broker.publish("job", ProgressEvent.progress("x"))
    assert sub.get(timeout=0.01) is None


def test_close_wakes_blocked_reader(broker):
    sub = broker.subscribe("job")
    received = []
    reader = threading.Thread(target=lambda: received.append(sub.get()))
    reader.start()
    sub.close()
    reader.join(timeout=2)
    assert not reader.is_alive()
    assert received == [None]


def test_reads_after_close_return_immediately(broker):
    sub = broker.subscribe("job")
    broker.publish("job", ProgressEvent.completed("done"))
    assert [event.type for event in sub] == [COMPLETED]

    received = []

    def read_again():
        received.append(sub.get())
        received.append(sub.get())
        received.append(list(sub))

    reader = threading.Thread(target=read_again, daemon=True)
    reader.start()
    reader.join(timeout=2)
    assert not reader.is_alive()
    assert received == [None, None, []]


def test_listen_and_unregister(broker):
    seen = []
    unregister = broker.listen("job", seen.append)
    broker.publish("job", ProgressEvent.progress("one"))
    unregister()
    broker.publish("job", ProgressEvent.progress("two"))
    assert [event.payload["stage"] for event in seen] == ["one"]


def test_failing_listener_does_not_block_others(broker):
    seen = []

    def bad(event):
        raise RuntimeError("listener bug")

    broker.listen("job", bad)
    sub = broker.subscribe("job")
    broker.listen("job", seen.append)
    broker.publish("job", ProgressEvent.progress("x"))

    assert len(seen) == 1
    assert sub.get(timeout=1) is not None


def test_events_arrive_in_publish_order(broker):
    sub = broker.subscribe("job")
    for i in range(50):
        broker.publish("job", ProgressEvent.progress(str(i)))
    broker.publish("job", ProgressEvent.completed("done"))
    stages = [event.payload.get("stage") for event in sub if event.type == PROGRESS]
    assert stages == [str(i) for i in range(50)]


def test_subscriber_count_includes_callbacks():
    broker = EventBroker()
    broker.subscribe("job")
    broker.listen("job", lambda event: None)
    assert broker.subscriber_count("job") == 2
