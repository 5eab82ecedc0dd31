import threading
from pathlib import Path
from vqueue.infrastructure.event_bus import EventBus
from vqueue.domain.events import Event, JobCompleted, JobEvent, JobQueued
from vqueue.domain.models import Job

class MockEvent(Event):
    message: str

def test_event_bus_subscribe_publish():
    bus = EventBus()
    received_events = []

    def callback(event: MockEvent):
        received_events.append(event)

    bus.subscribe(MockEvent, callback)

    event = MockEvent(message="hello")
    bus.publish(event)

    assert len(received_events) == 1
    assert received_events[0].message == "hello"

def test_event_bus_multiple_subscribers():
    bus = EventBus()
    results = {"a": False, "b": False}

    bus.subscribe(MockEvent, lambda e: results.update({"a": True}))
    bus.subscribe(MockEvent, lambda e: results.update({"b": True}))

    bus.publish(MockEvent(message="test"))

    assert results["a"] is True
    assert results["b"] is True

def test_event_bus_decorator_subscribe():
    bus = EventBus()
    received = []

    @bus.subscribe(MockEvent)
    def on_event(event: MockEvent):
        received.append(event)

    bus.publish(MockEvent(message="decorator"))
    assert len(received) == 1
    assert received[0].message == "decorator"

def test_event_bus_base_class_subscribers():
    bus = EventBus()
    received = []
    bus.subscribe(JobEvent, received.append)

    job = Job(source_path=Path("q/a.mov"), working_path=Path("w/a.mp4"), finished_path=Path("f/a.mp4"))
    bus.publish(JobCompleted(job=job))
    bus.publish(JobQueued(path=Path("q/a.mov"), origin="backlog"))

    assert len(received) == 1
    assert isinstance(received[0], JobCompleted)

def test_event_bus_publish_from_threads():
    bus = EventBus()
    received = []
    lock = threading.Lock()

    def on_event(event):
        with lock:
            received.append(event.message)

    bus.subscribe(MockEvent, on_event)
    threads = [
        threading.Thread(target=lambda i=i: bus.publish(MockEvent(message=str(i))))
        for i in range(20)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(received, key=int) == [str(i) for i in range(20)]
