from ollamate_core.domain.events import DisplayCleared, ModelUpdated
from ollamate_core.sessions.broadcaster import PresentationBroadcaster


class RecordingSurface:
    def __init__(self, name):
        self.name = name
        self.events = []

    def deliver(self, event):
        self.events.append(event)


class ClosedSurface:
    name = "closed"

    def deliver(self, event):
        raise ConnectionError("channel closed")


def test_broadcast_reaches_every_surface():
    b = PresentationBroadcaster()
    first, second = RecordingSurface("chat"), RecordingSurface("manager")
    b.attach(first)
    b.attach(second)
    assert b.broadcast(ModelUpdated(model="a")) == 2
    assert first.events == [ModelUpdated(model="a")]
    assert second.events == [ModelUpdated(model="a")]


def test_failed_surface_does_not_block_others():
    b = PresentationBroadcaster()
    ok = RecordingSurface("chat")
    b.attach(ClosedSurface())
    b.attach(ok)
    assert b.broadcast(DisplayCleared()) == 1
    assert ok.events == [DisplayCleared()]


def test_detach_and_duplicate_attach():
    b = PresentationBroadcaster()
    s = RecordingSurface("chat")
    b.attach(s)
    b.attach(s)
    assert len(b.surfaces) == 1
    b.detach(s)
    assert b.broadcast(DisplayCleared()) == 0
    assert s.events == []
