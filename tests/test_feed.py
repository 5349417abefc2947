import json

import pytest
from websockets.exceptions import InvalidURI

from mapshare.client.feed import PresenceFeed


class FakeSocket:
    def __init__(self, messages):
        self._messages = list(messages)
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def __aiter__(self):
        return self._stream()

    async def _stream(self):
        for message in self._messages:
            yield message

    async def close(self):
        self.closed = True


def changed(event="UPDATE"):
    return json.dumps({"type": "presence_changed", "table": "live_locations", "event": event})


class Harness:
    def __init__(self, connections, stop_after_sleeps=1):
        self.connections = list(connections)
        self.cues = 0
        self.degraded = []
        self.sleeps = []
        self.stop_after_sleeps = stop_after_sleeps
        self.feed = PresenceFeed(
            "ws://testserver/v1/live-locations/ws",
            on_change=self.on_change,
            on_degraded=self.degraded.append,
            connect=self.connect,
            backoff_base=0.5,
            sleep=self.sleep,
        )

    def on_change(self):
        self.cues += 1

    def connect(self, url):
        item = self.connections.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        if len(self.sleeps) >= self.stop_after_sleeps:
            await self.feed.close()


@pytest.mark.asyncio
async def test_every_change_message_is_a_resync_cue():
    h = Harness([FakeSocket([
        json.dumps({"type": "subscribed"}),
        changed("INSERT"),
        "not json",
        changed("DELETE"),
    ])])

    await h.feed.run()

    # one on connect, one per change message
    assert h.cues == 3
    assert h.degraded[0] is False


@pytest.mark.asyncio
async def test_failed_subscription_degrades_to_polling_and_backs_off():
    h = Harness([OSError("refused"), InvalidURI("ws://nope", "bad"), FakeSocket([])], stop_after_sleeps=3)

    await h.feed.run()

    assert h.degraded[:2] == [True, True]
    assert False in h.degraded
    assert h.sleeps[:2] == [0.5, 1.0]
    assert h.feed.last_error is not None


@pytest.mark.asyncio
async def test_backoff_resets_after_a_good_connection():
    h = Harness([OSError("refused"), FakeSocket([changed()]), OSError("refused")], stop_after_sleeps=3)

    await h.feed.run()

    assert h.sleeps == [0.5, 0.5, 1.0]
    assert h.cues == 2


@pytest.mark.asyncio
async def test_close_stops_reconnecting():
    h = Harness([FakeSocket([])])
    await h.feed.close()

    await h.feed.run()

    assert h.cues == 0
    assert h.sleeps == []
