import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from mapshare.client.api import PresenceRecord
from mapshare.client.reconciler import MarkerAction, PresenceReconciler
from mapshare.errors import FetchError

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def rec(user_id, lat, lng, age_seconds=0):
    return PresenceRecord(
        user_id=user_id,
        latitude=lat,
        longitude=lng,
        updated_at=NOW - timedelta(seconds=age_seconds),
    )


class FakeApi:
    def __init__(self, *snapshots):
        self.snapshots = list(snapshots)
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self.gate = None

    async def list_presence(self):
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            item = self.snapshots.pop(0) if len(self.snapshots) > 1 else self.snapshots[0]
            if isinstance(item, Exception):
                raise item
            return item
        finally:
            self.active -= 1


class RecordingSurface:
    def __init__(self):
        self.log = []
        self._next = 0

    def add(self, record):
        self._next += 1
        handle = f"marker-{self._next}"
        self.log.append(("add", record.user_id, handle))
        return handle

    def move(self, handle, record):
        self.log.append(("move", record.user_id, handle))

    def remove(self, handle):
        self.log.append(("remove", handle))


async def no_sleep(_):
    return None


def make(api, surface=None, **kwargs):
    kwargs.setdefault("clock", lambda: NOW)
    kwargs.setdefault("sleep", no_sleep)
    return PresenceReconciler(api, surface or RecordingSurface(), **kwargs)


@pytest.mark.asyncio
async def test_sync_creates_moves_and_removes_markers():
    api = FakeApi(
        [rec("a", 1, 1), rec("b", 2, 2)],
        [rec("a", 1, 5)],
    )
    surface = RecordingSurface()
    r = make(api, surface)

    first = await r.sync()
    assert {c.action for c in first} == {MarkerAction.create}
    assert set(r.markers) == {"a", "b"}

    second = await r.sync()
    assert [(c.action, c.user_id) for c in second] == [
        (MarkerAction.remove, "b"),
        (MarkerAction.move, "a"),
    ]
    assert set(r.markers) == {"a"}
    # a kept its original handle
    assert ("move", "a", r.markers["a"]) in surface.log


@pytest.mark.asyncio
async def test_repeat_sync_is_idempotent():
    api = FakeApi([rec("a", 1, 1)])
    surface = RecordingSurface()
    r = make(api, surface)

    await r.sync()
    assert await r.sync() == []
    assert len(surface.log) == 1


@pytest.mark.asyncio
async def test_own_marker_excluded_unless_asked():
    api = FakeApi([rec("me", 1, 1), rec("other", 2, 2)])

    others = make(api, self_user_id=lambda: "me")
    await others.sync()
    assert set(others.markers) == {"other"}

    combined = make(api, self_user_id=lambda: "me", include_self=True)
    await combined.sync()
    assert set(combined.markers) == {"me", "other"}


@pytest.mark.asyncio
async def test_stale_records_are_hidden_not_deleted():
    api = FakeApi([rec("fresh", 1, 1, age_seconds=10), rec("ghost", 2, 2, age_seconds=3600)])

    r = make(api, stale_after=300)
    await r.sync()
    assert set(r.markers) == {"fresh"}

    unfiltered = make(api, stale_after=None)
    await unfiltered.sync()
    assert set(unfiltered.markers) == {"fresh", "ghost"}


@pytest.mark.asyncio
async def test_fetch_is_retried_with_backoff():
    delays = []

    async def record_sleep(seconds):
        delays.append(seconds)

    api = FakeApi(FetchError("boom"), FetchError("boom"), [rec("a", 1, 1)])
    r = make(api, sleep=record_sleep, max_attempts=3, backoff_base=0.5)

    cmds = await r.sync()

    assert [c.user_id for c in cmds] == ["a"]
    assert delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_exhausted_retries_leave_markers_stale():
    api = FakeApi([rec("a", 1, 1)], FetchError("down"), FetchError("down"), FetchError("down"))
    r = make(api, max_attempts=2)

    await r.sync()
    assert await r.sync() == []
    assert set(r.markers) == {"a"}


@pytest.mark.asyncio
async def test_overlapping_triggers_are_serialized():
    api = FakeApi([rec("a", 1, 1)], [rec("a", 1, 1), rec("b", 2, 2)])
    api.gate = asyncio.Event()
    r = make(api)

    first = asyncio.create_task(r.sync())
    await asyncio.sleep(0)
    # lands while the first pass is waiting on the network
    assert await r.sync() == []
    assert r.request_sync() is None

    api.gate.set()
    cmds = await first

    assert api.max_active == 1
    assert api.calls == 2
    assert set(r.markers) == {"a", "b"}
    assert len(cmds) == 2


@pytest.mark.asyncio
async def test_poll_interval_tracks_feed_health():
    r = make(FakeApi([]), fallback_interval=30, degraded_interval=5)
    assert r.poll_interval == 30

    r.set_degraded(True)
    assert r.degraded
    assert r.poll_interval == 5


@pytest.mark.asyncio
async def test_fallback_timer_resyncs():
    api = FakeApi([rec("a", 1, 1)])
    ticks = []

    async def sleep(seconds):
        ticks.append(seconds)
        if len(ticks) > 2:
            raise asyncio.CancelledError

    r = make(api, sleep=sleep, fallback_interval=30)
    with pytest.raises(asyncio.CancelledError):
        await r.run_fallback()

    assert ticks == [30, 30, 30]
    assert api.calls == 2


class FlakySurface(RecordingSurface):
    def __init__(self, fail_move_for):
        super().__init__()
        self.fail_move_for = fail_move_for

    def move(self, handle, record):
        if record.user_id == self.fail_move_for:
            raise RuntimeError("map not ready")
        super().move(handle, record)


@pytest.mark.asyncio
async def test_surface_failure_keeps_markers_and_rendered_in_step():
    api = FakeApi(
        [rec("a", 1, 1), rec("b", 1, 1)],
        [rec("a", 2, 2), rec("b", 2, 2), rec("c", 3, 3)],
    )
    surface = FlakySurface(fail_move_for="b")
    r = make(api, surface)

    await r.sync()
    with pytest.raises(RuntimeError):
        await r.sync()

    assert set(r.markers) == set(r.rendered) == {"a", "b"}
    assert r.rendered["a"].position == (2, 2)
    assert r.rendered["b"].position == (1, 1)

    surface.fail_move_for = None
    cmds = await r.sync()

    assert [(c.action, c.user_id) for c in cmds] == [
        (MarkerAction.move, "b"),
        (MarkerAction.create, "c"),
    ]
    assert set(r.markers) == set(r.rendered) == {"a", "b", "c"}
