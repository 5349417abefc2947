import asyncio

import pytest

from mapshare.client.sampler import Fix, PositionSampler, ScriptedPositionSource
from mapshare.errors import PermissionDenied, PositionUnavailable


class FakeTime:
    """Clock and sleep pair where sleeping only advances the clock."""

    def __init__(self):
        self.now = 0.0

    def clock(self):
        return self.now

    async def sleep(self, seconds):
        self.now += seconds
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_initial_fix_is_emitted_immediately():
    seen = []

    async def on_sample(fix):
        seen.append(fix)

    sampler = PositionSampler(ScriptedPositionSource([Fix(1, 1)]), on_sample, min_interval=0)
    fix = await sampler.start()

    assert seen == [fix]
    assert sampler.running
    await sampler.stop()
    assert not sampler.running


@pytest.mark.asyncio
async def test_burst_inside_min_interval_sends_the_latest_fix_later():
    seen = []
    fake = FakeTime()

    async def on_sample(fix):
        seen.append(((fix.latitude, fix.longitude), fake.now))

    source = ScriptedPositionSource([Fix(1, 1), Fix(2, 2), Fix(3, 3)])
    sampler = PositionSampler(
        source,
        on_sample,
        min_interval=5,
        heartbeat_interval=None,
        clock=fake.clock,
        sleep=fake.sleep,
    )

    await sampler.start()
    await sampler.join()

    # (2, 2) is superseded while held back; the final position still goes out
    assert seen == [((1, 1), 0.0), ((3, 3), 5.0)]
    await sampler.stop()


@pytest.mark.asyncio
async def test_still_device_is_re_sent_on_heartbeat():
    seen = []
    fake = FakeTime()

    async def on_sample(fix):
        seen.append(fake.now)

    sampler = PositionSampler(
        ScriptedPositionSource([Fix(1, 1)]),
        on_sample,
        min_interval=5,
        heartbeat_interval=60,
        clock=fake.clock,
        sleep=fake.sleep,
    )

    await sampler.start()
    for _ in range(10):
        if len(seen) >= 2:
            break
        await asyncio.sleep(0)
    await sampler.stop()

    assert seen[:2] == [0.0, 60.0]


@pytest.mark.asyncio
async def test_stop_discards_held_back_fix():
    seen = []

    async def on_sample(fix):
        seen.append(fix.latitude)

    sampler = PositionSampler(
        ScriptedPositionSource([Fix(1, 1), Fix(2, 2)]),
        on_sample,
        min_interval=5,
        heartbeat_interval=None,
    )

    await sampler.start()
    await asyncio.wait({sampler._task})
    await sampler.stop()
    await asyncio.sleep(0)

    assert seen == [1]


@pytest.mark.asyncio
async def test_unavailable_device_is_permission_denied():
    async def on_sample(fix):
        raise AssertionError("no sample expected")

    sampler = PositionSampler(ScriptedPositionSource([], available=False), on_sample)
    with pytest.raises(PermissionDenied):
        await sampler.start()
    assert not sampler.running


@pytest.mark.asyncio
async def test_no_initial_fix_is_position_unavailable():
    async def on_sample(fix):
        raise AssertionError("no sample expected")

    sampler = PositionSampler(ScriptedPositionSource([]), on_sample)
    with pytest.raises(PositionUnavailable):
        await sampler.start()


@pytest.mark.asyncio
async def test_stop_is_idempotent():
    async def on_sample(fix):
        pass

    sampler = PositionSampler(ScriptedPositionSource([Fix(1, 1)]), on_sample)
    await sampler.stop()
    await sampler.start()
    await sampler.stop()
    await sampler.stop()


@pytest.mark.asyncio
async def test_transient_unavailable_keeps_watching():
    seen = []

    async def on_sample(fix):
        seen.append(fix.latitude)

    source = ScriptedPositionSource([Fix(1, 1), PositionUnavailable("tunnel"), Fix(2, 2)])
    sampler = PositionSampler(source, on_sample, min_interval=0)

    await sampler.start()
    await sampler.join()

    assert seen == [1, 2]
    await sampler.stop()


@pytest.mark.asyncio
async def test_revoked_permission_reports_and_stops():
    errors = []

    async def on_sample(fix):
        pass

    async def on_error(err):
        errors.append(err)

    source = ScriptedPositionSource([Fix(1, 1), PermissionDenied("revoked"), Fix(2, 2)])
    sampler = PositionSampler(source, on_sample, on_error=on_error, min_interval=0)

    await sampler.start()
    await sampler.join()

    assert len(errors) == 1
    assert isinstance(errors[0], PermissionDenied)
    assert not sampler.running
