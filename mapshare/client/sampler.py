"""Device position observation with a capped sample rate."""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, Iterable, Optional, Protocol

from loguru import logger

from mapshare.core.presence_config import SAMPLER_HEARTBEAT_SECONDS, SAMPLER_MIN_INTERVAL_SECONDS
from mapshare.errors import MapShareError, PermissionDenied, PositionUnavailable


@dataclass(frozen=True)
class Fix:
    latitude: float
    longitude: float
    accuracy_m: Optional[float] = None
    taken_at: float = field(default_factory=time.time)


class PositionSource(Protocol):
    async def current_position(self) -> Fix:
        """One fix. Raises PermissionDenied or PositionUnavailable."""

    def watch(self) -> AsyncIterator[Fix]:
        """Fixes as the device moves."""


class ScriptedPositionSource:
    """
    Replays a fixed list of fixes. Entries may also be exceptions, which are
    raised at that point in the sequence.
    """

    def __init__(
        self,
        fixes: Iterable[Fix | MapShareError],
        *,
        delay: float = 0.0,
        available: bool = True,
    ):
        self._fixes = list(fixes)
        self._delay = delay
        self._available = available
        self._cursor = 1

    async def current_position(self) -> Fix:
        if not self._available:
            raise PermissionDenied("Geolocation is not supported on this device")
        if not self._fixes:
            raise PositionUnavailable("No position fix available")
        first = self._fixes[0]
        if isinstance(first, MapShareError):
            raise first
        return first

    async def watch(self) -> AsyncIterator[Fix]:
        # resumes where a previous watch stopped
        while self._cursor < len(self._fixes):
            item = self._fixes[self._cursor]
            self._cursor += 1
            if self._delay:
                await asyncio.sleep(self._delay)
            if isinstance(item, MapShareError):
                raise item
            yield item


SampleCallback = Callable[[Fix], Awaitable[None]]
ErrorCallback = Callable[[MapShareError], Awaitable[None]]


class PositionSampler:
    """
    Emits at most one sample per ``min_interval``. A fix that arrives sooner
    is held back (newest wins) and emitted once the interval has passed, so
    the last position of a device that stops moving always goes out. While
    the device is still, the last fix is re-emitted every
    ``heartbeat_interval`` seconds.
    """

    def __init__(
        self,
        source: PositionSource,
        on_sample: SampleCallback,
        *,
        on_error: Optional[ErrorCallback] = None,
        min_interval: float = SAMPLER_MIN_INTERVAL_SECONDS,
        heartbeat_interval: Optional[float] = SAMPLER_HEARTBEAT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._source = source
        self._on_sample = on_sample
        self._on_error = on_error
        self._min_interval = min_interval
        self._heartbeat_interval = heartbeat_interval
        self._clock = clock
        self._sleep = sleep
        self._last_emit: Optional[float] = None
        self._last_fix: Optional[Fix] = None
        self._pending: Optional[Fix] = None
        self._task: Optional[asyncio.Task] = None
        self._flush_task: Optional[asyncio.Task] = None
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> Fix:
        """
        Take an initial fix, emit it, then keep watching in the background.

        Raises PermissionDenied / PositionUnavailable when the initial fix
        cannot be taken; the sampler is left stopped in that case.
        """
        if self._running:
            raise RuntimeError("Sampler already started")

        fix = await self._source.current_position()

        self._running = True
        self._last_emit = None
        self._pending = None
        await self._emit(fix)
        # the first publish may have stopped us (e.g. session lost)
        if self._running:
            self._task = asyncio.create_task(self._watch())
            if self._heartbeat_interval:
                self._heartbeat_task = asyncio.create_task(self._heartbeat())
        return fix

    async def stop(self) -> None:
        self._running = False
        self._pending = None
        tasks = (self._task, self._flush_task, self._heartbeat_task)
        self._task = self._flush_task = self._heartbeat_task = None

        current = asyncio.current_task()
        for task in tasks:
            if task is None or task is current:
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def join(self) -> None:
        """Wait for the watch to end and for any held-back fix to go out."""
        if self._task is not None:
            await asyncio.wait({self._task})
        if self._flush_task is not None:
            await asyncio.wait({self._flush_task})

    async def _send(self, fix: Fix) -> None:
        self._last_emit = self._clock()
        self._last_fix = fix
        await self._on_sample(fix)

    async def _emit(self, fix: Fix) -> None:
        if self._last_emit is not None:
            wait = self._min_interval - (self._clock() - self._last_emit)
            if wait > 0:
                self._pending = fix
                if self._flush_task is None:
                    self._flush_task = asyncio.create_task(self._flush(wait))
                return
        self._pending = None
        await self._send(fix)

    async def _flush(self, delay: float) -> None:
        try:
            while self._running:
                await self._sleep(delay)
                fix, self._pending = self._pending, None
                if fix is None or not self._running:
                    return
                logger.debug("[sampler] sending held-back fix")
                await self._send(fix)
                if self._pending is None:
                    return
                delay = self._min_interval
        finally:
            if self._flush_task is asyncio.current_task():
                self._flush_task = None

    async def _heartbeat(self) -> None:
        while self._running:
            await self._sleep(self._heartbeat_interval)
            if not self._running or self._last_fix is None or self._last_emit is None:
                continue
            if self._clock() - self._last_emit >= self._heartbeat_interval:
                logger.debug("[sampler] heartbeat, re-sending last fix")
                await self._emit(self._last_fix)

    async def _watch(self) -> None:
        while self._running:
            try:
                async for fix in self._source.watch():
                    if not self._running:
                        return
                    await self._emit(fix)
                # source exhausted
                return
            except PositionUnavailable as e:
                logger.warning(f"[sampler] position unavailable, waiting for next fix: {e}")
                await self._sleep(self._min_interval)
            except PermissionDenied as e:
                logger.warning(f"[sampler] permission revoked: {e}")
                await self.stop()
                if self._on_error is not None:
                    await self._on_error(e)
                return
