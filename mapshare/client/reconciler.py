"""Keeps the rendered presence markers in line with the presence store."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Protocol, Set

from loguru import logger

from mapshare.client.api import MapShareClient, PresenceRecord
from mapshare.client.backoff import backoff_delays
from mapshare.core.presence_config import (
    FETCH_MAX_ATTEMPTS,
    BACKOFF_BASE_SECONDS,
    PRESENCE_DEGRADED_POLL_SECONDS,
    PRESENCE_FALLBACK_POLL_SECONDS,
    PRESENCE_STALE_AFTER_SECONDS,
)
from mapshare.errors import FetchError


# ------------------------------------------------------------------
# Diff
# ------------------------------------------------------------------

class MarkerAction(str, Enum):
    create = "create"
    move = "move"
    remove = "remove"


@dataclass(frozen=True)
class MarkerCommand:
    action: MarkerAction
    user_id: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    display_name: Optional[str] = None


_ACTION_ORDER = {MarkerAction.remove: 0, MarkerAction.move: 1, MarkerAction.create: 2}


def reconcile(
    previous: Mapping[str, PresenceRecord],
    current: Mapping[str, PresenceRecord],
) -> List[MarkerCommand]:
    """
    Commands that turn the ``previous`` marker set into ``current``.

    Pure. Only the key sets and positions matter, so reconciling a set
    against itself yields nothing.
    """
    commands: List[MarkerCommand] = []

    for user_id, record in current.items():
        before = previous.get(user_id)
        if before is None:
            action = MarkerAction.create
        elif before.position != record.position:
            action = MarkerAction.move
        else:
            continue
        commands.append(
            MarkerCommand(
                action=action,
                user_id=user_id,
                latitude=record.latitude,
                longitude=record.longitude,
                display_name=record.display_name,
            )
        )

    for user_id in previous.keys() - current.keys():
        commands.append(MarkerCommand(action=MarkerAction.remove, user_id=user_id))

    commands.sort(key=lambda c: (_ACTION_ORDER[c.action], c.user_id))
    return commands


# ------------------------------------------------------------------
# Rendering boundary
# ------------------------------------------------------------------

class MarkerSurface(Protocol):
    def add(self, record: PresenceRecord) -> Any:
        """Draw a marker and return a handle for it."""

    def move(self, handle: Any, record: PresenceRecord) -> None:
        ...

    def remove(self, handle: Any) -> None:
        ...


# ------------------------------------------------------------------
# Reconciler
# ------------------------------------------------------------------

class PresenceReconciler:
    def __init__(
        self,
        api: MapShareClient,
        surface: MarkerSurface,
        *,
        self_user_id: Callable[[], Optional[str]] = lambda: None,
        include_self: bool = False,
        stale_after: Optional[float] = PRESENCE_STALE_AFTER_SECONDS,
        fallback_interval: float = PRESENCE_FALLBACK_POLL_SECONDS,
        degraded_interval: float = PRESENCE_DEGRADED_POLL_SECONDS,
        max_attempts: int = FETCH_MAX_ATTEMPTS,
        backoff_base: float = BACKOFF_BASE_SECONDS,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._api = api
        self._surface = surface
        self._self_user_id = self_user_id
        self._include_self = include_self
        self._stale_after = stale_after
        self._fallback_interval = fallback_interval
        self._degraded_interval = degraded_interval
        self._max_attempts = max_attempts
        self._backoff_base = backoff_base
        self._clock = clock
        self._sleep = sleep

        # RenderedMarkerSet: user_id -> surface handle
        self._markers: Dict[str, Any] = {}
        self._rendered: Dict[str, PresenceRecord] = {}
        self._degraded = False
        self._in_flight = False
        self._pending = False
        self._tasks: Set[asyncio.Task] = set()

    # ---- state ----

    @property
    def markers(self) -> Dict[str, Any]:
        return dict(self._markers)

    @property
    def rendered(self) -> Dict[str, PresenceRecord]:
        return dict(self._rendered)

    @property
    def degraded(self) -> bool:
        return self._degraded

    def set_degraded(self, degraded: bool) -> None:
        if degraded != self._degraded:
            logger.info(f"[reconciler] change feed {'down, polling' if degraded else 'restored'}")
        self._degraded = degraded

    @property
    def poll_interval(self) -> float:
        return self._degraded_interval if self._degraded else self._fallback_interval

    # ---- fetch ----

    async def fetch_all(self) -> Dict[str, PresenceRecord]:
        records = await self._api.list_presence()
        return {r.user_id: r for r in records}

    async def _fetch_with_retry(self) -> Dict[str, PresenceRecord]:
        delays = backoff_delays(self._backoff_base)
        for attempt in range(1, self._max_attempts + 1):
            try:
                return await self.fetch_all()
            except FetchError as e:
                if attempt == self._max_attempts:
                    raise
                delay = next(delays)
                logger.warning(f"[reconciler] fetch failed (attempt {attempt}), retrying in {delay}s: {e}")
                await self._sleep(delay)
        raise FetchError("no fetch attempts configured")

    def _visible(self, records: Mapping[str, PresenceRecord]) -> Dict[str, PresenceRecord]:
        me = self._self_user_id()
        cutoff = None
        if self._stale_after is not None:
            cutoff = self._clock() - timedelta(seconds=self._stale_after)

        out: Dict[str, PresenceRecord] = {}
        for user_id, record in records.items():
            if user_id == me and not self._include_self:
                continue
            if cutoff is not None and record.updated_at < cutoff:
                continue
            out[user_id] = record
        return out

    # ---- apply ----

    def _apply(self, commands: List[MarkerCommand], current: Mapping[str, PresenceRecord]) -> None:
        # markers and rendered records move together, one command at a time
        for cmd in commands:
            if cmd.action is MarkerAction.create:
                self._markers[cmd.user_id] = self._surface.add(current[cmd.user_id])
                self._rendered[cmd.user_id] = current[cmd.user_id]
            elif cmd.action is MarkerAction.move:
                self._surface.move(self._markers[cmd.user_id], current[cmd.user_id])
                self._rendered[cmd.user_id] = current[cmd.user_id]
            else:
                self._surface.remove(self._markers[cmd.user_id])
                del self._markers[cmd.user_id]
                self._rendered.pop(cmd.user_id, None)

        for user_id in self._rendered.keys() & current.keys():
            self._rendered[user_id] = current[user_id]

    # ---- triggers ----

    async def sync(self) -> List[MarkerCommand]:
        """
        Fetch, diff and redraw. A call that lands while another pass is
        running only flags one more pass and returns immediately.
        """
        if self._in_flight:
            self._pending = True
            return []

        self._in_flight = True
        applied: List[MarkerCommand] = []
        try:
            while True:
                self._pending = False
                try:
                    records = await self._fetch_with_retry()
                except FetchError as e:
                    logger.warning(f"[reconciler] giving up this pass, markers left stale: {e}")
                    break

                current = self._visible(records)
                commands = reconcile(self._rendered, current)
                self._apply(commands, current)
                applied.extend(commands)

                if commands:
                    logger.debug(f"[reconciler] applied {len(commands)} marker change(s)")
                if not self._pending:
                    break
        finally:
            self._in_flight = False

        return applied

    def request_sync(self) -> Optional[asyncio.Task]:
        """Fire-and-forget trigger for feed callbacks."""
        if self._in_flight:
            self._pending = True
            return None

        task = asyncio.create_task(self.sync())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def run_fallback(self) -> None:
        """Resync on a timer to cover notifications the feed never delivered."""
        while True:
            await self._sleep(self.poll_interval)
            await self.sync()
