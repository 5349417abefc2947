"""Everything a map view needs to show other users' live positions."""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, List, Optional

from loguru import logger

from mapshare.client.api import MapShareClient
from mapshare.client.feed import PresenceFeed
from mapshare.client.reconciler import MarkerSurface, PresenceReconciler
from mapshare.core.presence_config import BACKOFF_BASE_SECONDS


class LiveMap:
    """
    Feed cues and the fallback timer both land on one reconciler, which runs
    at most one fetch+diff pass at a time.

    The two loops are independent: if one of them crashes it is logged and
    restarted, the other keeps going. ``close()`` ends both and lets
    ``run()`` return.
    """

    def __init__(
        self,
        api: MapShareClient,
        surface: MarkerSurface,
        *,
        connect: Optional[Callable[..., Any]] = None,
        restart_delay: float = BACKOFF_BASE_SECONDS,
        **reconciler_options: Any,
    ):
        reconciler_options.setdefault("self_user_id", api.session.current_user_id)
        self.reconciler = PresenceReconciler(api, surface, **reconciler_options)

        feed_options = {"connect": connect} if connect is not None else {}
        self.feed = PresenceFeed(
            api.feed_url,
            on_change=self.reconciler.request_sync,
            on_degraded=self.reconciler.set_degraded,
            **feed_options,
        )
        self._restart_delay = restart_delay
        self._closed = False
        self._tasks: List[asyncio.Task] = []

    async def run(self) -> None:
        await self.reconciler.sync()
        if self._closed:
            return

        self._tasks = [
            asyncio.create_task(self._keep_running("feed", self.feed.run)),
            asyncio.create_task(self._keep_running("fallback", self.reconciler.run_fallback)),
        ]
        # cancelled loops come back as results, so close() ends run() cleanly
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

    async def _keep_running(self, name: str, loop: Callable[[], Awaitable[None]]) -> None:
        while not self._closed:
            try:
                await loop()
                return
            except Exception as e:
                logger.exception(f"[live_map] {name} loop crashed, restarting: {e}")
                if name == "feed":
                    self.reconciler.set_degraded(True)
                await asyncio.sleep(self._restart_delay)

    async def close(self) -> None:
        self._closed = True
        await self.feed.close()
        for task in self._tasks:
            task.cancel()
