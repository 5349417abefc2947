"""Client side of the presence change feed."""
from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable, Optional

import websockets
from websockets.exceptions import WebSocketException
from loguru import logger

from mapshare.client.backoff import backoff_delays
from mapshare.core.presence_config import BACKOFF_BASE_SECONDS
from mapshare.errors import SubscriptionError


class PresenceFeed:
    """
    Listens on ``/v1/live-locations/ws`` and turns every message into a
    resync cue. Messages carry no usable delta; the reconciler refetches.

    While disconnected the feed reports ``degraded=True`` so the reconciler
    polls faster, and it keeps reconnecting with exponential backoff.
    Failures are logged, never raised.
    """

    def __init__(
        self,
        url: str,
        on_change: Callable[[], Any],
        *,
        on_degraded: Callable[[bool], None] = lambda degraded: None,
        connect: Callable[..., Any] = websockets.connect,
        backoff_base: float = BACKOFF_BASE_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._url = url
        self._on_change = on_change
        self._on_degraded = on_degraded
        self._connect = connect
        self._backoff_base = backoff_base
        self._sleep = sleep
        self._closed = False
        self._connected = False
        self._ws: Optional[Any] = None
        self.last_error: Optional[SubscriptionError] = None

    @property
    def connected(self) -> bool:
        return self._connected

    async def run(self) -> None:
        delays = backoff_delays(self._backoff_base)
        while not self._closed:
            try:
                await self._listen()
                self.last_error = SubscriptionError("change feed closed")
            except (OSError, WebSocketException) as e:
                self.last_error = SubscriptionError(str(e) or e.__class__.__name__)
            finally:
                if self._connected:
                    # had a working connection; start the backoff over
                    delays = backoff_delays(self._backoff_base)
                self._connected = False
                self._ws = None

            if self._closed:
                break

            self._on_degraded(True)
            delay = next(delays)
            logger.warning(f"[feed] {self.last_error}; falling back to polling, reconnect in {delay}s")
            await self._sleep(delay)

    async def _listen(self) -> None:
        async with self._connect(self._url) as ws:
            self._ws = ws
            self._connected = True
            self.last_error = None
            self._on_degraded(False)
            logger.info(f"[feed] subscribed to {self._url}")

            # anything missed while we were away
            self._on_change()

            async for message in ws:
                self._handle(message)
                if self._closed:
                    return

    def _handle(self, message: Any) -> None:
        try:
            event = json.loads(message)
        except (TypeError, ValueError):
            logger.debug(f"[feed] ignoring non-JSON message: {message!r}")
            return

        if isinstance(event, dict) and event.get("type") == "presence_changed":
            self._on_change()

    async def close(self) -> None:
        self._closed = True
        ws = self._ws
        if ws is not None:
            await ws.close()
