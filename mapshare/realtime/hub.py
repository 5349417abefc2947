"""Fan-out of presence change cues to connected clients."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Set

from loguru import logger


class PresenceChangeHub:
    """
    Tracks subscribers interested in ``live_locations`` changes.

    Every subscriber owns a one-slot mailbox. A cue that arrives while the
    previous one is still unread is dropped, so a burst of writes reaches a
    slow client as a single "resync now".
    """

    def __init__(self) -> None:
        self._subscribers: Set[asyncio.Queue] = set()
        self._lock = asyncio.Lock()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def subscribe(self) -> asyncio.Queue:
        mailbox: asyncio.Queue = asyncio.Queue(maxsize=1)
        async with self._lock:
            self._subscribers.add(mailbox)
        logger.debug(f"[realtime] subscriber added (total={len(self._subscribers)})")
        return mailbox

    async def unsubscribe(self, mailbox: asyncio.Queue) -> None:
        async with self._lock:
            self._subscribers.discard(mailbox)
        logger.debug(f"[realtime] subscriber removed (total={len(self._subscribers)})")

    async def publish(self, event: Dict[str, Any]) -> int:
        """Queue ``event`` for every subscriber. Returns how many got a fresh cue."""
        async with self._lock:
            targets = list(self._subscribers)

        delivered = 0
        for mailbox in targets:
            try:
                mailbox.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                # a cue is already pending; coalesce
                continue

        logger.debug(f"[realtime] {event.get('event')} fanned out to {delivered}/{len(targets)}")
        return delivered


presence_hub = PresenceChangeHub()
"""Process-wide hub shared by the live location routes."""


def presence_changed(event: str, user_id: str | None = None) -> Dict[str, Any]:
    return {
        "type": "presence_changed",
        "table": "live_locations",
        "event": event,
        "user_id": user_id,
    }
