"""Pushes this client's latest position to the presence store."""
from __future__ import annotations

import asyncio
from typing import Callable, Optional

from loguru import logger

from mapshare.client.api import AccessTokenSession, MapShareClient, PresenceRecord
from mapshare.core.validation import validate_coordinates
from mapshare.errors import AuthenticationRequired, ValidationError


class PresencePublisher:
    """
    Serializes this client's publishes and retracts.

    ``is_sharing`` is consulted after the publish lock is taken, so a sample
    that was already in flight when sharing stopped is dropped instead of
    recreating the record.
    """

    def __init__(
        self,
        api: MapShareClient,
        session: Optional[AccessTokenSession] = None,
        *,
        is_sharing: Callable[[], bool] = lambda: True,
    ):
        self._api = api
        self._session = session or api.session
        self._is_sharing = is_sharing
        self._lock = asyncio.Lock()
        self.last_published: Optional[PresenceRecord] = None

    def _require_user(self) -> str:
        user_id = self._session.current_user_id()
        if not user_id:
            raise AuthenticationRequired()
        return user_id

    async def publish(self, latitude: float, longitude: float) -> Optional[PresenceRecord]:
        """Upsert our record. Returns None when the sample was gated out."""
        errors = validate_coordinates(latitude, longitude)
        if errors:
            logger.error(f"[publisher] rejected sample ({latitude}, {longitude}): {errors}")
            raise ValidationError(errors)

        user_id = self._require_user()

        async with self._lock:
            if not self._is_sharing():
                logger.debug(f"[publisher] sharing stopped, dropping late sample for {user_id}")
                return None

            record = await self._api.upsert_presence(latitude, longitude)
            self.last_published = record
            logger.debug(f"[publisher] published {record.position} for {user_id}")
            return record

    async def retract(self) -> None:
        """Delete our record. Succeeds when there was nothing to delete."""
        user_id = self._require_user()

        async with self._lock:
            await self._api.delete_presence()
            self.last_published = None
            logger.info(f"[publisher] retracted presence for {user_id}")
