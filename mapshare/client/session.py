"""Per-client location sharing: IDLE <-> SHARING."""
from __future__ import annotations

from enum import Enum
from typing import Callable, Optional

from loguru import logger

from mapshare.client.api import MapShareClient
from mapshare.client.publisher import PresencePublisher
from mapshare.client.sampler import Fix, PositionSampler, PositionSource
from mapshare.core.presence_config import SAMPLER_HEARTBEAT_SECONDS, SAMPLER_MIN_INTERVAL_SECONDS
from mapshare.errors import (
    AuthenticationRequired,
    FetchError,
    MapShareError,
    PermissionDenied,
    PositionUnavailable,
    ValidationError,
)


class SharingState(str, Enum):
    idle = "idle"
    sharing = "sharing"


class SharingSession:
    """
    Wires the position sampler to the publisher and owns the sharing state.

    ``notify`` receives short user-facing messages (the UI shows them as
    toasts).
    """

    def __init__(
        self,
        api: MapShareClient,
        source: PositionSource,
        *,
        min_interval: float = SAMPLER_MIN_INTERVAL_SECONDS,
        heartbeat_interval: Optional[float] = SAMPLER_HEARTBEAT_SECONDS,
        notify: Optional[Callable[[str], None]] = None,
    ):
        self._api = api
        self._notify = notify or (lambda message: logger.info(f"[notice] {message}"))
        self.state = SharingState.idle
        self.last_error: Optional[MapShareError] = None

        self.publisher = PresencePublisher(api, is_sharing=lambda: self.state is SharingState.sharing)
        self.sampler = PositionSampler(
            source,
            self._on_sample,
            on_error=self._on_sampler_error,
            min_interval=min_interval,
            heartbeat_interval=heartbeat_interval,
        )

    @property
    def is_sharing(self) -> bool:
        return self.state is SharingState.sharing

    async def start(self) -> None:
        if self.is_sharing:
            return

        if not self._api.session.current_user_id():
            self._notify("You must be logged in to share your location")
            raise AuthenticationRequired()

        self.last_error = None
        # publishes are gated on this, so it has to flip before the first fix
        self.state = SharingState.sharing
        try:
            await self.sampler.start()
        except (PermissionDenied, PositionUnavailable) as e:
            self.state = SharingState.idle
            self.last_error = e
            self._notify("Failed to get your location")
            raise

        if not self.is_sharing and self.last_error is not None:
            raise self.last_error

        self._notify("Started sharing your location")

    async def stop(self) -> None:
        """Stop sampling and remove our record. Safe to call repeatedly."""
        self.state = SharingState.idle
        await self.sampler.stop()

        if not self._api.session.current_user_id():
            # nothing we are allowed to delete; readers age the row out
            logger.warning("[session] stopped without a session, presence row left to go stale")
            return

        try:
            await self.publisher.retract()
        except AuthenticationRequired:
            logger.warning("[session] session expired before retract, presence row left to go stale")
            return

        self._notify("Stopped sharing your location")

    async def _to_idle(self, error: MapShareError, message: str) -> None:
        self.last_error = error
        self.state = SharingState.idle
        await self.sampler.stop()
        self._notify(message)

    async def _on_sample(self, fix: Fix) -> None:
        try:
            await self.publisher.publish(fix.latitude, fix.longitude)
        except AuthenticationRequired as e:
            logger.warning(f"[session] session lost while sharing: {e}")
            await self._to_idle(e, "Sign in to share your location")
        except ValidationError as e:
            logger.error(f"[session] device produced an invalid fix: {e}")
        except FetchError as e:
            # next sample tries again
            logger.warning(f"[session] publish failed: {e}")

    async def _on_sampler_error(self, error: MapShareError) -> None:
        await self._to_idle(error, "Location access was revoked")
