from mapshare.client.api import AccessTokenSession, MapShareClient, PresenceRecord
from mapshare.client.feed import PresenceFeed
from mapshare.client.live_map import LiveMap
from mapshare.client.publisher import PresencePublisher
from mapshare.client.reconciler import (
    MarkerAction,
    MarkerCommand,
    MarkerSurface,
    PresenceReconciler,
    reconcile,
)
from mapshare.client.sampler import Fix, PositionSampler, PositionSource, ScriptedPositionSource
from mapshare.client.session import SharingSession, SharingState

__all__ = [
    "AccessTokenSession",
    "Fix",
    "LiveMap",
    "MapShareClient",
    "MarkerAction",
    "MarkerCommand",
    "MarkerSurface",
    "PositionSampler",
    "PositionSource",
    "PresenceFeed",
    "PresencePublisher",
    "PresenceReconciler",
    "PresenceRecord",
    "ScriptedPositionSource",
    "SharingSession",
    "SharingState",
    "reconcile",
]
