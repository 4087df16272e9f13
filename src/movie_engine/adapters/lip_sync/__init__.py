"""Lip-sync adapters."""

from movie_engine.adapters.lip_sync.base import LipSyncProvider, LipSyncRequest
from movie_engine.adapters.lip_sync.fal import FalLipSyncProvider
from movie_engine.adapters.lip_sync.stub import StubLipSyncProvider

__all__ = [
    "FalLipSyncProvider",
    "LipSyncProvider",
    "LipSyncRequest",
    "StubLipSyncProvider",
]
