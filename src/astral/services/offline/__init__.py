"""Offline services package - connectivity, sync queue and resource cache."""

from astral.services.offline.network_monitor import NetworkStatusMonitor
from astral.services.offline.offline_service import OfflineService
from astral.services.offline.resource_cache import OfflineCapabilityCache
from astral.services.offline.submitter import HttpSyncSubmitter, SyncSubmitter
from astral.services.offline.sync_queue import RetryPolicy, SyncQueue

__all__ = [
    "NetworkStatusMonitor",
    "SyncQueue",
    "RetryPolicy",
    "SyncSubmitter",
    "HttpSyncSubmitter",
    "OfflineCapabilityCache",
    "OfflineService",
]
