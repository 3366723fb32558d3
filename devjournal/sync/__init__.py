from __future__ import annotations

from .linear_sync import (
    ISSUES,
    PROJECTS,
    LinearSyncResult,
    sync_linear_data,
    sync_linear_issues,
    sync_linear_projects,
)
from .reconcile import EntityKind, RemoteItem, SummaryRunner, SyncCounts, reconcile
from .slite_sync import NOTES, SliteSyncResult, sync_slite_data, sync_slite_notes

__all__ = [
    "ISSUES",
    "NOTES",
    "PROJECTS",
    "EntityKind",
    "LinearSyncResult",
    "RemoteItem",
    "SliteSyncResult",
    "SummaryRunner",
    "SyncCounts",
    "reconcile",
    "sync_linear_data",
    "sync_linear_issues",
    "sync_linear_projects",
    "sync_slite_data",
    "sync_slite_notes",
]
