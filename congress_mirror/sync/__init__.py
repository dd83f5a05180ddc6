"""Incremental sync engine: planning, resolution, linking and batch writes."""

from .orchestrator import RunSummary, SyncOrchestrator, SyncState, create_orchestrator

__all__ = ["RunSummary", "SyncOrchestrator", "SyncState", "create_orchestrator"]
