# src/models/sync_run.py

"""Run-history row written by the sync run lock."""

from dataclasses import dataclass


@dataclass
class SyncRun:
    """One invocation of the sync job as recorded in the store."""

    id: int
    status: str  # "running", "completed", "failed", "abandoned"
    started_at: str
    finished_at: str | None = None
    prices_recorded: int = 0
    report_json: str | None = None
