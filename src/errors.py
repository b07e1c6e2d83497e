# src/errors.py

"""Exception types raised across the price_sync pipeline."""


class PriceSyncError(Exception):
    """Base class for all price_sync errors."""


class StoreError(PriceSyncError):
    """The persistent store failed; a sync run cannot continue."""


class OfferParseError(PriceSyncError):
    """An external offer carried malformed price or timestamp fields."""


class SyncAlreadyRunningError(PriceSyncError):
    """Another sync run currently holds the run lock."""

    def __init__(self, run_id: int, started_at: str) -> None:
        super().__init__(
            f"A price sync is already running (run {run_id}, "
            f"started {started_at})"
        )
        self.run_id = run_id
        self.started_at = started_at
